import logging
from typing import Optional

import redis

from shared.events import Event, session_channel

logger = logging.getLogger(__name__)

GLOBAL_CHANNEL = "global:announcements"
EVENT_LOG_SIZE = 1000


class EventPublisher:
    """
    Publishes training events to Redis.

    Without a Redis client every call is a no-op, so services can be built
    the same way in tests and in deployments without Redis.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client

    @classmethod
    def from_url(cls, redis_url: Optional[str]) -> "EventPublisher":
        if not redis_url:
            logger.info("No REDIS_URL configured, training events will not be published")
            return cls(None)
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )
        return cls(client)

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    def publish_session_event(self, event: Event, announce: bool = False):
        """Publish to the session channel, log it, and optionally announce globally."""
        if not self.enabled:
            return

        payload = event.to_json()
        try:
            self.redis.publish(session_channel(event.session_id), payload)
            self._log_event(event.session_id, payload)
            if announce:
                self.redis.publish(GLOBAL_CHANNEL, payload)
        except redis.RedisError as e:
            logger.error(f"Failed to publish {event.type} for session {event.session_id}: {e}")

    def _log_event(self, session_id: str, payload: str):
        key = f"training:{session_id}:event_log"
        self.redis.lpush(key, payload)
        self.redis.ltrim(key, 0, EVENT_LOG_SIZE - 1)

    def get_recent_events(self, session_id: str, count: int = 50) -> list:
        if not self.enabled:
            return []
        key = f"training:{session_id}:event_log"
        return [Event.from_json(e) for e in self.redis.lrange(key, 0, count - 1)]
