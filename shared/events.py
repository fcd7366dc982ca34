from enum import Enum
from dataclasses import dataclass
from datetime import datetime, timezone
import json


class EventType(str, Enum):
    # Session lifecycle
    SESSION_CREATED = "session.created"
    SESSION_DELETED = "session.deleted"

    # State changes
    STATE_CHANGED = "state.changed"

    # Roster events
    ATTENDEE_ADDED = "attendee.added"
    ATTENDEE_REMOVED = "attendee.removed"

    # Match events
    MATCHES_GENERATED = "matches.generated"
    MATCH_RESULT = "match.result"


@dataclass
class Event:
    type: EventType
    session_id: str
    timestamp: str = None
    data: dict = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc).isoformat()
        if self.data is None:
            self.data = {}

    def to_dict(self) -> dict:
        return {
            "type": self.type.value if isinstance(self.type, EventType) else self.type,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "data": self.data
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        return cls(
            type=EventType(data["type"]) if data["type"] in [e.value for e in EventType] else data["type"],
            session_id=data["session_id"],
            timestamp=data.get("timestamp"),
            data=data.get("data", {})
        )

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        return cls.from_dict(json.loads(json_str))


def session_channel(session_id: str) -> str:
    return f"training:{session_id}:events"


def session_created_event(session_id: str, name: str, attendee_count: int) -> Event:
    return Event(
        type=EventType.SESSION_CREATED,
        session_id=session_id,
        data={
            "name": name,
            "attendee_count": attendee_count
        }
    )


def session_deleted_event(session_id: str) -> Event:
    return Event(type=EventType.SESSION_DELETED, session_id=session_id)


def state_changed_event(session_id: str, from_state: str, to_state: str, forced: bool = False) -> Event:
    return Event(
        type=EventType.STATE_CHANGED,
        session_id=session_id,
        data={
            "from_state": from_state,
            "to_state": to_state,
            "forced": forced
        }
    )


def attendee_event(event_type: EventType, session_id: str, attendee_id: str, guest_name: str = None) -> Event:
    return Event(
        type=event_type,
        session_id=session_id,
        data={
            "attendee_id": attendee_id,
            "guest_name": guest_name
        }
    )


def matches_generated_event(session_id: str, game_mode_id: str, matches_count: int) -> Event:
    return Event(
        type=EventType.MATCHES_GENERATED,
        session_id=session_id,
        data={
            "game_mode_id": game_mode_id,
            "matches_count": matches_count
        }
    )


def match_result_event(session_id: str, match_id: str, winner: str, player1_score: int, player2_score: int) -> Event:
    return Event(
        type=EventType.MATCH_RESULT,
        session_id=session_id,
        data={
            "match_id": match_id,
            "winner": winner,
            "player1_score": player1_score,
            "player2_score": player2_score
        }
    )
