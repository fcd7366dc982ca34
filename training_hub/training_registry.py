import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .models import db, TrainingSession, Attendee, Match, utcnow
from .directory import PlayerDirectory
from shared.errors import ConflictError, InvalidInputError, NotFoundError
from shared.events import session_created_event, session_deleted_event, state_changed_event
from shared.pubsub import EventPublisher
from shared.state_machine import SessionStateMachine, SessionState, TransitionError, parse_enum

logger = logging.getLogger(__name__)

TRANSITION_REASONS = {
    'start': "Training session is not in planned status",
    'finish': "Training session is not active",
    'cancel': "Only planned or active training sessions can be cancelled",
}


def load_session(session_id: str, for_update: bool = False) -> TrainingSession:
    """Fetch a live (not deleted) session or raise NotFoundError.

    With ``for_update`` the row is locked and an instance already in the
    identity map is overwritten with the locked row's values.
    """
    query = TrainingSession.query.filter_by(session_id=session_id, deleted_at=None)
    if for_update:
        query = query.with_for_update().populate_existing()
    session = query.first()
    if not session:
        raise NotFoundError("Training session", session_id)
    return session


def parse_cost(value) -> Decimal:
    try:
        cost = Decimal(str(value))
    except InvalidOperation:
        raise InvalidInputError(f"invalid cost_per_player: {value}")
    if not cost.is_finite() or cost < 0:
        raise InvalidInputError(f"invalid cost_per_player: {value}")
    return cost.quantize(Decimal('0.01'))


def require_text(value, message: str) -> str:
    """Strip ``value``; anything but a non-blank string is InvalidInputError."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(message)
    return value.strip()


class TrainingRegistry:
    """
    Manages the training session lifecycle:
    - Create sessions and seed their roster with every known player
    - Start, finish and cancel through the session state machine
    - Partial updates and the explicit forced status override
    - Cascading deletion of matches and roster
    """

    def __init__(
        self,
        publisher: EventPublisher = None,
        players: PlayerDirectory = None,
        default_cost: Decimal = None
    ):
        self.publisher = publisher or EventPublisher()
        self.players = players or PlayerDirectory()
        self.default_cost = default_cost

    def _default_cost(self) -> Decimal:
        if self.default_cost is not None:
            return self.default_cost
        return current_app.config.get('DEFAULT_COST_PER_PLAYER', Decimal('5.00'))

    def create_session(
        self,
        name: str,
        training_date: datetime,
        description: str = None,
        cost_per_player=None,
        created_by: str = None
    ) -> TrainingSession:
        """Create a planned session and enroll all known players in one transaction."""
        name = require_text(name, "Training session name is required")
        if not isinstance(training_date, datetime):
            raise InvalidInputError("training_date is required")
        if description is not None and not isinstance(description, str):
            raise InvalidInputError("invalid description")

        cost = parse_cost(cost_per_player) if cost_per_player is not None else self._default_cost()

        if created_by is not None:
            self.players.require_player(created_by)

        session = TrainingSession(
            name=name,
            description=description,
            training_date=training_date,
            cost_per_player=cost,
            status=SessionState.PLANNED.value,
            created_by=created_by
        )

        try:
            db.session.add(session)
            db.session.flush()

            players = self.players.list_players()
            for player in players:
                db.session.add(Attendee(
                    training_session_id=session.id,
                    player_id=player.player_id,
                    attended=True
                ))

            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to create training session '{name}': {e}")
            raise

        logger.info(f"Created training session {session.session_id} with {len(players)} players")
        self.publisher.publish_session_event(
            session_created_event(session.session_id, session.name, len(players)),
            announce=True
        )
        return session

    def get_session(self, session_id: str) -> TrainingSession:
        return load_session(session_id)

    def list_sessions(
        self,
        status: str = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[TrainingSession]:
        """List live sessions, most recent training date first."""
        if limit < 0 or offset < 0:
            raise InvalidInputError("limit and offset must not be negative")

        query = TrainingSession.query.filter_by(deleted_at=None)

        if status:
            query = query.filter_by(status=parse_enum(SessionState, status, "status").value)

        query = query.order_by(TrainingSession.training_date.desc(), TrainingSession.id.desc())
        return query.offset(offset).limit(limit).all()

    def start_session(self, session_id: str) -> TrainingSession:
        return self._transition(session_id, 'start')

    def finish_session(self, session_id: str) -> TrainingSession:
        return self._transition(session_id, 'finish')

    def cancel_session(self, session_id: str) -> TrainingSession:
        return self._transition(session_id, 'cancel')

    def _transition(self, session_id: str, action: str) -> TrainingSession:
        session = load_session(session_id)
        sm = SessionStateMachine.from_state_string(session.status)

        if not sm.can_transition(action):
            raise TransitionError(sm.state.value, "unknown", TRANSITION_REASONS[action])

        old_state = sm.state.value
        new_state = sm.transition(action)

        session.status = new_state.value
        db.session.commit()

        logger.info(f"Training session {session_id}: {old_state} -> {new_state.value} ({action})")
        self.publisher.publish_session_event(
            state_changed_event(session_id, old_state, new_state.value),
            announce=True
        )
        return session

    def update_session(
        self,
        session_id: str,
        name: str = None,
        description: str = None,
        training_date: datetime = None,
        cost_per_player=None,
        status: str = None
    ) -> TrainingSession:
        """Apply the supplied fields; a status change must be an edge of the state machine."""
        session = load_session(session_id)
        old_state = session.status
        new_state = None

        if status is not None:
            target = parse_enum(SessionState, status, "status")
            sm = SessionStateMachine.from_state_string(session.status)
            new_state = sm.transition_to(target).value

        if name is not None:
            name = require_text(name, "Training session name cannot be empty")
        if description is not None and not isinstance(description, str):
            raise InvalidInputError("invalid description")
        if training_date is not None and not isinstance(training_date, datetime):
            raise InvalidInputError("invalid training_date")
        cost = parse_cost(cost_per_player) if cost_per_player is not None else None

        if name is not None:
            session.name = name
        if description is not None:
            session.description = description
        if training_date is not None:
            session.training_date = training_date
        if cost is not None:
            session.cost_per_player = cost
        if new_state is not None:
            session.status = new_state

        db.session.commit()

        if new_state is not None and new_state != old_state:
            logger.info(f"Training session {session_id}: {old_state} -> {new_state} (update)")
            self.publisher.publish_session_event(
                state_changed_event(session_id, old_state, new_state),
                announce=True
            )
        return session

    def force_status(self, session_id: str, status: str) -> TrainingSession:
        """Set any enumerated status, bypassing the transition table."""
        session = load_session(session_id)
        target = parse_enum(SessionState, status, "status")

        old_state = session.status
        session.status = target.value
        db.session.commit()

        logger.warning(f"Training session {session_id}: status forced {old_state} -> {target.value}")
        self.publisher.publish_session_event(
            state_changed_event(session_id, old_state, target.value, forced=True),
            announce=True
        )
        return session

    def delete_session(self, session_id: str) -> None:
        """Delete matches, then the roster, then mark the session deleted, atomically."""
        session = load_session(session_id)

        if not SessionStateMachine.from_state_string(session.status).can_perform('delete'):
            raise ConflictError("cannot delete training session that is active or completed")

        try:
            Match.query.filter_by(training_session_id=session.id).delete(synchronize_session=False)
            Attendee.query.filter_by(training_session_id=session.id).delete(synchronize_session=False)
            session.deleted_at = utcnow()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to delete training session {session_id}: {e}")
            raise

        logger.info(f"Deleted training session {session_id}")
        self.publisher.publish_session_event(session_deleted_event(session_id))
