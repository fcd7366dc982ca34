import logging
from typing import List

from .models import db, Attendee
from .training_registry import load_session, require_text
from shared.errors import InvalidInputError, InvalidStateError, NotFoundError
from shared.events import EventType, attendee_event
from shared.pubsub import EventPublisher
from shared.state_machine import SessionStateMachine

logger = logging.getLogger(__name__)


class RosterManager:
    """
    Attendees of a training session.

    Regular players are enrolled when the session is created; this class only
    adds and removes guests and toggles attendance.
    """

    def __init__(self, publisher: EventPublisher = None):
        self.publisher = publisher or EventPublisher()

    def list_attendees(self, session_id: str) -> List[Attendee]:
        session = load_session(session_id)
        return Attendee.query.filter_by(training_session_id=session.id).order_by(Attendee.id).all()

    def get_attendee(self, attendee_id: str) -> Attendee:
        attendee = Attendee.query.filter_by(attendee_id=attendee_id).first()
        if not attendee or attendee.training_session.deleted_at is not None:
            raise NotFoundError("Attendee", attendee_id)
        return attendee

    def add_guest(self, session_id: str, guest_name: str = None) -> Attendee:
        session = load_session(session_id)
        sm = SessionStateMachine.from_state_string(session.status)

        if not sm.can_perform('add_guest'):
            raise InvalidStateError("cannot add players to completed or cancelled training")

        guest_name = require_text(
            guest_name,
            "Regular players are automatically assigned during training creation; a guest_name is required"
        )

        attendee = Attendee(
            training_session_id=session.id,
            guest_name=guest_name,
            attended=True
        )
        db.session.add(attendee)
        db.session.commit()

        logger.info(f"Added guest '{attendee.guest_name}' to training session {session_id}")
        self.publisher.publish_session_event(
            attendee_event(EventType.ATTENDEE_ADDED, session_id, attendee.attendee_id, attendee.guest_name)
        )
        return attendee

    def remove_attendee(self, attendee_id: str) -> None:
        attendee = self.get_attendee(attendee_id)

        if not attendee.is_guest:
            raise InvalidInputError("cannot remove regular players, only guests can be removed")

        session = attendee.training_session
        sm = SessionStateMachine.from_state_string(session.status)
        if not sm.can_perform('remove_attendee'):
            raise InvalidStateError("cannot remove players from active, completed, or cancelled training")

        guest_name = attendee.guest_name
        db.session.delete(attendee)
        db.session.commit()

        logger.info(f"Removed guest '{guest_name}' from training session {session.session_id}")
        self.publisher.publish_session_event(
            attendee_event(EventType.ATTENDEE_REMOVED, session.session_id, attendee_id, guest_name)
        )

    def set_attendance(self, attendee_id: str, attended: bool) -> Attendee:
        if not isinstance(attended, bool):
            raise InvalidInputError("attended must be true or false")

        attendee = self.get_attendee(attendee_id)
        sm = SessionStateMachine.from_state_string(attendee.training_session.status)
        if not sm.can_perform('set_attendance'):
            raise InvalidStateError(
                f"cannot change attendance in {attendee.training_session.status} training"
            )

        attendee.attended = attended
        db.session.commit()
        return attendee
