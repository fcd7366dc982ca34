from enum import Enum
from typing import List
from dataclasses import dataclass

from shared.errors import InvalidInputError, InvalidStateError


class SessionState(str, Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MatchStatus(str, Enum):
    PENDING = "pending"
    PLAYING = "playing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Winner(str, Enum):
    PLAYER1 = "player1"
    PLAYER2 = "player2"
    DRAW = "draw"


def parse_enum(enum_cls, value: str, label: str):
    """Parse ``value`` into ``enum_cls`` or raise InvalidInputError."""
    try:
        return enum_cls(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"invalid {label}: {value}")


class TransitionError(InvalidStateError):
    def __init__(self, from_state: str, to_state: str, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(reason or f"Cannot transition from {from_state} to {to_state}")


@dataclass
class Transition:
    from_state: SessionState
    to_state: SessionState
    action: str


class SessionStateMachine:
    TRANSITIONS = [
        Transition(SessionState.PLANNED, SessionState.ACTIVE, "start"),
        Transition(SessionState.ACTIVE, SessionState.COMPLETED, "finish"),
        Transition(SessionState.PLANNED, SessionState.CANCELLED, "cancel"),
        Transition(SessionState.ACTIVE, SessionState.CANCELLED, "cancel"),
    ]

    ALLOWED_ACTIONS = {
        SessionState.PLANNED: [
            "start", "cancel", "delete", "add_guest", "remove_attendee",
            "set_attendance", "generate_matches",
        ],
        SessionState.ACTIVE: [
            "finish", "cancel", "add_guest", "set_attendance", "create_match",
        ],
        SessionState.COMPLETED: [],
        SessionState.CANCELLED: ["delete"],
    }

    def __init__(self, initial_state: SessionState = SessionState.PLANNED):
        self._state = initial_state

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def allowed_actions(self) -> List[str]:
        return self.ALLOWED_ACTIONS.get(self._state, [])

    def can_transition(self, action: str) -> bool:
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                return True
        return False

    def can_perform(self, action: str) -> bool:
        return action in self.allowed_actions

    def transition(self, action: str) -> SessionState:
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                return self._apply(t)

        raise TransitionError(
            self._state.value,
            "unknown",
            f"No valid transition for action '{action}' from state '{self._state.value}'"
        )

    def transition_to(self, target: SessionState) -> SessionState:
        """Move to ``target`` through whichever table edge leads there.

        Staying in the current state is a no-op.
        """
        if target == self._state:
            return self._state

        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.to_state == target:
                return self._apply(t)

        raise TransitionError(self._state.value, target.value)

    def _apply(self, t: Transition) -> SessionState:
        self._state = t.to_state
        return self._state

    @classmethod
    def from_state_string(cls, state_str: str) -> "SessionStateMachine":
        return cls(initial_state=parse_enum(SessionState, state_str, "status"))
