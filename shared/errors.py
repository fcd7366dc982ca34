"""Error kinds raised by the training services.

The transport layer maps ``ErrorKind`` to status codes; services never
inspect message text.
"""
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"


class TrainingError(Exception):
    """Base error with a kind and a user-safe message."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {'error': self.message, 'kind': self.kind.value}


class NotFoundError(TrainingError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: str = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class InvalidStateError(TrainingError):
    kind = ErrorKind.INVALID_STATE


class InvalidInputError(TrainingError):
    kind = ErrorKind.INVALID_INPUT


class ConflictError(TrainingError):
    kind = ErrorKind.CONFLICT
