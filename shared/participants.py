"""Participant identity for attendees and match slots.

A participant is either a registered player or a named guest. Storage keeps
two nullable columns; code outside the models only sees these variants.
"""
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from shared.errors import InvalidInputError


@dataclass(frozen=True)
class PlayerSlot:
    player_id: str

    @property
    def is_guest(self) -> bool:
        return False

    def to_fields(self) -> Tuple[Optional[str], Optional[str]]:
        return (self.player_id, None)


@dataclass(frozen=True)
class GuestSlot:
    name: str

    @property
    def is_guest(self) -> bool:
        return True

    def to_fields(self) -> Tuple[Optional[str], Optional[str]]:
        return (None, self.name)


Participant = Union[PlayerSlot, GuestSlot]


def participant_from_fields(player_id: Optional[str], guest_name: Optional[str]) -> Participant:
    """Build a participant from the (player_id, guest_name) column pair.

    Raises:
        InvalidInputError: if both or neither are set.
    """
    if guest_name is not None:
        guest_name = str(guest_name).strip() or None

    if player_id and guest_name:
        raise InvalidInputError("A participant is either a player or a guest, not both")
    if player_id:
        return PlayerSlot(player_id=str(player_id))
    if guest_name:
        return GuestSlot(name=guest_name)
    raise InvalidInputError("A participant needs a player_id or a guest_name")
