from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from .models import Match
from .directory import PlayerDirectory
from .training_registry import load_session
from shared.state_machine import MatchStatus

ZERO = Decimal('0.00')

# Matches that count as having played in the session.
BILLABLE_MATCH_STATES = (MatchStatus.PLAYING.value, MatchStatus.COMPLETED.value)


@dataclass(frozen=True)
class PlayerCost:
    attendee_id: str
    player_id: Optional[str]
    guest_name: Optional[str]
    player_name: Optional[str]
    total_cost: Decimal
    games_played: int

    @property
    def is_guest(self) -> bool:
        return self.guest_name is not None

    def to_dict(self) -> dict:
        return {
            'attendee_id': self.attendee_id,
            'player_id': self.player_id,
            'player_name': self.player_name,
            'guest_name': self.guest_name,
            'is_guest': self.is_guest,
            'total_cost': f"{self.total_cost:.2f}",
            'games_played': self.games_played,
        }


@dataclass(frozen=True)
class TrainingCosts:
    training_session_id: str
    cost_per_player: Decimal
    player_costs: List[PlayerCost] = field(default_factory=list)

    @property
    def total_collected(self) -> Decimal:
        return sum((pc.total_cost for pc in self.player_costs), ZERO)

    def to_dict(self) -> dict:
        return {
            'training_session_id': self.training_session_id,
            'cost_per_player': f"{self.cost_per_player:.2f}",
            'player_costs': [pc.to_dict() for pc in self.player_costs],
            'total_collected': f"{self.total_collected:.2f}",
        }


class CostAllocator:
    """
    Charges each attending attendee the session rate if they took part in
    at least one playing or completed match, and nothing otherwise.
    """

    def __init__(self, players: PlayerDirectory = None):
        self.players = players or PlayerDirectory()

    def compute_costs(self, session_id: str) -> TrainingCosts:
        session = load_session(session_id)
        rate = Decimal(session.cost_per_player)

        billable = Match.query.filter(
            Match.training_session_id == session.id,
            Match.status.in_(BILLABLE_MATCH_STATES)
        ).order_by(Match.id).all()

        player_costs = []
        for attendee in session.attendees:
            if not attendee.attended:
                continue

            participant = attendee.participant
            games_played = sum(1 for m in billable if m.has_participant(participant))

            player_costs.append(PlayerCost(
                attendee_id=attendee.attendee_id,
                player_id=attendee.player_id,
                guest_name=attendee.guest_name,
                player_name=self.players.display_name(attendee.player_id) if attendee.player_id else None,
                total_cost=rate if games_played else ZERO,
                games_played=games_played
            ))

        return TrainingCosts(
            training_session_id=session_id,
            cost_per_player=rate,
            player_costs=player_costs
        )
