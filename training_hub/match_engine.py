import logging
from itertools import combinations
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .models import db, Attendee, Match, utcnow
from .directory import GameModeCatalog, PlayerDirectory
from .training_registry import load_session
from shared.errors import (
    ConflictError, InvalidInputError, InvalidStateError, NotFoundError, TrainingError
)
from shared.events import match_result_event, matches_generated_event
from shared.participants import Participant, PlayerSlot
from shared.pubsub import EventPublisher
from shared.state_machine import MatchStatus, SessionStateMachine, Winner, parse_enum

logger = logging.getLogger(__name__)

LOCKED_MATCH_STATES = (MatchStatus.PLAYING, MatchStatus.COMPLETED)


def derive_winner(player1_score: int, player2_score: int) -> Winner:
    if player1_score > player2_score:
        return Winner.PLAYER1
    if player2_score > player1_score:
        return Winner.PLAYER2
    return Winner.DRAW


def _parse_score(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInputError(f"invalid {label}: {value}")
    return value


class MatchEngine:
    """Matches of one training session: round-robin generation and scoring."""

    def __init__(
        self,
        session_id: str,
        publisher: EventPublisher = None,
        players: PlayerDirectory = None,
        game_modes: GameModeCatalog = None
    ):
        self.session_id = session_id
        self.publisher = publisher or EventPublisher()
        self.players = players or PlayerDirectory()
        self.game_modes = game_modes or GameModeCatalog()
        self.t_record = load_session(session_id)
        self.db_id = self.t_record.id

    @classmethod
    def for_match(cls, match_id: str, **kwargs) -> "MatchEngine":
        match = Match.query.filter_by(match_id=match_id).first()
        if not match:
            raise NotFoundError("Match", match_id)
        return cls(match.training_session.session_id, **kwargs)

    def get_matches(self) -> List[Match]:
        return Match.query.filter_by(training_session_id=self.db_id).order_by(Match.id).all()

    def get_match(self, match_id: str) -> Match:
        match = Match.query.filter_by(training_session_id=self.db_id, match_id=match_id).first()
        if not match:
            raise NotFoundError("Match", match_id)
        return match

    def generate_matches(self, game_mode_id: str) -> List[Match]:
        """
        Pair every attending attendee with every other one exactly once.

        Runs as one transaction holding a row lock on the session, and refuses
        to run when the session already has matches.

        Returns:
            The created matches in creation order, n*(n-1)/2 for n attendees.
        """
        try:
            session = load_session(self.session_id, for_update=True)
            sm = SessionStateMachine.from_state_string(session.status)
            if not sm.can_perform('generate_matches'):
                raise InvalidStateError("can only generate games for planned training sessions")

            self.game_modes.require_game_mode(game_mode_id)

            if Match.query.filter_by(training_session_id=self.db_id).count() > 0:
                raise ConflictError("games have already been generated for this training session")

            attending = Attendee.query.filter_by(
                training_session_id=self.db_id,
                attended=True
            ).order_by(Attendee.id).all()

            if len(attending) < 2:
                raise InvalidInputError("need at least 2 attending players to generate games")

            matches_created = []
            for first, second in combinations(attending, 2):
                match = Match(
                    training_session_id=self.db_id,
                    game_mode_id=game_mode_id,
                    player1_score=0,
                    player2_score=0,
                    status=MatchStatus.PENDING.value,
                    winner=None
                )
                match.participant1 = first.participant
                match.participant2 = second.participant
                db.session.add(match)
                matches_created.append(match)

            db.session.commit()
        except (TrainingError, SQLAlchemyError):
            db.session.rollback()
            raise

        logger.info(
            f"Generated {len(matches_created)} matches for training session {self.session_id} "
            f"from {len(attending)} attendees"
        )
        self.publisher.publish_session_event(
            matches_generated_event(self.session_id, game_mode_id, len(matches_created))
        )
        return matches_created

    def create_match(
        self,
        game_mode_id: str,
        participant1: Optional[Participant],
        participant2: Optional[Participant]
    ) -> Match:
        """Create a single pending match in an active session."""
        sm = SessionStateMachine.from_state_string(self.t_record.status)
        if not sm.can_perform('create_match'):
            raise InvalidStateError("cannot create games for training session that is not active")

        self.game_modes.require_game_mode(game_mode_id)

        for participant in (participant1, participant2):
            if isinstance(participant, PlayerSlot):
                self.players.require_player(participant.player_id)

        if participant1 is None or participant2 is None:
            raise InvalidInputError("exactly two players are required for each game")
        if participant1 == participant2:
            raise InvalidInputError("a participant cannot play against themselves")

        match = Match(
            training_session_id=self.db_id,
            game_mode_id=game_mode_id,
            player1_score=0,
            player2_score=0,
            status=MatchStatus.PENDING.value
        )
        match.participant1 = participant1
        match.participant2 = participant2
        db.session.add(match)
        db.session.commit()

        logger.info(f"Created match {match.match_id} in training session {self.session_id}")
        return match

    def update_match(
        self,
        match_id: str,
        player1_score: int = None,
        player2_score: int = None,
        status: str = None,
        winner: str = None
    ) -> Match:
        """
        Apply the supplied fields to a match.

        A match whose resulting status is completed gets ``completed_at``
        stamped once, and its winner derived from the scores unless one was
        given in this call.
        """
        match = self.get_match(match_id)

        new_status = parse_enum(MatchStatus, status, "status") if status is not None else None
        new_winner = parse_enum(Winner, winner, "winner") if winner is not None else None
        if player1_score is not None:
            player1_score = _parse_score(player1_score, "player1_score")
        if player2_score is not None:
            player2_score = _parse_score(player2_score, "player2_score")

        if player1_score is not None:
            match.player1_score = player1_score
        if player2_score is not None:
            match.player2_score = player2_score
        if new_status is not None:
            match.status = new_status.value
        if new_winner is not None:
            match.winner = new_winner.value

        if match.status == MatchStatus.COMPLETED.value:
            if match.completed_at is None:
                match.completed_at = utcnow()
            if new_winner is None:
                match.winner = derive_winner(match.player1_score, match.player2_score).value

        db.session.commit()

        if match.status == MatchStatus.COMPLETED.value:
            logger.info(
                f"Match {match_id} completed {match.player1_score}-{match.player2_score}, winner {match.winner}"
            )
            self.publisher.publish_session_event(
                match_result_event(
                    self.session_id, match_id, match.winner, match.player1_score, match.player2_score
                )
            )
        return match

    def delete_match(self, match_id: str) -> None:
        match = self.get_match(match_id)

        if MatchStatus(match.status) in LOCKED_MATCH_STATES:
            raise ConflictError("cannot delete game that is in progress or completed")

        db.session.delete(match)
        db.session.commit()
        logger.info(f"Deleted match {match_id} from training session {self.session_id}")
