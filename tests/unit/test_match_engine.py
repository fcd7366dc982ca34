"""
Unit tests for MatchEngine class.
Tests: generate_matches, create_match, update_match, delete_match
"""
from datetime import datetime
from itertools import combinations

import pytest
from sqlalchemy import text

from shared.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from shared.events import Event, EventType
from shared.participants import GuestSlot, PlayerSlot
from training_hub.match_engine import MatchEngine, derive_winner
from training_hub.models import Match
from shared.state_machine import Winner


@pytest.fixture
def engine(planned_session):
    return MatchEngine(planned_session.session_id)


class TestDeriveWinner:

    def test_player1(self):
        assert derive_winner(10, 5) == Winner.PLAYER1

    def test_player2(self):
        assert derive_winner(2, 3) == Winner.PLAYER2

    def test_draw(self):
        assert derive_winner(5, 5) == Winner.DRAW


class TestEngineInit:

    def test_unknown_session(self, db_session):
        with pytest.raises(NotFoundError):
            MatchEngine("missing")

    def test_for_match(self, db_session, engine, game_mode, planned_session):
        match = engine.generate_matches(game_mode.game_mode_id)[0]
        other = MatchEngine.for_match(match.match_id)
        assert other.session_id == planned_session.session_id

    def test_for_unknown_match(self, db_session):
        with pytest.raises(NotFoundError):
            MatchEngine.for_match("missing")


class TestGenerateMatches:
    """Tests for round-robin generation."""

    def test_three_players(self, db_session, engine, game_mode):
        matches = engine.generate_matches(game_mode.game_mode_id)
        assert len(matches) == 3

    @pytest.mark.parametrize("guests", [0, 1, 3])
    def test_match_count(self, db_session, roster, planned_session, game_mode, guests):
        """n attendees give n*(n-1)/2 matches."""
        for i in range(guests):
            roster.add_guest(planned_session.session_id, f"Guest {i}")
        n = 3 + guests

        matches = MatchEngine(planned_session.session_id).generate_matches(game_mode.game_mode_id)

        assert len(matches) == n * (n - 1) // 2

    def test_every_pair_exactly_once(self, db_session, roster, planned_session, game_mode):
        roster.add_guest(planned_session.session_id, "Dave")
        attendees = roster.list_attendees(planned_session.session_id)

        matches = MatchEngine(planned_session.session_id).generate_matches(game_mode.game_mode_id)

        pairs = [frozenset((m.participant1, m.participant2)) for m in matches]
        expected = {frozenset((a.participant, b.participant)) for a, b in combinations(attendees, 2)}
        assert len(pairs) == len(set(pairs))
        assert set(pairs) == expected
        assert GuestSlot("Dave") in {p for pair in pairs for p in pair}

    def test_generated_match_defaults(self, db_session, engine, game_mode):
        for match in engine.generate_matches(game_mode.game_mode_id):
            assert match.status == "pending"
            assert match.player1_score == 0
            assert match.player2_score == 0
            assert match.winner is None
            assert match.game_mode_id == game_mode.game_mode_id
            assert match.participant1 != match.participant2

    def test_absent_attendees_skipped(self, db_session, roster, planned_session, engine, game_mode):
        absent = roster.list_attendees(planned_session.session_id)[2]
        roster.set_attendance(absent.attendee_id, False)

        matches = engine.generate_matches(game_mode.game_mode_id)

        assert len(matches) == 1
        assert not matches[0].has_participant(absent.participant)

    def test_one_attending(self, db_session, roster, planned_session, engine, game_mode):
        for attendee in roster.list_attendees(planned_session.session_id)[1:]:
            roster.set_attendance(attendee.attendee_id, False)

        with pytest.raises(InvalidInputError) as exc:
            engine.generate_matches(game_mode.game_mode_id)
        assert str(exc.value) == "need at least 2 attending players to generate games"

    def test_no_attendees(self, db_session, registry, game_mode):
        session = registry.create_session(name="Empty", training_date=datetime(2026, 11, 10, 19, 0))
        with pytest.raises(InvalidInputError):
            MatchEngine(session.session_id).generate_matches(game_mode.game_mode_id)

    def test_active_session(self, db_session, active_session, game_mode):
        with pytest.raises(InvalidStateError):
            MatchEngine(active_session.session_id).generate_matches(game_mode.game_mode_id)

    def test_session_started_after_engine_loaded(self, db_session, engine, planned_session, game_mode):
        """Generation checks the status of the locked row, not the one loaded earlier."""
        db_session.execute(
            text("UPDATE training_sessions SET status = 'active' WHERE session_id = :sid"),
            {"sid": planned_session.session_id}
        )

        with pytest.raises(InvalidStateError):
            engine.generate_matches(game_mode.game_mode_id)
        assert engine.get_matches() == []

    def test_unknown_game_mode(self, db_session, engine):
        with pytest.raises(NotFoundError):
            engine.generate_matches("missing")
        assert engine.get_matches() == []

    def test_non_string_game_mode(self, db_session, engine):
        with pytest.raises(InvalidInputError):
            engine.generate_matches(None)

    def test_second_generation_conflicts(self, db_session, engine, game_mode):
        engine.generate_matches(game_mode.game_mode_id)
        with pytest.raises(ConflictError):
            engine.generate_matches(game_mode.game_mode_id)
        assert len(engine.get_matches()) == 3

    def test_publishes_event(self, db_session, mock_publisher, mock_redis, planned_session, game_mode):
        MatchEngine(planned_session.session_id, publisher=mock_publisher).generate_matches(game_mode.game_mode_id)

        event = Event.from_json(mock_redis.publish.call_args.args[1])
        assert event.type == EventType.MATCHES_GENERATED
        assert event.data["matches_count"] == 3


class TestCreateMatch:

    def test_create_between_players(self, db_session, active_session, sample_players, game_mode):
        engine = MatchEngine(active_session.session_id)
        match = engine.create_match(
            game_mode.game_mode_id,
            PlayerSlot(sample_players[0].player_id),
            PlayerSlot(sample_players[1].player_id)
        )

        assert match.status == "pending"
        assert match.player1_id == sample_players[0].player_id
        assert match.to_dict()["player2_name"] == "Bully"

    def test_create_with_guest(self, db_session, active_session, sample_players, game_mode):
        engine = MatchEngine(active_session.session_id)
        match = engine.create_match(game_mode.game_mode_id, GuestSlot("Dave"), PlayerSlot(sample_players[2].player_id))

        assert match.guest1_name == "Dave"
        assert match.player1_id is None

    def test_planned_session(self, db_session, engine, sample_players, game_mode):
        with pytest.raises(InvalidStateError):
            engine.create_match(
                game_mode.game_mode_id,
                PlayerSlot(sample_players[0].player_id),
                PlayerSlot(sample_players[1].player_id)
            )

    def test_missing_participant(self, db_session, active_session, sample_players, game_mode):
        engine = MatchEngine(active_session.session_id)
        with pytest.raises(InvalidInputError) as exc:
            engine.create_match(game_mode.game_mode_id, PlayerSlot(sample_players[0].player_id), None)
        assert str(exc.value) == "exactly two players are required for each game"

    def test_same_participant_twice(self, db_session, active_session, sample_players, game_mode):
        engine = MatchEngine(active_session.session_id)
        slot = PlayerSlot(sample_players[0].player_id)
        with pytest.raises(InvalidInputError):
            engine.create_match(game_mode.game_mode_id, slot, slot)

    def test_unknown_player(self, db_session, active_session, game_mode):
        engine = MatchEngine(active_session.session_id)
        with pytest.raises(NotFoundError):
            engine.create_match(game_mode.game_mode_id, PlayerSlot("ghost"), GuestSlot("Dave"))

    def test_unknown_game_mode(self, db_session, active_session):
        engine = MatchEngine(active_session.session_id)
        with pytest.raises(NotFoundError):
            engine.create_match("missing", GuestSlot("Dave"), GuestSlot("Erin"))


class TestUpdateMatch:
    """Tests for scoring and completion."""

    @pytest.fixture
    def match(self, engine, game_mode):
        return engine.generate_matches(game_mode.game_mode_id)[0]

    def test_update_scores_only(self, db_session, engine, match):
        updated = engine.update_match(match.match_id, player1_score=3, player2_score=1)

        assert updated.player1_score == 3
        assert updated.player2_score == 1
        assert updated.status == "pending"
        assert updated.winner is None
        assert updated.completed_at is None

    def test_complete_derives_player1(self, db_session, engine, match):
        updated = engine.update_match(match.match_id, player1_score=10, player2_score=5, status="completed")

        assert updated.winner == "player1"
        assert updated.completed_at is not None

    def test_complete_derives_draw(self, db_session, engine, match):
        updated = engine.update_match(match.match_id, player1_score=5, player2_score=5, status="completed")
        assert updated.winner == "draw"

    def test_explicit_winner_kept(self, db_session, engine, match):
        updated = engine.update_match(
            match.match_id, player1_score=1, player2_score=4, status="completed", winner="player1"
        )
        assert updated.winner == "player1"

    def test_score_change_after_completion_rederives(self, db_session, engine, match):
        """Updating scores of a completed match recomputes the winner."""
        engine.update_match(match.match_id, player1_score=10, player2_score=5, status="completed")
        updated = engine.update_match(match.match_id, player2_score=12)
        assert updated.winner == "player2"

    def test_completed_at_set_once(self, db_session, engine, match):
        first = engine.update_match(match.match_id, player1_score=1, status="completed").completed_at
        second = engine.update_match(match.match_id, player1_score=2, status="completed").completed_at
        assert second == first

    def test_playing_has_no_winner(self, db_session, engine, match):
        updated = engine.update_match(match.match_id, status="playing")
        assert updated.status == "playing"
        assert updated.winner is None

    def test_invalid_status(self, db_session, engine, match):
        with pytest.raises(InvalidInputError):
            engine.update_match(match.match_id, status="finished")

    def test_invalid_winner(self, db_session, engine, match):
        with pytest.raises(InvalidInputError):
            engine.update_match(match.match_id, winner="nobody")

    @pytest.mark.parametrize("score", [-1, "3", 2.5, True])
    def test_invalid_score(self, db_session, engine, match, score):
        with pytest.raises(InvalidInputError):
            engine.update_match(match.match_id, player1_score=score)

    def test_rejected_update_changes_nothing(self, db_session, engine, match):
        with pytest.raises(InvalidInputError):
            engine.update_match(match.match_id, player1_score=7, status="finished")
        assert engine.get_match(match.match_id).player1_score == 0

    def test_unknown_match(self, db_session, engine):
        with pytest.raises(NotFoundError):
            engine.update_match("missing", player1_score=1)

    def test_result_published(self, db_session, mock_publisher, mock_redis, planned_session, game_mode):
        engine = MatchEngine(planned_session.session_id, publisher=mock_publisher)
        match = engine.generate_matches(game_mode.game_mode_id)[0]

        engine.update_match(match.match_id, player1_score=2, player2_score=3, status="completed")

        event = Event.from_json(mock_redis.publish.call_args.args[1])
        assert event.type == EventType.MATCH_RESULT
        assert event.data["winner"] == "player2"


class TestDeleteMatch:

    @pytest.fixture
    def match(self, engine, game_mode):
        return engine.generate_matches(game_mode.game_mode_id)[0]

    def test_delete_pending(self, db_session, engine, match):
        match_id = match.match_id
        engine.delete_match(match_id)
        assert Match.query.filter_by(match_id=match_id).first() is None

    def test_delete_cancelled(self, db_session, engine, match):
        engine.update_match(match.match_id, status="cancelled")
        engine.delete_match(match.match_id)
        assert len(engine.get_matches()) == 2

    @pytest.mark.parametrize("status", ["playing", "completed"])
    def test_delete_locked(self, db_session, engine, match, status):
        engine.update_match(match.match_id, status=status)
        with pytest.raises(ConflictError):
            engine.delete_match(match.match_id)
