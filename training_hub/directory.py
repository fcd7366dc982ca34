"""Read-mostly lookups the training services depend on.

``PlayerDirectory`` enumerates players for roster seeding and resolves
display names; ``GameModeCatalog`` confirms a game mode exists.
"""
import json
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from shared.errors import ConflictError, InvalidInputError, NotFoundError
from .models import db, Player, GameMode

DEFAULT_GAME_MODES = [
    {
        "name": "501 Double Out",
        "description": "Classic 501 game, must finish on a double",
        "rules": json.dumps({"startingScore": 501, "finishType": "double", "legs": 3}),
    },
    {
        "name": "Cricket",
        "description": "Standard cricket game with numbers 20-15 and bull",
        "rules": json.dumps({"numbers": [20, 19, 18, 17, 16, 15, 25], "type": "standard"}),
    },
    {
        "name": "Around the Clock",
        "description": "Hit numbers 1-20 in sequence, then bull",
        "rules": json.dumps({"sequence": True, "numbers": 20, "bull": True}),
    },
]


class PlayerDirectory:

    def list_players(self) -> List[Player]:
        """All known players in registration order."""
        return Player.query.order_by(Player.id).all()

    def get_player(self, player_id: str) -> Optional[Player]:
        return Player.query.filter_by(player_id=player_id).first()

    def require_player(self, player_id: str) -> Player:
        if not isinstance(player_id, str):
            raise InvalidInputError(f"invalid player_id: {player_id}")
        player = self.get_player(player_id)
        if not player:
            raise NotFoundError("Player", player_id)
        return player

    def display_name(self, player_id: str) -> Optional[str]:
        player = self.get_player(player_id)
        return player.display_name if player else None

    def create_player(self, name: str, email: str, nickname: str = None) -> Player:
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError("Player name is required")
        if not isinstance(email, str) or '@' not in email:
            raise InvalidInputError("A valid email is required")
        if nickname is not None and not isinstance(nickname, str):
            raise InvalidInputError("invalid nickname")

        player = Player(name=name.strip(), email=email.strip().lower(), nickname=nickname)
        db.session.add(player)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"A player with email {email} already exists")
        return player


class GameModeCatalog:

    def list_game_modes(self) -> List[GameMode]:
        return GameMode.query.filter_by(is_active=True).order_by(GameMode.id).all()

    def get_game_mode(self, game_mode_id: str) -> Optional[GameMode]:
        return GameMode.query.filter_by(game_mode_id=game_mode_id).first()

    def require_game_mode(self, game_mode_id: str) -> GameMode:
        if not isinstance(game_mode_id, str):
            raise InvalidInputError("game_mode_id is required")
        game_mode = self.get_game_mode(game_mode_id)
        if not game_mode:
            raise NotFoundError("Game mode", game_mode_id)
        return game_mode

    def seed_defaults(self) -> int:
        """Insert the default game modes into an empty catalog.

        Returns:
            The number of game modes created (0 if the catalog already had some).
        """
        if GameMode.query.count() > 0:
            return 0

        for mode in DEFAULT_GAME_MODES:
            db.session.add(GameMode(**mode))
        db.session.commit()
        return len(DEFAULT_GAME_MODES)
