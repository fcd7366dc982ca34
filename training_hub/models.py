import uuid
from datetime import datetime, timezone
from decimal import Decimal
from flask_sqlalchemy import SQLAlchemy

from shared.participants import Participant, participant_from_fields

db = SQLAlchemy()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_public_id() -> str:
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return f"{Decimal(value):.2f}" if value is not None else None


class Player(db.Model):
    __tablename__ = 'players'

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.String(36), unique=True, nullable=False, index=True, default=new_public_id)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    nickname = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def display_name(self) -> str:
        return self.nickname or self.name

    def to_dict(self):
        return {
            'id': self.player_id,
            'name': self.name,
            'email': self.email,
            'nickname': self.nickname,
            'created_at': _iso(self.created_at),
        }


class GameMode(db.Model):
    __tablename__ = 'game_modes'

    id = db.Column(db.Integer, primary_key=True)
    game_mode_id = db.Column(db.String(36), unique=True, nullable=False, index=True, default=new_public_id)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    rules = db.Column(db.Text, nullable=False, default='{}')  # JSON document
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.game_mode_id,
            'name': self.name,
            'description': self.description,
            'rules': self.rules,
            'is_active': self.is_active,
        }


class TrainingSession(db.Model):
    __tablename__ = 'training_sessions'

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(36), unique=True, nullable=False, index=True, default=new_public_id)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    training_date = db.Column(db.DateTime, nullable=False)
    cost_per_player = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('5.00'))
    status = db.Column(db.String(20), nullable=False, default='planned')  # planned, active, completed, cancelled
    created_by = db.Column(db.String(36), db.ForeignKey('players.player_id'), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)

    creator = db.relationship('Player')
    attendees = db.relationship('Attendee', back_populates='training_session', order_by='Attendee.id')
    matches = db.relationship('Match', back_populates='training_session', order_by='Match.id')

    def to_dict(self, include_children: bool = False):
        data = {
            'id': self.session_id,
            'name': self.name,
            'description': self.description,
            'training_date': _iso(self.training_date),
            'cost_per_player': _money(self.cost_per_player),
            'status': self.status,
            'created_by': self.created_by,
            'creator_name': self.creator.display_name if self.creator else None,
            'player_count': len(self.attendees),
            'game_count': len(self.matches),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if include_children:
            data['attendees'] = [a.to_dict() for a in self.attendees]
            data['matches'] = [m.to_dict() for m in self.matches]
        return data


class Attendee(db.Model):
    __tablename__ = 'attendees'

    id = db.Column(db.Integer, primary_key=True)
    attendee_id = db.Column(db.String(36), unique=True, nullable=False, index=True, default=new_public_id)
    training_session_id = db.Column(db.Integer, db.ForeignKey('training_sessions.id'), nullable=False)
    player_id = db.Column(db.String(36), db.ForeignKey('players.player_id'), nullable=True)
    guest_name = db.Column(db.String(100), nullable=True)
    attended = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    training_session = db.relationship('TrainingSession', back_populates='attendees')
    player = db.relationship('Player')

    __table_args__ = (
        db.CheckConstraint('(player_id IS NULL) <> (guest_name IS NULL)', name='attendee_player_xor_guest'),
    )

    @property
    def participant(self) -> Participant:
        return participant_from_fields(self.player_id, self.guest_name)

    @participant.setter
    def participant(self, value: Participant):
        self.player_id, self.guest_name = value.to_fields()

    @property
    def is_guest(self) -> bool:
        return self.guest_name is not None

    def to_dict(self):
        return {
            'id': self.attendee_id,
            'training_session_id': self.training_session.session_id if self.training_session else None,
            'player_id': self.player_id,
            'guest_name': self.guest_name,
            'is_guest': self.is_guest,
            'attended': self.attended,
            'player_name': self.player.display_name if self.player else None,
            'created_at': _iso(self.created_at),
        }


class Match(db.Model):
    __tablename__ = 'matches'

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.String(36), unique=True, nullable=False, index=True, default=new_public_id)
    training_session_id = db.Column(db.Integer, db.ForeignKey('training_sessions.id'), nullable=False)
    game_mode_id = db.Column(db.String(36), db.ForeignKey('game_modes.game_mode_id'), nullable=False)

    player1_id = db.Column(db.String(36), db.ForeignKey('players.player_id'), nullable=True)
    guest1_name = db.Column(db.String(100), nullable=True)
    player2_id = db.Column(db.String(36), db.ForeignKey('players.player_id'), nullable=True)
    guest2_name = db.Column(db.String(100), nullable=True)

    player1_score = db.Column(db.Integer, nullable=False, default=0)
    player2_score = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default='pending')  # pending, playing, completed, cancelled
    winner = db.Column(db.String(10), nullable=True)  # player1, player2, draw
    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    training_session = db.relationship('TrainingSession', back_populates='matches')
    game_mode = db.relationship('GameMode')
    player1 = db.relationship('Player', foreign_keys=[player1_id])
    player2 = db.relationship('Player', foreign_keys=[player2_id])

    __table_args__ = (
        db.CheckConstraint('(player1_id IS NULL) <> (guest1_name IS NULL)', name='match_slot1_player_xor_guest'),
        db.CheckConstraint('(player2_id IS NULL) <> (guest2_name IS NULL)', name='match_slot2_player_xor_guest'),
    )

    @property
    def participant1(self) -> Participant:
        return participant_from_fields(self.player1_id, self.guest1_name)

    @participant1.setter
    def participant1(self, value: Participant):
        self.player1_id, self.guest1_name = value.to_fields()

    @property
    def participant2(self) -> Participant:
        return participant_from_fields(self.player2_id, self.guest2_name)

    @participant2.setter
    def participant2(self, value: Participant):
        self.player2_id, self.guest2_name = value.to_fields()

    def has_participant(self, participant: Participant) -> bool:
        return participant in (self.participant1, self.participant2)

    def to_dict(self):
        return {
            'id': self.match_id,
            'training_session_id': self.training_session.session_id if self.training_session else None,
            'game_mode_id': self.game_mode_id,
            'game_mode_name': self.game_mode.name if self.game_mode else None,
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'guest1_name': self.guest1_name,
            'guest2_name': self.guest2_name,
            'player1_name': self.player1.display_name if self.player1 else self.guest1_name,
            'player2_name': self.player2.display_name if self.player2 else self.guest2_name,
            'player1_score': self.player1_score,
            'player2_score': self.player2_score,
            'status': self.status,
            'winner': self.winner,
            'completed_at': _iso(self.completed_at),
            'created_at': _iso(self.created_at),
        }
