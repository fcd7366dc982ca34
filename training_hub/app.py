import os
from datetime import datetime, timezone

from flask import Flask, request, jsonify
from sqlalchemy import text

from .config import config
from .models import db
from .directory import PlayerDirectory, GameModeCatalog
from .training_registry import TrainingRegistry
from .roster import RosterManager
from .cost_allocator import CostAllocator
from shared.errors import ErrorKind, InvalidInputError, TrainingError
from shared.pubsub import EventPublisher

STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 400,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.CONFLICT: 409,
}


def create_app(config_name: str = None) -> Flask:
    """Application factory for the training service."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config['default']))

    # Initialize extensions
    db.init_app(app)

    # Initialize services
    publisher = EventPublisher.from_url(app.config.get('REDIS_URL'))
    players = PlayerDirectory()
    game_modes = GameModeCatalog()

    # Create tables
    with app.app_context():
        db.create_all()

    # Store services on app for access in routes
    app.publisher = publisher
    app.players = players
    app.game_modes = game_modes
    app.registry = TrainingRegistry(publisher=publisher, players=players)
    app.roster = RosterManager(publisher=publisher)
    app.costs = CostAllocator(players=players)

    register_error_handlers(app)
    register_api_routes(app)

    from .routes import play
    app.register_blueprint(play.bp)

    return app


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_datetime(value, field: str):
    """Parse an ISO-8601 string into a naive UTC datetime; None passes through."""
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise InvalidInputError(f"invalid {field}: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def register_error_handlers(app: Flask):

    @app.errorhandler(TrainingError)
    def handle_training_error(error: TrainingError):
        return jsonify(error.to_dict()), STATUS_CODES[error.kind]


def register_api_routes(app: Flask):
    """Register API routes."""

    # ==================== Players & Game Modes ====================

    @app.route('/api/v1/players', methods=['GET'])
    def api_list_players():
        players = app.players.list_players()
        return jsonify({
            'players': [p.to_dict() for p in players],
            'count': len(players)
        })

    @app.route('/api/v1/players', methods=['POST'])
    def api_create_player():
        data = json_body()
        player = app.players.create_player(
            name=data.get('name'),
            email=data.get('email'),
            nickname=data.get('nickname')
        )
        return jsonify(player.to_dict()), 201

    @app.route('/api/v1/game-modes', methods=['GET'])
    def api_list_game_modes():
        modes = app.game_modes.list_game_modes()
        return jsonify({
            'game_modes': [m.to_dict() for m in modes],
            'count': len(modes)
        })

    # ==================== Training Session CRUD ====================

    @app.route('/api/v1/trainings', methods=['GET'])
    def api_list_trainings():
        """List training sessions with optional status filtering."""
        status = request.args.get('status')
        limit = request.args.get('limit', 50, type=int)
        offset = request.args.get('offset', 0, type=int)

        sessions = app.registry.list_sessions(status=status, limit=limit, offset=offset)

        return jsonify({
            'trainings': [s.to_dict() for s in sessions],
            'count': len(sessions),
            'limit': limit,
            'offset': offset
        })

    @app.route('/api/v1/trainings', methods=['POST'])
    def api_create_training():
        data = json_body()

        training_date = parse_datetime(data.get('training_date'), 'training_date')
        if training_date is None:
            raise InvalidInputError('training_date is required')

        session = app.registry.create_session(
            name=data.get('name'),
            training_date=training_date,
            description=data.get('description'),
            cost_per_player=data.get('cost_per_player'),
            created_by=data.get('created_by')
        )
        return jsonify(session.to_dict(include_children=True)), 201

    @app.route('/api/v1/trainings/<session_id>', methods=['GET'])
    def api_get_training(session_id: str):
        session = app.registry.get_session(session_id)
        return jsonify(session.to_dict(include_children=True))

    @app.route('/api/v1/trainings/<session_id>', methods=['PUT'])
    def api_update_training(session_id: str):
        data = json_body()
        session = app.registry.update_session(
            session_id,
            name=data.get('name'),
            description=data.get('description'),
            training_date=parse_datetime(data.get('training_date'), 'training_date'),
            cost_per_player=data.get('cost_per_player'),
            status=data.get('status')
        )
        return jsonify(session.to_dict(include_children=True))

    @app.route('/api/v1/trainings/<session_id>', methods=['DELETE'])
    def api_delete_training(session_id: str):
        app.registry.delete_session(session_id)
        return jsonify({'message': 'Training session deleted successfully'})

    # ==================== Training Session Lifecycle ====================

    @app.route('/api/v1/trainings/<session_id>/start', methods=['POST'])
    def api_start_training(session_id: str):
        session = app.registry.start_session(session_id)
        return jsonify(session.to_dict(include_children=True))

    @app.route('/api/v1/trainings/<session_id>/finish', methods=['POST'])
    def api_finish_training(session_id: str):
        session = app.registry.finish_session(session_id)
        return jsonify(session.to_dict(include_children=True))

    @app.route('/api/v1/trainings/<session_id>/cancel', methods=['POST'])
    def api_cancel_training(session_id: str):
        session = app.registry.cancel_session(session_id)
        return jsonify(session.to_dict(include_children=True))

    @app.route('/api/v1/trainings/<session_id>/force-status', methods=['POST'])
    def api_force_training_status(session_id: str):
        """Administrative override that skips the transition rules."""
        status = json_body().get('status')
        if not status:
            raise InvalidInputError('status is required')
        session = app.registry.force_status(session_id, status)
        return jsonify(session.to_dict(include_children=True))

    @app.route('/api/v1/trainings/<session_id>/costs', methods=['GET'])
    def api_training_costs(session_id: str):
        return jsonify(app.costs.compute_costs(session_id).to_dict())

    @app.route('/api/v1/trainings/<session_id>/events', methods=['GET'])
    def api_training_events(session_id: str):
        """Most recent published events for a session, newest first."""
        app.registry.get_session(session_id)
        count = request.args.get('count', 50, type=int)
        if count < 1:
            raise InvalidInputError('count must be positive')

        events = app.publisher.get_recent_events(session_id, count=count)
        return jsonify({
            'events': [e.to_dict() for e in events],
            'count': len(events)
        })

    # ==================== Health Check ====================

    @app.route('/api/v1/health')
    def health_check():
        """Health check endpoint."""
        try:
            db.session.execute(text('SELECT 1'))
            db_ok = True
        except Exception:
            db_ok = False

        redis_state = 'disabled'
        redis_ok = True
        if app.publisher.enabled:
            try:
                app.publisher.redis.ping()
                redis_state = 'connected'
            except Exception:
                redis_ok = False
                redis_state = 'disconnected'

        status = 'healthy' if (db_ok and redis_ok) else 'unhealthy'
        code = 200 if status == 'healthy' else 503

        return jsonify({
            'status': status,
            'database': 'connected' if db_ok else 'disconnected',
            'redis': redis_state
        }), code
