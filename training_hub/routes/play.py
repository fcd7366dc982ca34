from flask import Blueprint, jsonify, current_app

from training_hub.app import json_body
from training_hub.match_engine import MatchEngine
from shared.participants import participant_from_fields

bp = Blueprint('play', __name__, url_prefix='/api/v1')


def get_match_engine(session_id):
    return MatchEngine(
        session_id,
        publisher=current_app.publisher,
        players=current_app.players,
        game_modes=current_app.game_modes
    )


def get_match_engine_for_match(match_id):
    return MatchEngine.for_match(
        match_id,
        publisher=current_app.publisher,
        players=current_app.players,
        game_modes=current_app.game_modes
    )


def participant_or_none(player_id, guest_name):
    """A slot with neither field supplied is missing rather than malformed."""
    if not player_id and not (guest_name and str(guest_name).strip()):
        return None
    return participant_from_fields(player_id, guest_name)


# --- Attendees ---

@bp.route('/trainings/<session_id>/attendees', methods=['GET'])
def list_attendees(session_id):
    attendees = current_app.roster.list_attendees(session_id)
    return jsonify({
        'attendees': [a.to_dict() for a in attendees],
        'count': len(attendees)
    })


@bp.route('/trainings/<session_id>/attendees', methods=['POST'])
def add_guest(session_id):
    attendee = current_app.roster.add_guest(session_id, json_body().get('guest_name'))
    return jsonify(attendee.to_dict()), 201


@bp.route('/trainings/attendees/<attendee_id>', methods=['PATCH'])
def set_attendance(attendee_id):
    attendee = current_app.roster.set_attendance(attendee_id, json_body().get('attended'))
    return jsonify(attendee.to_dict())


@bp.route('/trainings/attendees/<attendee_id>', methods=['DELETE'])
def remove_attendee(attendee_id):
    current_app.roster.remove_attendee(attendee_id)
    return jsonify({'message': 'Training player removed successfully'})


# --- Matches ---

@bp.route('/trainings/<session_id>/matches', methods=['GET'])
def get_matches(session_id):
    matches = get_match_engine(session_id).get_matches()
    return jsonify({
        'matches': [m.to_dict() for m in matches],
        'count': len(matches)
    })


@bp.route('/trainings/<session_id>/matches', methods=['POST'])
def create_match(session_id):
    data = json_body()
    match_engine = get_match_engine(session_id)

    match = match_engine.create_match(
        game_mode_id=data.get('game_mode_id'),
        participant1=participant_or_none(data.get('player1_id'), data.get('guest1_name')),
        participant2=participant_or_none(data.get('player2_id'), data.get('guest2_name'))
    )
    return jsonify(match.to_dict()), 201


@bp.route('/trainings/<session_id>/matches/generate', methods=['POST'])
def generate_matches(session_id):
    data = json_body()
    match_engine = get_match_engine(session_id)

    matches = match_engine.generate_matches(data.get('game_mode_id'))
    return jsonify({
        'message': f'Generated {len(matches)} games',
        'matches': [m.to_dict() for m in matches],
        'count': len(matches)
    }), 201


@bp.route('/matches/<match_id>', methods=['PUT'])
def update_match(match_id):
    data = json_body()
    match_engine = get_match_engine_for_match(match_id)

    match = match_engine.update_match(
        match_id,
        player1_score=data.get('player1_score'),
        player2_score=data.get('player2_score'),
        status=data.get('status'),
        winner=data.get('winner')
    )
    return jsonify(match.to_dict())


@bp.route('/matches/<match_id>', methods=['DELETE'])
def delete_match(match_id):
    get_match_engine_for_match(match_id).delete_match(match_id)
    return jsonify({'message': 'Game deleted successfully'})
