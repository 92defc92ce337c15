from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user
from gridlock import socketio
from gridlock.models import Match
from gridlock.services.store import (
    StoreError,
    apply_match_updates,
    claim_slot,
    create_match,
    get_match,
    query_matches,
    QUERYABLE_FIELDS,
)


matches = Blueprint('matches', __name__)


def _emit_snapshot(match: Match) -> None:
    socketio.emit('match_snapshot', match.to_dict(), to=f"match:{match.id}", namespace='/ws')


@matches.errorhandler(StoreError)
def handle_store_error(exc: StoreError):
    current_app.logger.info(f"[store-reject] code={exc.status_code} reason={exc}")
    return jsonify({'error': str(exc)}), exc.status_code


@matches.route('', methods=['POST'])
def create():
    """
    Creates a match record. Accepts a full record under 'match', otherwise
    builds a fresh waiting match seated by 'participant_id' (or the signed-in
    participant).
    """
    data = request.get_json(silent=True) or {}
    record = data.get('match')
    participant_id = data.get('participant_id')
    if not participant_id and current_user.is_authenticated:
        participant_id = current_user.id
    if record is None and not participant_id:
        return jsonify({'error': 'participant_id or match is required'}), 400

    match = create_match(record, participant_id)
    current_app.logger.info(f"[match-create] match={match.id} status={match.status} player1={match.player1.get('uid')}")
    return jsonify(match.to_dict()), 201


@matches.route('', methods=['GET'])
def query():
    """
    Equality query with a limit, e.g. ?status=waiting&limit=1.
    """
    filters = [(f, request.args[f]) for f in QUERYABLE_FIELDS if f in request.args]
    if len(filters) != 1:
        return jsonify({'error': f'exactly one of {", ".join(QUERYABLE_FIELDS)} is required'}), 400
    try:
        limit = int(request.args.get('limit', 1))
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400
    limit = max(1, min(limit, int(current_app.config.get('MATCH_QUERY_LIMIT_MAX', 20))))

    field, value = filters[0]
    found = query_matches(field, value, limit)
    return jsonify([m.to_dict() for m in found])


@matches.route('/<string:match_id>', methods=['GET'])
def read(match_id):
    return jsonify(get_match(match_id).to_dict())


@matches.route('/<string:match_id>', methods=['PATCH'])
def update(match_id):
    """
    Atomic partial update. Body: {"updates": {"player1.score": 8, ...}}.
    """
    data = request.get_json(silent=True) or {}
    updates = data.get('updates')
    match = apply_match_updates(match_id, updates)
    if 'status' in updates or 'winner' in updates:
        current_app.logger.info(
            f"[match-update] match={match.id} status={match.status} winner={match.winner}"
        )
    _emit_snapshot(match)
    return jsonify(match.to_dict())


@matches.route('/<string:match_id>/claim', methods=['POST'])
def claim(match_id):
    """
    Seats a second participant in a waiting match and starts it.
    """
    data = request.get_json(silent=True) or {}
    participant_id = data.get('participant_id')
    if not participant_id and current_user.is_authenticated:
        participant_id = current_user.id
    match = claim_slot(match_id, participant_id)
    current_app.logger.info(f"[match-claim] match={match.id} player2={participant_id}")
    _emit_snapshot(match)
    return jsonify(match.to_dict())
