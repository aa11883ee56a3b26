"""
Room HTTP endpoints.

Every body carries the operation result (``ok`` plus ``error``/``category``/
``message`` on rejection) and, for room operations, the room snapshot. The
timer only moves when somebody polls ``/state``.
"""
from flask import Blueprint, abort, current_app, jsonify, request

from draftroom.services.draft import engine
from draftroom.services.draft.results import ErrorCategory, ErrorKind, Result
from draftroom.services.draft.scoring import Ballot, ballot_identity
from draftroom.services.draft.snapshot import Character

rooms = Blueprint('rooms', __name__)

_STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.AUTHORIZATION: 403,
    ErrorCategory.STATE_CONFLICT: 409,
    ErrorCategory.DUPLICATE_SUBMISSION: 409,
}


def _store():
    return current_app.extensions['room_store']


def _body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _text(data, key):
    # Non-string fields read as missing
    value = data.get(key)
    return value if isinstance(value, str) else None


def _require_room(room_id):
    if not _store().exists(room_id):
        abort(404)


def _reject(room_id, op, result):
    current_app.logger.info(f"[reject] room={room_id} op={op} error={result.error.value}")
    return jsonify(result.to_dict()), _STATUS_BY_CATEGORY[result.error.category]


def _respond(room_id, op, room, result, status=200):
    if not result.ok:
        return _reject(room_id, op, result)
    payload = result.to_dict()
    payload['room'] = room.to_dict()
    return jsonify(payload), status


def _run(room_id, op, fn):
    _require_room(room_id)
    room, result = _store().with_room(room_id, fn)
    return _respond(room_id, op, room, result)


def _client_ip():
    forwarded = request.headers.get('X-Forwarded-For') or request.headers.get('X-Real-IP')
    if forwarded:
        return forwarded.split(',')[0].strip() or 'unknown'
    cf_ip = request.headers.get('CF-Connecting-IP')
    if cf_ip:
        return cf_ip.strip()
    return request.remote_addr or 'unknown'


def _identity():
    return ballot_identity(
        _client_ip(),
        request.headers.get('User-Agent', ''),
        request.headers.get('Accept-Language', ''),
        request.headers.get('X-Forwarded-Host', ''),
    )


@rooms.route('', methods=['GET'])
def list_rooms():
    status = request.args.get('status') or None
    if status not in (None, 'active', 'completed'):
        return jsonify({'ok': False, 'error': 'InvalidStatus', 'category': 'validation',
                        'message': 'status must be active or completed'}), 400
    return jsonify({'ok': True, 'rooms': _store().list_rooms(status)})


@rooms.route('', methods=['POST'])
def create_room():
    """Create an empty room. The manage key is only ever returned here."""
    data = _body()
    room_id, room, manage_key = _store().create_room(_text(data, 'host_name'))
    return jsonify({'ok': True, 'id': room_id, 'manage_key': manage_key, 'room': room.to_dict()}), 201


@rooms.route('/<string:room_id>', methods=['DELETE'])
def delete_room(room_id):
    data = _body()
    manage_key = _text(data, 'manage_key') or request.headers.get('X-Manage-Key')
    _require_room(room_id)
    if not _store().authorize_delete(room_id, manage_key):
        return _reject(room_id, 'delete', Result.failure(ErrorKind.NOT_AUTHORIZED))
    _store().delete_room(room_id)
    return jsonify({'ok': True})


@rooms.route('/<string:room_id>/state', methods=['GET'])
def get_state(room_id):
    # Polling is what advances the clock
    return _run(room_id, 'tick', engine.tick)


@rooms.route('/<string:room_id>/join', methods=['POST'])
def join_room(room_id):
    data = _body()
    name = _text(data, 'name')
    return _run(room_id, 'join', lambda room: engine.join(room, name))


@rooms.route('/<string:room_id>/category', methods=['POST'])
def set_category(room_id):
    data = _body()
    me_name, mode = _text(data, 'me_name'), _text(data, 'mode')
    return _run(room_id, 'category', lambda room: engine.set_category_mode(room, me_name, mode))


@rooms.route('/<string:room_id>/start', methods=['POST'])
def start_draft(room_id):
    data = _body()
    me_name = _text(data, 'me_name')
    return _run(room_id, 'start', lambda room: engine.start(room, me_name))


@rooms.route('/<string:room_id>/pick', methods=['POST'])
def pick(room_id):
    _require_room(room_id)
    data = _body()
    acting_name = _text(data, 'acting_name')
    slot_name = _text(data, 'slot_name')
    try:
        character = Character.from_dict(data.get('character'))
    except ValueError as exc:
        return _reject(room_id, 'pick', Result.failure(ErrorKind.INVALID_CHARACTER, str(exc)))
    current_app.logger.info(f"[pick] room={room_id} player={acting_name} slot={slot_name} character={character.id}")
    return _run(room_id, 'pick', lambda room: engine.pick(room, acting_name, slot_name, character))


@rooms.route('/<string:room_id>/undo', methods=['POST'])
def undo(room_id):
    data = _body()
    me_name = _text(data, 'me_name')
    return _run(room_id, 'undo', lambda room: engine.undo(room, me_name))


@rooms.route('/<string:room_id>/pause', methods=['POST'])
def toggle_pause(room_id):
    data = _body()
    me_name = _text(data, 'me_name')
    return _run(room_id, 'pause', lambda room: engine.toggle_pause(room, me_name))


@rooms.route('/<string:room_id>/finish', methods=['POST'])
def finish_draft(room_id):
    data = _body()
    me_name = _text(data, 'me_name')
    return _run(room_id, 'finish', lambda room: engine.finish_draft(room, me_name))


@rooms.route('/<string:room_id>/votes', methods=['GET'])
def get_votes(room_id):
    _require_room(room_id)
    store = _store()
    summary = store.summarize_votes(room_id)
    return jsonify({
        'ok': True,
        'ballots': summary['ballots'],
        'totals': summary['totals'],
        'ranking': summary['ranking'],
        'records': [r.to_dict() for r in store.get_votes_state(room_id)],
        'already_voted': store.has_voted(room_id, _identity()),
    })


@rooms.route('/<string:room_id>/votes', methods=['POST'])
def cast_vote(room_id):
    _require_room(room_id)
    ballot = Ballot.from_dict(_body())
    result = _store().record_vote(room_id, ballot, _identity())
    if not result.ok:
        return _reject(room_id, 'vote', result)
    return jsonify(result.to_dict()), 201
