from flask_socketio import join_room, leave_room, emit
from gridlock import db
from gridlock.models import Match


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_subscribe_match(data):
    match_id = (data or {}).get('match_id')
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = f"match:{match_id}"
    join_room(room)
    emit('subscribed', {'room': room})
    # Push the current snapshot so subscribers never start blind
    match = db.session.get(Match, match_id)
    if match:
        emit('match_snapshot', match.to_dict())
    else:
        emit('error', {'message': f'match {match_id} not found'})


def handle_unsubscribe_match(data):
    match_id = (data or {}).get('match_id')
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = f"match:{match_id}"
    leave_room(room)
    emit('unsubscribed', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from gridlock import socketio

    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('subscribe_match', handle_subscribe_match, namespace=namespace)
        socketio.on_event('unsubscribe_match', handle_unsubscribe_match, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
