from flask import current_app, request
from flask_socketio import join_room, leave_room, emit
from hitman.errors import GameError
from hitman.services.games import authenticate
from hitman.services.games.changes import get_change_tracker, get_presence
from hitman.services.games.codes import normalise_game_code


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    ctx = get_presence().disconnect(_get_sid())
    if ctx:
        current_app.logger.info(f"[ws] game={ctx['game_code']} player={ctx['player_id']} disconnected")


def handle_subscribe(data):
    """Join a game's room; with an auth token, also receive per-player pushes."""
    game_code = normalise_game_code((data or {}).get('game_code'))
    auth_token = (data or {}).get('auth_token')
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    player_id = None
    if auth_token:
        try:
            player_id = authenticate(game_code, auth_token)
        except GameError as exc:
            emit('error', {'message': 'Could not authenticate', 'reason': exc.reason})
            return
    room = f"game:{game_code}"
    join_room(room)
    get_presence().connect(_get_sid(), game_code, player_id)
    emit('subscribed', {
        'room': room,
        'player_id': player_id,
        'version': get_change_tracker().version(game_code),
    })


def handle_unsubscribe(data):
    game_code = normalise_game_code((data or {}).get('game_code'))
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = f"game:{game_code}"
    leave_room(room)
    get_presence().disconnect(_get_sid())
    emit('unsubscribed', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from hitman import socketio

    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('subscribe', handle_subscribe, namespace=namespace)
        socketio.on_event('unsubscribe', handle_unsubscribe, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
