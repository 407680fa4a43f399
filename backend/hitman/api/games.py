from flask import Blueprint, jsonify, request, current_app
from hitman import socketio
from hitman.errors import ErrorKind, GameError
from hitman.services.games import (
    authenticate,
    check_for_changes,
    create_game,
    get_game_state,
    join_game,
    leave_game,
    list_games,
    process_kill,
    start_game,
)
from hitman.services.games.changes import get_change_tracker, get_presence
from hitman.services.games.codes import normalise_game_code


games = Blueprint('games', __name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.UNPROCESSABLE_ENTITY: 422,
    ErrorKind.INTERNAL: 500,
}

MESSAGES = {
    'game_not_found': 'Game not found.',
    'unknown_token': 'Unauthorized.',
    'malformed_token': 'Unauthorized.',
    'unknown_secret': 'Target secret does not correspond to an active player.',
    'game_not_in_lobby': 'This game has already started or finished, so new players can no longer join.',
    'name_required': 'Please enter a name.',
    'name_too_long': 'That name is too long.',
    'name_taken': 'That name is already being used by another player in this lobby. Please choose a different name.',
    'eliminated_cannot_rejoin': 'You were eliminated earlier in this game and cannot rejoin.',
    'not_host': 'Only the host (the person who created the game) can start it.',
    'not_enough_players': 'You need at least 2 players in the lobby to start the game. Invite someone else to join first!',
    'killer_dead': 'A dead player cannot perform a kill.',
    'target_dead': 'The target is already dead.',
    'different_games': 'Killer and target are not in the same game.',
    'self_target': 'A player cannot kill themselves.',
    'game_not_in_progress': 'Game is not in progress.',
    'not_your_target': 'The identified target is not the killer\'s current target.',
}


def _room(game_code):
    return f"game:{game_code}"


def _render_error(exc: GameError):
    if exc.kind == ErrorKind.INTERNAL:
        message = 'Internal Server Error'
    elif exc.reason == 'not_enough_players' and exc.context.get('required', 2) != 2:
        message = f"You need at least {exc.context['required']} players in the lobby to start the game."
    else:
        message = MESSAGES.get(exc.reason, exc.reason.replace('_', ' ').capitalize())
    return jsonify({'error': message, 'reason': exc.reason}), STATUS_BY_KIND[exc.kind]


@games.errorhandler(GameError)
def handle_game_error(exc):
    if exc.kind == ErrorKind.INTERNAL:
        current_app.logger.error(f"[error] {exc.reason} context={exc.context}")
    else:
        current_app.logger.info(f"[rejected] {exc.kind.value} {exc.reason} context={exc.context}")
    return _render_error(exc)


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def _notify(game_code):
    socketio.emit(
        'state_update',
        {'game_code': game_code, 'version': get_change_tracker().version(game_code)},
        to=_room(game_code),
        namespace='/ws',
    )


def _membership_payload(membership):
    state = get_game_state(membership.game_code, membership.auth_token)
    return {
        'game_code': membership.game_code,
        'player_id': membership.player_id,
        'player_name': membership.player_name,
        'secret_code': membership.secret_code,
        'auth_token': membership.auth_token,
        'reconnected': membership.reconnected,
        'game': state['game'],
        'players': state['players'],
        'version': state['version'],
    }


@games.route('/', methods=['GET'])
def index_games():
    return jsonify(list_games())


@games.route('/create', methods=['POST'])
def create_game_route():
    data = request.get_json(silent=True) or {}
    player_name = data.get('player_name')
    if not player_name:
        return jsonify({'error': 'Player name is required'}), 400
    membership = create_game(player_name)
    return jsonify(_membership_payload(membership)), 201


@games.route('/<string:game_code>/join', methods=['POST'])
def join_game_route(game_code):
    data = request.get_json(silent=True) or {}
    player_name = data.get('player_name')
    if not player_name:
        return jsonify({'error': 'Player name is required'}), 400
    membership = join_game(game_code, player_name, auth_token=_bearer_token())
    if not membership.reconnected:
        _notify(membership.game_code)
    return jsonify(_membership_payload(membership)), (200 if membership.reconnected else 201)


@games.route('/<string:game_code>/start', methods=['POST'])
def start_game_route(game_code):
    token = _bearer_token()
    if token is None:
        return jsonify({'error': 'Unauthorized.', 'reason': 'missing_token'}), 401
    player_id = authenticate(game_code, token)
    roster = start_game(game_code, player_id)
    code = normalise_game_code(game_code)
    _notify(code)
    presence = get_presence()
    for entry in roster:
        sid = presence.sid_for(entry['id'])
        if sid and entry.get('target_name'):
            socketio.emit('new_target', {'target_name': entry['target_name']}, to=sid, namespace='/ws')
    # Each player learns only their own target; the requester gets their view
    return jsonify(get_game_state(code, token))


@games.route('/<string:game_code>/kill', methods=['POST'])
def kill_route(game_code):
    token = _bearer_token()
    if token is None:
        return jsonify({'error': 'Unauthorized.', 'reason': 'missing_token'}), 401
    data = request.get_json(silent=True) or {}
    secret_code = data.get('secret_code') or request.args.get('secret')
    if not secret_code:
        return jsonify({'error': 'Secret code is required'}), 400
    result = process_kill(game_code, token, secret_code)
    room = _room(result.game_code)
    socketio.emit(
        'player_eliminated',
        {'eliminated_player_name': result.eliminated_name, 'killer_name': result.killer_name},
        to=room,
        namespace='/ws',
    )
    if result.game_over:
        socketio.emit('game_over', {'winner_name': result.killer_name}, to=room, namespace='/ws')
    _notify(result.game_code)
    return jsonify(result.to_dict())


@games.route('/<string:game_code>/leave', methods=['POST'])
def leave_route(game_code):
    token = _bearer_token()
    if token is None:
        return jsonify({'error': 'Unauthorized.', 'reason': 'missing_token'}), 401
    leave_game(game_code, token)
    _notify(normalise_game_code(game_code))
    return '', 204


@games.route('/<string:game_code>/state', methods=['GET'])
def state_route(game_code):
    return jsonify(get_game_state(game_code, _bearer_token()))


@games.route('/<string:game_code>/changes', methods=['GET'])
def changes_route(game_code):
    client_version = request.args.get('version', default=0, type=int)
    token = _bearer_token()
    player_id = authenticate(game_code, token) if token else None
    return jsonify(check_for_changes(game_code, client_version, player_id=player_id))
