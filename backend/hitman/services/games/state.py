"""Read-side views of games for clients."""
from sqlalchemy import func

from hitman import db
from hitman.errors import NotFound
from hitman.models import Game, Player
from .changes import get_change_tracker
from .codes import normalise_game_code
from .transaction import atomic, player_by_token, players_of


def _find_game(code):
    game = Game.query.filter_by(code=code).populate_existing().first()
    if game is None:
        raise NotFound('game_not_found', game_code=code)
    return game


def authenticate(game_code, auth_token) -> int:
    """Resolve an auth token to the id of a player in this game."""
    code = normalise_game_code(game_code)
    with atomic('authenticate'):
        game = _find_game(code)
        return player_by_token(game, auth_token).id


def get_game_state(game_code, auth_token=None) -> dict:
    """Snapshot of a game as seen by the holder of ``auth_token``.

    Secrets and targets are only included for the requesting player. An
    unknown token is rejected; no token gives the public view.
    """
    code = normalise_game_code(game_code)
    with atomic('state'):
        game = _find_game(code)
        viewer_id = player_by_token(game, auth_token).id if auth_token is not None else None
        players = []
        for p in players_of(game):
            is_viewer = p.id == viewer_id
            players.append(p.to_dict(include_secret=is_viewer, include_target=is_viewer))
        state = {
            'game': game.to_dict(),
            'players': players,
            'viewer_id': viewer_id,
        }
    state['version'] = get_change_tracker().version(code)
    return state


def list_games():
    """Every stored game with its player count."""
    with atomic('list'):
        rows = (
            db.session.query(Game.code, Game.status, func.count(Player.id))
            .outerjoin(Player, Player.game_id == Game.id)
            .group_by(Game.id, Game.code, Game.status)
            .order_by(Game.id)
            .all()
        )
        return [{'code': code, 'status': status, 'player_count': count} for code, status, count in rows]


def check_for_changes(game_code, client_version, player_id=None) -> dict:
    code = normalise_game_code(game_code)
    tracker = get_change_tracker()
    current = tracker.version(code)
    payload = {
        'changed': current > client_version,
        'current_version': current,
    }
    if player_id is not None:
        payload['dirty'] = tracker.consume_dirty(code, player_id)
    return payload
