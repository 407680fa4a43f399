import os
import random
import sys
import pytest

# Ensure the backend root (containing the `hitman` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from hitman import create_app, db, socketio
from hitman.services.games import create_game, join_game, start_game


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = []
    GAME_CODE_LENGTH = 4
    MIN_PLAYERS = 2
    MAX_NAME_LENGTH = 64
    SQLITE_BUSY_TIMEOUT_SEC = 5


def _build_app(config_class):
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import hitman.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def flask_app():
    yield from _build_app(TestConfig)


@pytest.fixture()
def file_app(tmp_path):
    """App backed by a SQLite file, so several threads can share it."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = 'sqlite:///' + str(tmp_path / 'hitman-test.db')

    yield from _build_app(FileConfig)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


def setup_lobby(num_players):
    """Create a lobby of Player_1 (host) .. Player_n; returns (code, memberships)."""
    host = create_game('Player_1')
    members = [host]
    for i in range(2, num_players + 1):
        members.append(join_game(host.game_code, f'Player_{i}'))
    return host.game_code, members


def setup_started_game(num_players, seed=1234):
    code, members = setup_lobby(num_players)
    start_game(code, members[0].player_id, rng=random.Random(seed))
    return code, members


def snapshot(code):
    """Players of a game as plain dicts, read in a transaction that is closed again."""
    from hitman.models import Game, Player
    game = Game.query.filter_by(code=code).first()
    rows = []
    if game is not None:
        for p in Player.query.filter_by(game_id=game.id).order_by(Player.id).all():
            rows.append({
                'id': p.id,
                'name': p.name,
                'is_alive': p.is_alive,
                'target_id': p.target_id,
                'secret_code': p.secret_code,
                'auth_token': p.auth_token,
            })
    db.session.rollback()
    return rows


def game_row(code):
    from hitman.models import Game
    game = Game.query.filter_by(code=code).first()
    row = game.to_dict() if game is not None else None
    db.session.rollback()
    return row
