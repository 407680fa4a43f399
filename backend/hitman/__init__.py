from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy import event
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def _enable_sqlite_write_locks(engine, busy_timeout: float) -> None:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, so two requests can both read
    a victim as alive before either writes. Taking the write lock up front
    makes read-validate-write sequences serial.
    """
    @event.listens_for(engine, 'connect')
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute(f'PRAGMA busy_timeout = {int(busy_timeout * 1000)}')

    @event.listens_for(engine, 'begin')
    def _on_begin(conn):
        conn.exec_driver_sql('BEGIN IMMEDIATE')


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    with flask_app.app_context():
        if db.engine.dialect.name == 'sqlite':
            _enable_sqlite_write_locks(db.engine, flask_app.config.get('SQLITE_BUSY_TIMEOUT_SEC', 5))

    # Process-lifetime services; never module globals so each app (and each
    # test) starts from a clean slate
    from hitman.services.games.changes import ChangeTracker, PresenceRegistry
    flask_app.extensions['change_tracker'] = ChangeTracker()
    flask_app.extensions['presence'] = PresenceRegistry()

    from hitman.main import main
    flask_app.register_blueprint(main)

    from hitman.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from hitman.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database."""
        import hitman.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
