import os


def _split(value):
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///hitman.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = _split(os.environ.get('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'))
    # Join codes are short so they can be typed or read aloud
    GAME_CODE_LENGTH = int(os.environ.get('GAME_CODE_LENGTH', '4'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MAX_NAME_LENGTH = int(os.environ.get('MAX_NAME_LENGTH', '64'))
    # How long a SQLite writer waits for the database lock before failing
    SQLITE_BUSY_TIMEOUT_SEC = float(os.environ.get('SQLITE_BUSY_TIMEOUT_SEC', '5'))
