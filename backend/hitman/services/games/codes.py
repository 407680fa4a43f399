"""Credential and join-code generation."""
import random
import re
import secrets
import string
import uuid

from hitman.errors import Internal

# No O or 0, they are easy to confuse when read aloud
GAME_CODE_ALPHABET = ''.join(c for c in string.ascii_uppercase + string.digits if c not in 'O0')
DEFAULT_GAME_CODE_LENGTH = 4

SECRET_CODE_PATTERN = re.compile(r'^[0-9a-f]{32}$')
AUTH_TOKEN_PATTERN = re.compile(r'^[A-Za-z0-9_-]{43}$')

_system_random = random.SystemRandom()


def generate_game_code(is_taken, length=DEFAULT_GAME_CODE_LENGTH, max_attempts=100):
    """Generate a short game code for which ``is_taken(code)`` is false."""
    for _ in range(max_attempts):
        code = ''.join(_system_random.choices(GAME_CODE_ALPHABET, k=length))
        if not is_taken(code):
            return code
    raise Internal('game_code_exhausted', length=length, attempts=max_attempts)


def generate_secret_code() -> str:
    """128-bit secret shown to whoever hunts this player."""
    return uuid.uuid4().hex


def generate_auth_token() -> str:
    return secrets.token_urlsafe(32)


def normalise_game_code(code) -> str:
    return (code or '').strip().upper()


def normalise_secret_code(secret):
    """Return the canonical secret, or None if it cannot be a secret code."""
    candidate = (secret or '').strip().lower().replace('-', '')
    return candidate if SECRET_CODE_PATTERN.match(candidate) else None


def is_well_formed_token(token) -> bool:
    return bool(token) and AUTH_TOKEN_PATTERN.match(token) is not None
