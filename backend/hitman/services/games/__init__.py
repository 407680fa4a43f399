"""Game domain services: lobby, ring assignment, eliminations.

This package contains the game rules and their transactional procedures. It
is imported by HTTP routes and socket handlers, keeping transport concerns
separated from core game mechanics.
"""

from .changes import ChangeTracker, PresenceRegistry
from .lobby import create_game, join_game, leave_game
from .ring import start_game
from .elimination import process_kill, KillResult
from .state import authenticate, check_for_changes, get_game_state, list_games

__all__ = [
    'ChangeTracker',
    'PresenceRegistry',
    'KillResult',
    'authenticate',
    'check_for_changes',
    'create_game',
    'get_game_state',
    'join_game',
    'leave_game',
    'list_games',
    'process_kill',
    'start_game',
]
