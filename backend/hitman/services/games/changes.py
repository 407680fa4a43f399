"""Change notification surface and socket presence.

Both services are created once per app in ``create_app`` and reached through
``current_app.extensions``. They are only ever written after the triggering
transaction has committed; losing an update delays a client refresh but never
corrupts game state.
"""
import threading
from typing import Dict, Iterable, Optional

from flask import current_app


class ChangeTracker:
    """Per-game monotonically increasing version plus per-player dirty flags."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions: Dict[str, int] = {}
        self._dirty: Dict[str, Dict[int, bool]] = {}

    def bump(self, game_code: str, player_ids: Iterable[int] = ()) -> int:
        """Advance the game's version and mark the given players dirty."""
        with self._lock:
            version = self._versions.get(game_code, 0) + 1
            self._versions[game_code] = version
            marks = self._dirty.setdefault(game_code, {})
            for pid in player_ids:
                marks[pid] = True
            return version

    def version(self, game_code: str) -> int:
        with self._lock:
            return self._versions.get(game_code, 0)

    def consume_dirty(self, game_code: str, player_id: int) -> bool:
        """Return whether the player has unseen changes, clearing the flag."""
        with self._lock:
            marks = self._dirty.get(game_code)
            if not marks:
                return False
            return marks.pop(player_id, False)

    def forget(self, game_code: str) -> None:
        """Drop dirty flags for a deleted game.

        The version is kept so clients polling a vanished lobby still see it
        move forward.
        """
        with self._lock:
            self._dirty.pop(game_code, None)


class PresenceRegistry:
    """Which socket session currently speaks for which player."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sid_by_player: Dict[int, str] = {}
        self._ctx_by_sid: Dict[str, dict] = {}

    def connect(self, sid: str, game_code: str, player_id: Optional[int] = None) -> None:
        with self._lock:
            self._ctx_by_sid[sid] = {'game_code': game_code, 'player_id': player_id}
            if player_id is not None:
                self._sid_by_player[player_id] = sid

    def disconnect(self, sid: str) -> Optional[dict]:
        with self._lock:
            ctx = self._ctx_by_sid.pop(sid, None)
            if ctx and ctx.get('player_id') is not None:
                if self._sid_by_player.get(ctx['player_id']) == sid:
                    del self._sid_by_player[ctx['player_id']]
            return ctx

    def sid_for(self, player_id: int) -> Optional[str]:
        with self._lock:
            return self._sid_by_player.get(player_id)


def get_change_tracker() -> ChangeTracker:
    return current_app.extensions['change_tracker']


def get_presence() -> PresenceRegistry:
    return current_app.extensions['presence']
