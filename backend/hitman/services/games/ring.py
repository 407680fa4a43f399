"""Target ring construction at game start."""
import random

from flask import current_app

from hitman import db
from hitman.errors import Forbidden, Internal, UnprocessableEntity
from hitman.models import GameStatus
from .changes import get_change_tracker
from .codes import normalise_game_code
from .transaction import atomic, lock_game, players_of


def assign_ring(player_ids, rng=None):
    """Map each player id to its target so the ids form one directed cycle.

    The order is a uniformly random permutation; with two players the ring is
    mutual targeting.
    """
    order = list(player_ids)
    (rng or random).shuffle(order)
    n = len(order)
    return {order[i]: order[(i + 1) % n] for i in range(n)}


def verify_ring(players) -> bool:
    """True if the targets of the alive players form one cycle covering them all."""
    alive = {p.id: p.target_id for p in players if p.is_alive}
    if len(alive) < 2:
        return all(target is None for target in alive.values())
    start = next(iter(alive))
    seen = set()
    current = start
    while current not in seen:
        seen.add(current)
        current = alive.get(current)
        if current is None:
            return False
    return current == start and seen == set(alive)


def start_game(game_code, requesting_player_id, rng=None):
    """Host-only: arrange every lobby member into the target ring.

    Returns the roster (ordered by player id) as dicts carrying each
    player's target name.
    """
    code = normalise_game_code(game_code)
    with atomic('start'):
        game = lock_game(code)
        if game.host_id != requesting_player_id:
            raise Forbidden('not_host', game_code=code, player_id=requesting_player_id)
        if game.status != GameStatus.LOBBY.value:
            raise UnprocessableEntity('game_not_in_lobby', game_code=code, status=game.status)
        players = players_of(game)
        min_players = max(2, int(current_app.config.get('MIN_PLAYERS', 2)))
        if len(players) < min_players:
            raise UnprocessableEntity('not_enough_players', game_code=code, players=len(players), required=min_players)

        ring = assign_ring([p.id for p in players], rng=rng)
        for player in players:
            player.target_id = ring[player.id]
        game.status = GameStatus.IN_PROGRESS.value
        db.session.flush()
        if not verify_ring(players):
            raise Internal('ring_incomplete', game_code=code)
        player_ids = [p.id for p in players]
        roster = [p.to_dict() for p in players]

    current_app.logger.info(f"[start] game={code} players={len(player_ids)}")
    get_change_tracker().bump(code, player_ids)
    return roster
