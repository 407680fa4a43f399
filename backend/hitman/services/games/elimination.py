"""Kill validation and the ring splice."""
from dataclasses import dataclass, field
from typing import List, Optional

from flask import current_app

from hitman import db
from hitman.errors import Forbidden, Internal, NotFound, UnprocessableEntity
from hitman.models import Game, GameStatus, Player
from .changes import get_change_tracker
from .codes import normalise_game_code, normalise_secret_code
from .transaction import atomic, count_alive, lock_game, player_by_secret, player_by_token, players_of


@dataclass
class KillResult:
    game_code: str
    killer_id: int
    killer_name: str
    eliminated_id: int
    eliminated_name: str
    new_target_name: Optional[str]
    player_ids: List[int] = field(default_factory=list)

    @property
    def game_over(self) -> bool:
        return self.new_target_name is None

    def to_dict(self):
        return {
            'killer_name': self.killer_name,
            'eliminated_player_name': self.eliminated_name,
            'new_target_name': self.new_target_name,
            'game_over': self.game_over,
        }


def splice_out(game: Game, predecessor: Player, victim: Player) -> Optional[Player]:
    """Remove ``victim`` from the ring, handing its edge to ``predecessor``.

    Returns the predecessor's new target, or None when the predecessor is the
    last player alive, in which case the game is finished with them as winner.
    Must run inside ``atomic``.
    """
    successor_id = victim.target_id
    victim.is_alive = False
    victim.target_id = None
    db.session.flush()

    if count_alive(game) <= 1:
        game.status = GameStatus.FINISHED.value
        game.winner_id = predecessor.id
        predecessor.target_id = None
        db.session.flush()
        return None

    successor = db.session.get(Player, successor_id) if successor_id is not None else None
    if successor is None or not successor.is_alive or successor.id == predecessor.id:
        raise Internal('ring_broken', game_code=game.code, player_id=victim.id)
    predecessor.target_id = successor.id
    db.session.flush()
    return successor


def _validate_kill(game: Game, killer: Player, target: Player) -> None:
    code = game.code
    if not killer.is_alive:
        raise Forbidden('killer_dead', game_code=code, player_id=killer.id)
    if not target.is_alive:
        raise Forbidden('target_dead', game_code=code, player_id=target.id)
    if killer.game_id != target.game_id:
        raise Forbidden('different_games', game_code=code)
    if killer.id == target.id:
        raise Forbidden('self_target', game_code=code, player_id=killer.id)
    if game.status != GameStatus.IN_PROGRESS.value:
        raise UnprocessableEntity('game_not_in_progress', game_code=code, status=game.status)
    if killer.target_id != target.id:
        raise Forbidden('not_your_target', game_code=code, player_id=killer.id)


def process_kill(game_code, killer_auth_token, target_secret_code) -> KillResult:
    """Eliminate the killer's current target, proven by the target's secret."""
    code = normalise_game_code(game_code)
    secret = normalise_secret_code(target_secret_code)
    if secret is None:
        raise NotFound('unknown_secret', game_code=code)

    with atomic('kill'):
        game = lock_game(code)
        killer = player_by_token(game, killer_auth_token)
        target = player_by_secret(game, secret)
        try:
            _validate_kill(game, killer, target)
        except (Forbidden, UnprocessableEntity) as exc:
            current_app.logger.info(
                f"[kill-rejected] game={code} killer={killer.id} target={target.id} reason={exc.reason}"
            )
            raise
        new_target = splice_out(game, killer, target)
        result = KillResult(
            game_code=code,
            killer_id=killer.id,
            killer_name=killer.name,
            eliminated_id=target.id,
            eliminated_name=target.name,
            new_target_name=new_target.name if new_target is not None else None,
            player_ids=[p.id for p in players_of(game)],
        )

    if result.game_over:
        current_app.logger.info(f"[kill] game={code} killer={result.killer_id} target={result.eliminated_id} winner={result.killer_id}")
    else:
        current_app.logger.info(
            f"[kill] game={code} killer={result.killer_id} target={result.eliminated_id} new_target={result.new_target_name!r}"
        )
    get_change_tracker().bump(code, result.player_ids)
    return result
