"""Lobby lifecycle: creating games, admitting players, departures."""
import secrets
from dataclasses import dataclass, field
from typing import List

from flask import current_app
from sqlalchemy.exc import IntegrityError

from hitman import db
from hitman.errors import Forbidden, Internal, UnprocessableEntity
from hitman.models import Game, GameStatus, Player, normalise_name
from .changes import get_change_tracker
from .codes import (
    generate_auth_token,
    generate_game_code,
    generate_secret_code,
    normalise_game_code,
)
from .elimination import splice_out
from .transaction import atomic, lock_game, player_by_name, player_by_token, players_of

CREATE_ATTEMPTS = 5


@dataclass
class Membership:
    """A player's credentials for a game, as handed back to that player only."""
    game_code: str
    game_id: int
    player_id: int
    player_name: str
    secret_code: str
    auth_token: str
    reconnected: bool = False
    player_ids: List[int] = field(default_factory=list)


class _GameCodeTaken(Exception):
    pass


def _clean_name(player_name) -> str:
    if not isinstance(player_name, str):
        raise UnprocessableEntity('name_required')
    name = player_name.strip()
    max_len = int(current_app.config.get('MAX_NAME_LENGTH', 64))
    if not name:
        raise UnprocessableEntity('name_required')
    if len(name) > max_len:
        raise UnprocessableEntity('name_too_long', max_length=max_len)
    return name


def _code_in_use(code: str) -> bool:
    return db.session.query(Game.id).filter_by(code=code).first() is not None


def create_game(player_name) -> Membership:
    """Create a lobby with the caller as its first player and host."""
    name = _clean_name(player_name)
    length = int(current_app.config.get('GAME_CODE_LENGTH', 4))
    for attempt in range(1, CREATE_ATTEMPTS + 1):
        try:
            with atomic('create'):
                code = generate_game_code(_code_in_use, length=length)
                game = Game(code=code, status=GameStatus.LOBBY.value)
                db.session.add(game)
                try:
                    db.session.flush()
                except IntegrityError as exc:
                    raise _GameCodeTaken(code) from exc
                host = Player(
                    game_id=game.id,
                    name=name,
                    secret_code=generate_secret_code(),
                    auth_token=generate_auth_token(),
                )
                db.session.add(host)
                db.session.flush()
                game.host_id = host.id
                membership = Membership(
                    game_code=game.code,
                    game_id=game.id,
                    player_id=host.id,
                    player_name=host.name,
                    secret_code=host.secret_code,
                    auth_token=host.auth_token,
                    player_ids=[host.id],
                )
        except _GameCodeTaken as taken:
            current_app.logger.info(f"[create] code {taken} taken concurrently, attempt={attempt}")
            continue
        current_app.logger.info(f"[create] game={membership.game_code} host={membership.player_id} name={name!r}")
        get_change_tracker().bump(membership.game_code, membership.player_ids)
        return membership
    raise Internal('game_code_exhausted', attempts=CREATE_ATTEMPTS)


def join_game(game_code, player_name, auth_token=None) -> Membership:
    """Admit a player to a lobby.

    A name that is already present and alive is only handed back to a caller
    presenting that player's auth token (a reconnection); anyone else gets
    ``name_taken``.
    """
    code = normalise_game_code(game_code)
    name = _clean_name(player_name)
    with atomic('join'):
        game = lock_game(code)
        if game.status != GameStatus.LOBBY.value:
            raise UnprocessableEntity('game_not_in_lobby', game_code=code, status=game.status)

        existing = player_by_name(game, normalise_name(name))
        if existing is not None:
            if not existing.is_alive:
                raise Forbidden('eliminated_cannot_rejoin', game_code=code, player_id=existing.id)
            if auth_token and secrets.compare_digest(existing.auth_token, auth_token):
                current_app.logger.info(f"[join] game={code} player={existing.id} reconnected")
                return Membership(
                    game_code=code,
                    game_id=game.id,
                    player_id=existing.id,
                    player_name=existing.name,
                    secret_code=existing.secret_code,
                    auth_token=existing.auth_token,
                    reconnected=True,
                )
            raise UnprocessableEntity('name_taken', game_code=code, name=name)

        player = Player(
            game_id=game.id,
            name=name,
            secret_code=generate_secret_code(),
            auth_token=generate_auth_token(),
        )
        db.session.add(player)
        try:
            db.session.flush()
        except IntegrityError as exc:
            # A concurrent join claimed the name between our check and insert
            current_app.logger.info(f"[join] game={code} name={name!r} lost insert race: {exc.orig}")
            raise UnprocessableEntity('name_taken', game_code=code, name=name) from exc
        membership = Membership(
            game_code=code,
            game_id=game.id,
            player_id=player.id,
            player_name=player.name,
            secret_code=player.secret_code,
            auth_token=player.auth_token,
            player_ids=[p.id for p in players_of(game)],
        )
    current_app.logger.info(f"[join] game={code} player={membership.player_id} name={name!r}")
    get_change_tracker().bump(code, membership.player_ids)
    return membership


def leave_game(game_code, auth_token) -> None:
    """Remove a player from a game.

    In the lobby the row is deleted (handing the host role to the earliest
    remaining player, or deleting the empty game). Once started the player is
    taken out of the ring the same way a kill would, with no killer credited.
    """
    code = normalise_game_code(game_code)
    game_deleted = False
    with atomic('leave'):
        game = lock_game(code)
        player = player_by_token(game, auth_token)
        leaver_id = player.id
        player_ids = [p.id for p in players_of(game)]

        if game.status == GameStatus.LOBBY.value:
            remaining = [pid for pid in player_ids if pid != player.id]
            if game.host_id == player.id:
                game.host_id = remaining[0] if remaining else None
                db.session.flush()
            db.session.delete(player)
            db.session.flush()
            if not remaining:
                db.session.delete(game)
                game_deleted = True
            current_app.logger.info(
                f"[leave] game={code} player={leaver_id} lobby host={game.host_id} deleted={game_deleted}"
            )
            player_ids = remaining
        elif game.status == GameStatus.IN_PROGRESS.value:
            if player.is_alive:
                predecessor = (
                    Player.query.filter_by(game_id=game.id, target_id=player.id, is_alive=True)
                    .populate_existing()
                    .first()
                )
                if predecessor is None:
                    raise Internal('ring_broken', game_code=code, player_id=player.id)
                new_target = splice_out(game, predecessor, player)
                current_app.logger.info(
                    f"[leave] game={code} player={player.id} left mid-game, "
                    f"predecessor={predecessor.id} now_targets={new_target.id if new_target else None}"
                )
        else:
            player.is_alive = False
            current_app.logger.info(f"[leave] game={code} player={player.id} left finished game")

    tracker = get_change_tracker()
    tracker.bump(code, player_ids)
    if game_deleted:
        tracker.forget(code)
