"""Transactional scope and row lookups shared by the game services."""
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from hitman import db
from hitman.errors import Internal, NotFound, Unauthorized
from hitman.models import Game, Player
from .codes import is_well_formed_token


@contextmanager
def atomic(operation: str):
    """Run the block as one transaction.

    Commits when the block finishes, rolls back on any exception. Store
    failures surface as ``Internal`` so callers never see a partial effect.
    """
    # Start from a clean transaction so every read below happens inside it
    db.session.rollback()
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[{operation}] store failure: {exc}")
        raise Internal('store_failure', operation=operation) from exc
    except BaseException:
        db.session.rollback()
        raise


def lock_game(code: str) -> Game:
    """Load the game by code, locking its row until the transaction ends."""
    game = (
        Game.query.filter_by(code=code)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if game is None:
        raise NotFound('game_not_found', game_code=code)
    return game


def player_by_token(game: Game, auth_token: str) -> Player:
    """Resolve a token to a player of ``game``; checked after the game itself."""
    if not is_well_formed_token(auth_token):
        raise Unauthorized('malformed_token', game_code=game.code)
    player = Player.query.filter_by(game_id=game.id, auth_token=auth_token).populate_existing().first()
    if player is None:
        raise Unauthorized('unknown_token', game_code=game.code)
    return player


def player_by_secret(game: Game, secret_code: str) -> Player:
    player = Player.query.filter_by(game_id=game.id, secret_code=secret_code).populate_existing().first()
    if player is None:
        raise NotFound('unknown_secret', game_code=game.code)
    return player


def player_by_name(game: Game, name_key: str):
    return Player.query.filter_by(game_id=game.id, name_key=name_key).populate_existing().first()


def players_of(game: Game):
    return Player.query.filter_by(game_id=game.id).order_by(Player.id).populate_existing().all()


def count_alive(game: Game) -> int:
    return (
        db.session.query(func.count(Player.id))
        .filter(Player.game_id == game.id, Player.is_alive.is_(True))
        .scalar()
    )
