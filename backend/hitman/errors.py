"""Typed errors raised by the game core.

Every rule violation is one of five kinds. Errors carry a short machine
``reason`` plus structured context; human wording is chosen by the transport
layer (see ``hitman.api.games``), never here.
"""
import enum


class ErrorKind(str, enum.Enum):
    NOT_FOUND = 'not_found'
    UNAUTHORIZED = 'unauthorized'
    FORBIDDEN = 'forbidden'
    UNPROCESSABLE_ENTITY = 'unprocessable_entity'
    INTERNAL = 'internal'


class GameError(Exception):
    """Base for every error the core reports to its caller.

    Attributes:
        reason: Stable identifier such as ``"not_your_target"``.
        context: Structured fields describing the failure (game code, ids).
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, reason: str, **context) -> None:
        self.reason = reason
        self.context = context
        super().__init__(f"{self.kind.value}: {reason}")


class NotFound(GameError):
    """Referenced game or target does not exist."""
    kind = ErrorKind.NOT_FOUND


class Unauthorized(GameError):
    """Credential does not resolve to a player."""
    kind = ErrorKind.UNAUTHORIZED


class Forbidden(GameError):
    """Authenticated, but the action is not permitted for this player."""
    kind = ErrorKind.FORBIDDEN


class UnprocessableEntity(GameError):
    """Well-formed request that violates a game-state precondition."""
    kind = ErrorKind.UNPROCESSABLE_ENTITY


class Internal(GameError):
    """Store failure or a broken invariant."""
    kind = ErrorKind.INTERNAL
