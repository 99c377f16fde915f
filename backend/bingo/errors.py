"""Errors reported back to the client that sent a command."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class BingoError(Exception):
    """Base error; `code` is what clients switch on."""

    code: str
    message: str
    details: Any | None = None

    def to_dict(self) -> dict:
        payload = {'code': self.code, 'message': self.message}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class NoActiveRound(BingoError):
    def __init__(self, tier: Any = None) -> None:
        super().__init__(code='no_active_round', message='No active round for this bet amount', details={'tier': tier})


class GameAlreadyEnded(BingoError):
    def __init__(self, tier: Any = None) -> None:
        super().__init__(code='game_already_ended', message='Round has already ended', details={'tier': tier})


class InsufficientBalance(BingoError):
    def __init__(self, message: str = 'Insufficient balance', details: Any | None = None) -> None:
        super().__init__(code='insufficient_balance', message=message, details=details)


class PersistenceFailure(BingoError):
    """A store call failed while finalizing a round."""

    def __init__(self, message: str = 'Persistence failure', details: Any | None = None) -> None:
        super().__init__(code='persistence_failure', message=message, details=details)


class NotFound(BingoError):
    def __init__(self, message: str = 'Not found', details: Any | None = None) -> None:
        super().__init__(code='not_found', message=message, details=details)


class ValidationError(BingoError):
    def __init__(self, message: str = 'Validation error', details: Any | None = None) -> None:
        super().__init__(code='validation_error', message=message, details=details)


class Unauthorized(BingoError):
    def __init__(self, message: str = 'Unauthorized') -> None:
        super().__init__(code='unauthorized', message=message)


class RoundInProgress(BingoError):
    """Cards on a tier cannot change hands while its round is running."""

    def __init__(self, tier: Any = None) -> None:
        super().__init__(code='round_in_progress', message='A round is running for this bet amount', details={'tier': tier})
