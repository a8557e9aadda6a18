"""Translate battle errors into HTTP responses.

The status table is shared by every endpoint so a given failure always
reaches the client the same way.
"""

from typing import NoReturn

from fastapi import HTTPException

from photobattle.common.errors import (
    AliasCycleError,
    BattleError,
    ConcurrentModificationError,
    EmptyGalleryError,
    InvalidAliasMapError,
    InvalidBattleIdError,
    InvalidSecretKeyError,
    InvalidVoteError,
    LibraryItemNotFoundError,
    NotEnoughPhotosError,
    PermissionDeniedError,
    PhotoNotFoundError,
    SessionNotFoundError,
)
from photobattle.common.retry import MaxRetriesError

STATUS_BY_ERROR: dict[type[BattleError], int] = {
    SessionNotFoundError: 404,
    PhotoNotFoundError: 404,
    LibraryItemNotFoundError: 404,
    ConcurrentModificationError: 409,
    AliasCycleError: 409,
    InvalidAliasMapError: 409,
    PermissionDeniedError: 403,
    InvalidSecretKeyError: 403,
    InvalidVoteError: 400,
    NotEnoughPhotosError: 400,
    EmptyGalleryError: 400,
    InvalidBattleIdError: 400,
}


def status_for(exc: BattleError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return 400


def raise_for_battle_error(exc: Exception) -> NoReturn:
    """Raise the HTTPException matching a battle error.

    ``MaxRetriesError`` from the merge retry loop is reported as the
    conflict that exhausted it. Anything that is not a battle error is
    re-raised unchanged.
    """
    if isinstance(exc, MaxRetriesError) and isinstance(exc.last_exception, BattleError):
        exc = exc.last_exception
    if not isinstance(exc, BattleError):
        raise exc
    raise HTTPException(status_code=status_for(exc), detail=exc.user_message) from exc
