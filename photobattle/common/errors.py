"""Exception classes for battle ranking operations.

Every error carries a short user-facing message. Callers at the HTTP and CLI
boundary decide whether to retry (ConcurrentModificationError), ask the user
to refresh (PhotoNotFoundError) or quietly ignore (AlreadyMergedError).
"""


class BattleError(Exception):
    """Base exception for battle session errors."""

    user_message = "Something went wrong with this battle."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)


class SessionNotFoundError(BattleError):
    """Raised when a battle session document does not exist."""

    user_message = "Session not found."

    def __init__(self, battle_id: str) -> None:
        self.battle_id = battle_id
        super().__init__(f"Session not found: {battle_id}")


class PhotoNotFoundError(BattleError):
    """Raised when a photo id is retired or unknown in a battle."""

    user_message = "Photo no longer exists. Refresh the photo list."

    def __init__(self, photo_id: str, message: str | None = None) -> None:
        self.photo_id = photo_id
        super().__init__(message or f"Photo not found in this battle: {photo_id}")


class AlreadyMergedError(BattleError):
    """Raised when both ids already resolve to the same canonical photo."""

    user_message = "These photos are already combined."

    def __init__(self, canonical_id: str) -> None:
        self.canonical_id = canonical_id
        super().__init__(f"Photos already combined into {canonical_id}")


class ConcurrentModificationError(BattleError):
    """Raised when the version token changed between read and write."""

    user_message = "Session changed while combining. Please try again."


class PermissionDeniedError(BattleError):
    """Raised when the caller does not own the battle."""

    user_message = "You do not have permission to update this session."


class InvalidSecretKeyError(BattleError):
    """Raised when results are requested with the wrong secret key."""

    user_message = "Invalid secret key."


class InvalidVoteError(BattleError):
    """Raised when a vote references photos that cannot be compared."""

    user_message = "Invalid photos selected."


class NotEnoughPhotosError(BattleError):
    """Raised when a battle has fewer than two photos to compare."""

    user_message = "Need at least two photos for a battle."


class AliasCycleError(BattleError):
    """Raised when the alias map contains a cycle.

    A cycle is a malformed alias map, so merges fail closed before writing.
    """

    user_message = "Photo aliases are corrupted for this battle."

    def __init__(self, chain: list[str]) -> None:
        self.chain = chain
        super().__init__(f"Alias cycle detected: {' -> '.join(chain)}")


class InvalidAliasMapError(BattleError):
    """Raised when an alias key is still a live photo id."""

    user_message = "Photo aliases are corrupted for this battle."


class LibraryItemNotFoundError(BattleError):
    """Raised when a personal-gallery entry does not exist."""

    user_message = "Gallery photo not found."

    def __init__(self, owner_id: str, library_id: str) -> None:
        self.owner_id = owner_id
        self.library_id = library_id
        super().__init__(f"Gallery item {library_id} not found for owner {owner_id}")


class EmptyGalleryError(BattleError):
    """Raised when a battle would start without any gallery photos."""

    user_message = "Upload at least one photo to start a battle."


class InvalidBattleIdError(BattleError):
    """Raised when a battle id cannot be used as a file name."""

    user_message = "Invalid session id."

    def __init__(self, battle_id: str) -> None:
        self.battle_id = battle_id
        super().__init__(f"Invalid battle id: {battle_id!r}")
