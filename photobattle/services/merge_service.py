"""Merge two photo identities and recompute every rating from history.

A merge folds one photo (the merged-away side) into another (the target)
after the fact, typically because the same picture was uploaded twice.
The history log is left untouched; the alias map gains one edge and all
ratings are rebuilt by replaying the log through it.

Concurrency:
    Replay reads the full history, which is too slow to run while holding
    the battle lock. The merge therefore reads the version token first,
    computes off-lock, and commits only if the token is unchanged. A vote
    landing in between aborts the merge with ConcurrentModificationError and
    the caller retries from scratch (``merge_with_retry``).

Cleanup:
    Deleting the merged photo's blob and gallery entry happens after the
    commit. Failures there are logged and reported on the result, never
    raised: the ranking state is already consistent.

Dependencies:
    - photobattle.ranking.aliases: alias resolution and validation
    - photobattle.ranking.replay: history replay
    - photobattle.common.repository: battle transactions
    - photobattle.common.retry: retry executor
"""

from photobattle.common.config import BattleConfig
from photobattle.common.errors import (
    AlreadyMergedError,
    ConcurrentModificationError,
    PermissionDeniedError,
    PhotoNotFoundError,
)
from photobattle.common.logging import get_logger
from photobattle.common.models import MergeResult
from photobattle.common.repository import BattleRepository
from photobattle.common.retry import RetryableTaskExecutor, SleepFunc
from photobattle.common.storage import BlobStore, GalleryStore
from photobattle.ranking.aliases import extend_aliases, resolve_alias, validate_aliases
from photobattle.ranking.replay import replay_battle
from photobattle.services.cleanup import cleanup_photo_assets

logger = get_logger("services.merge_service")


class MergeService:
    """Coordinates merges under optimistic concurrency control.

    Args:
        repo: Battle session store
        blob_store: Object store holding photo files
        gallery: Personal-gallery store
        config: Battle configuration (replay policy, retry limits)
        sleep_func: Optional sleep function for retry backoff (testability)
    """

    def __init__(
        self,
        repo: BattleRepository,
        blob_store: BlobStore,
        gallery: GalleryStore,
        config: BattleConfig | None = None,
        sleep_func: SleepFunc | None = None,
    ) -> None:
        self._repo = repo
        self._blob_store = blob_store
        self._gallery = gallery
        self._config = config or BattleConfig()
        self._sleep_func = sleep_func

    def merge(self, battle_id: str, target_id: str, merged_id: str, caller_id: str) -> MergeResult:
        """Merge ``merged_id`` into ``target_id``.

        Args:
            battle_id: Battle to update
            target_id: Photo that survives (any alias of it is accepted)
            merged_id: Photo that is retired (any alias of it is accepted)
            caller_id: User performing the merge; must own the battle

        Returns:
            MergeResult with the committed photos, aliases and version token

        Raises:
            SessionNotFoundError: If the battle doesn't exist
            PermissionDeniedError: If the caller does not own the battle
            AlreadyMergedError: If both ids already resolve to the same photo
            PhotoNotFoundError: If either canonical id is not a live photo
            AliasCycleError: If the existing or candidate alias map cycles
            ConcurrentModificationError: If the battle changed before commit
        """
        battle = self._repo.load(battle_id)
        if battle.owner_id != caller_id:
            raise PermissionDeniedError()

        observed_version = battle.updated_at
        base_aliases = battle.photo_aliases

        canonical_target = resolve_alias(target_id, base_aliases, strict=True)
        canonical_merged = resolve_alias(merged_id, base_aliases, strict=True)
        if canonical_target == canonical_merged:
            raise AlreadyMergedError(canonical_target)

        target_photo = battle.find_photo(canonical_target)
        merged_photo = battle.find_photo(canonical_merged)
        if target_photo is None:
            raise PhotoNotFoundError(target_id)
        if merged_photo is None:
            raise PhotoNotFoundError(merged_id)

        history = self._repo.fetch_history(battle_id)

        survivors = [photo for photo in battle.photos if photo.id != canonical_merged]
        aliases = extend_aliases(base_aliases, canonical_merged, canonical_target)
        validate_aliases(aliases, (photo.id for photo in survivors))

        recomputed = replay_battle(
            history,
            aliases,
            survivors,
            include_retired=self._config.replay_retired_opponents,
        )
        updated_photos = [recomputed[photo.id] for photo in survivors]

        with self._repo.transaction(battle_id) as txn:
            if txn.snapshot.updated_at != observed_version:
                raise ConcurrentModificationError()
            txn.update(
                photos=updated_photos,
                photo_aliases=aliases,
                retired_photo_ids=[*txn.snapshot.retired_photo_ids, canonical_merged],
            )

        committed = txn.require_committed()

        logger.info(
            "Photos merged",
            metadata={
                "battle_id": battle_id,
                "target_id": canonical_target,
                "merged_id": canonical_merged,
                "history_entries": len(history),
                "photos_remaining": len(updated_photos),
            },
        )

        cleanup_errors = cleanup_photo_assets(
            self._blob_store, self._gallery, committed.owner_id, battle_id, merged_photo
        )

        return MergeResult(
            battle_id=battle_id,
            target_id=canonical_target,
            merged_id=canonical_merged,
            photos=committed.photos,
            photo_aliases=committed.photo_aliases,
            updated_at=committed.updated_at,
            cleanup_errors=cleanup_errors,
        )

    def merge_with_retry(
        self, battle_id: str, target_id: str, merged_id: str, caller_id: str
    ) -> MergeResult:
        """Run ``merge``, retrying from scratch on ConcurrentModificationError.

        Raises:
            MaxRetriesError: If every attempt hit a concurrent modification
        """
        executor = RetryableTaskExecutor(
            max_attempts=self._config.merge_max_attempts,
            base_delay_seconds=self._config.merge_retry_base_delay_seconds,
            retryable_exceptions=(ConcurrentModificationError,),
            sleep_func=self._sleep_func,
        )
        return executor.execute(self.merge, battle_id, target_id, merged_id, caller_id)

