"""Owner-facing battle session operations.

Each signed-in owner has exactly one battle whose id is the owner id. The
owner fills it from their personal gallery, shares it through a secret link
that expires after ``link_duration_days``, and can delete or merge photos.

Dependencies:
    - photobattle.common.repository: battle transactions
    - photobattle.common.storage: blob and gallery stores
    - photobattle.services.merge_service: merge coordinator
"""

import hmac
import secrets
from datetime import UTC, datetime, timedelta
from pathlib import PurePosixPath
from uuid import uuid4

from photobattle.common.config import BattleConfig
from photobattle.common.errors import (
    EmptyGalleryError,
    InvalidSecretKeyError,
    PermissionDeniedError,
    PhotoNotFoundError,
)
from photobattle.common.logging import get_logger
from photobattle.common.models import (
    BattlePhoto,
    LinkHistoryEntry,
    MergeResult,
    PhotoBattle,
    PhotoLibraryItem,
)
from photobattle.common.repository import BattleRepository
from photobattle.common.storage import BlobStore, GalleryStore
from photobattle.ranking.replay import rank_photos
from photobattle.services.cleanup import cleanup_photo_assets
from photobattle.services.merge_service import MergeService

logger = get_logger("services.session_service")


def generate_secret_key() -> str:
    return secrets.token_urlsafe(18)


class SessionService:
    """Service managing battle sessions for their owners.

    Args:
        repo: Battle session store
        blob_store: Object store holding photo files
        gallery: Personal-gallery store
        merge_service: Merge coordinator used by ``merge_photos``
        config: Battle configuration (link lifetime and history)
    """

    def __init__(
        self,
        repo: BattleRepository,
        blob_store: BlobStore,
        gallery: GalleryStore,
        merge_service: MergeService,
        config: BattleConfig | None = None,
    ) -> None:
        self._repo = repo
        self._blob_store = blob_store
        self._gallery = gallery
        self._merge_service = merge_service
        self._config = config or BattleConfig()

    def _next_link_expiry(self) -> datetime:
        return datetime.now(tz=UTC) + timedelta(days=self._config.link_duration_days)

    def _rotated_link_fields(self, battle: PhotoBattle) -> dict:
        previous = LinkHistoryEntry(secret_key=battle.secret_key, expires_at=battle.link_expires_at)
        link_history = [previous, *battle.link_history][: self._config.link_history_limit]
        return {
            "secret_key": generate_secret_key(),
            "link_expires_at": self._next_link_expiry(),
            "link_history": link_history,
        }

    def create_session_from_library(
        self,
        owner_id: str,
        library_ids: list[str],
        creator_name: str | None = None,
    ) -> PhotoBattle:
        """Create the owner's battle, or add gallery photos to it.

        An empty ``library_ids`` selects the whole gallery. On an existing
        battle an empty selection also issues a fresh share link.

        Raises:
            EmptyGalleryError: If the gallery is empty or nothing selected exists
        """
        library = self._gallery.get_items(owner_id)
        if not library:
            raise EmptyGalleryError()

        wanted = set(library_ids)
        selected = [item for item in library if item.id in wanted] if wanted else library
        if not selected:
            raise EmptyGalleryError("No valid photos found in your gallery.")

        if not self._repo.exists(owner_id):
            battle = PhotoBattle(
                id=owner_id,
                owner_id=owner_id,
                creator_name=creator_name,
                photos=[item.to_battle_photo() for item in selected],
                secret_key=generate_secret_key(),
                link_expires_at=self._next_link_expiry(),
            )
            created = self._repo.create(battle)
            logger.info(
                "Battle created",
                metadata={"battle_id": owner_id, "photo_count": len(created.photos)},
            )
            return created

        with self._repo.transaction(owner_id) as txn:
            current = txn.snapshot
            present = {photo.library_id for photo in current.photos if photo.library_id}
            # Merged or deleted photos keep their gallery entry when cleanup fails
            excluded = present | current.retired_ids
            missing = [item for item in selected if item.id not in excluded]
            if missing:
                txn.update(photos=[*current.photos, *(i.to_battle_photo() for i in missing)])
            if creator_name and creator_name != current.creator_name:
                txn.update(creator_name=creator_name)
            if not library_ids:
                txn.update(**self._rotated_link_fields(current))

        if txn.committed is None:
            return txn.snapshot

        logger.info(
            "Battle updated from library",
            metadata={"battle_id": owner_id, "photos_added": len(missing)},
        )
        return txn.committed

    def upload_photo(self, owner_id: str, filename: str, data: bytes) -> PhotoLibraryItem:
        """Store a new photo in the owner's gallery and their battle, if any."""
        photo_id = uuid4().hex
        suffix = PurePosixPath(filename).suffix.lower() or ".jpg"
        storage_path = f"images/original/{owner_id}/{photo_id}{suffix}"

        self._blob_store.put_object(storage_path, data)
        item = PhotoLibraryItem(
            id=photo_id,
            owner_id=owner_id,
            url=self._blob_store.url_for(storage_path),
            storage_path=storage_path,
        )
        self._gallery.add_item(item)

        if self._repo.exists(owner_id):
            with self._repo.transaction(owner_id) as txn:
                txn.update(photos=[*txn.snapshot.photos, item.to_battle_photo()])

        logger.info(
            "Photo uploaded",
            metadata={"owner_id": owner_id, "photo_id": photo_id, "bytes": len(data)},
        )
        return item

    def rotate_link(self, battle_id: str, caller_id: str) -> PhotoBattle:
        """Issue a new secret key and expiry, keeping the old key in history."""
        with self._repo.transaction(battle_id) as txn:
            if txn.snapshot.owner_id != caller_id:
                raise PermissionDeniedError()
            txn.update(**self._rotated_link_fields(txn.snapshot))

        logger.info("Share link rotated", metadata={"battle_id": battle_id})
        return txn.require_committed()

    def set_public(self, battle_id: str, is_public: bool, caller_id: str) -> PhotoBattle:
        """Mark the battle as publicly listed or private (owner only).

        Raises:
            SessionNotFoundError: If the battle doesn't exist
            PermissionDeniedError: If the caller does not own the battle
        """
        with self._repo.transaction(battle_id) as txn:
            if txn.snapshot.owner_id != caller_id:
                raise PermissionDeniedError()
            txn.update(is_public=is_public)

        logger.info(
            "Battle visibility changed",
            metadata={"battle_id": battle_id, "is_public": is_public},
        )
        return txn.require_committed()

    def delete_photo(self, battle_id: str, photo_id: str, caller_id: str) -> list[str]:
        """Remove a live photo from the battle.

        History and aliases are left as they are; other ratings are not
        recomputed. The stored file and gallery entry are removed afterwards
        on a best-effort basis.

        Returns:
            Cleanup failures (empty when everything was removed)

        Raises:
            SessionNotFoundError: If the battle doesn't exist
            PermissionDeniedError: If the caller does not own the battle
            PhotoNotFoundError: If ``photo_id`` is not a live photo
        """
        removed: BattlePhoto | None = None
        with self._repo.transaction(battle_id) as txn:
            battle = txn.snapshot
            if battle.owner_id != caller_id:
                raise PermissionDeniedError()
            removed = battle.find_photo(photo_id)
            if removed is None:
                raise PhotoNotFoundError(photo_id)
            txn.update(
                photos=[photo for photo in battle.photos if photo.id != photo_id],
                retired_photo_ids=[*battle.retired_photo_ids, photo_id],
            )

        logger.info("Photo deleted", metadata={"battle_id": battle_id, "photo_id": photo_id})

        return cleanup_photo_assets(
            self._blob_store, self._gallery, battle.owner_id, battle_id, removed
        )

    def load_results(self, battle_id: str, secret_key: str) -> list[BattlePhoto]:
        """Return the battle's photos ranked by rating for a share-link holder.

        Raises:
            SessionNotFoundError: If the battle doesn't exist
            InvalidSecretKeyError: If ``secret_key`` does not match
        """
        battle = self._repo.load(battle_id)
        if not hmac.compare_digest(battle.secret_key.encode(), secret_key.encode()):
            raise InvalidSecretKeyError()
        return rank_photos(battle.photos)

    def merge_photos(
        self, battle_id: str, target_id: str, merged_id: str, caller_id: str
    ) -> MergeResult:
        return self._merge_service.merge_with_retry(battle_id, target_id, merged_id, caller_id)
