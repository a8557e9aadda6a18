"""Best-effort removal of a retired photo's blob and gallery entry."""

from photobattle.common.logging import get_logger
from photobattle.common.models import BattlePhoto
from photobattle.common.storage import BlobStore, GalleryStore

logger = get_logger("services.cleanup")


def cleanup_photo_assets(
    blob_store: BlobStore,
    gallery: GalleryStore,
    owner_id: str,
    battle_id: str,
    photo: BattlePhoto,
) -> list[str]:
    """Delete the photo's stored file and its gallery back-reference.

    Runs after the battle write has committed. Failures are logged and
    returned, never raised, so a committed change cannot look failed.

    Returns:
        Human-readable descriptions of the steps that failed (empty on success)
    """
    errors: list[str] = []

    if photo.storage_path:
        try:
            blob_store.delete_object(photo.storage_path)
        except Exception as e:
            errors.append(f"blob: {e}")
            logger.warning(
                "Unable to delete photo file (continuing)",
                metadata={
                    "battle_id": battle_id,
                    "photo_id": photo.id,
                    "storage_path": photo.storage_path,
                    "error": str(e),
                },
            )

    if photo.library_id:
        try:
            gallery.delete_item(owner_id, photo.library_id)
        except Exception as e:
            errors.append(f"gallery: {e}")
            logger.warning(
                "Unable to remove library photo entry (continuing)",
                metadata={
                    "battle_id": battle_id,
                    "photo_id": photo.id,
                    "library_id": photo.library_id,
                    "error": str(e),
                },
            )

    return errors
