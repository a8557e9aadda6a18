"""Blob storage and personal-gallery records.

Both are collaborators of the ranking core: battles only hold opaque
``storage_path`` and ``library_id`` references into them, and the merge and
delete paths clean them up on a best-effort basis.
"""

from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from filelock import FileLock

from photobattle.common.errors import LibraryItemNotFoundError
from photobattle.common.models import PhotoLibraryItem, VoteResult
from photobattle.common.persistence import (
    append_jsonl,
    is_path_segment,
    lock_path_for,
    read_jsonl,
    write_jsonl,
)


class BlobStore:
    """Object store rooted at ``<data_dir>/blobs``.

    Storage paths are relative POSIX paths such as
    ``images/original/<owner>/<photo>.jpg``.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _resolve(self, storage_path: str) -> Path:
        relative = PurePosixPath(storage_path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValueError(f"Invalid storage path: {storage_path!r}")
        return self._root.joinpath(*relative.parts)

    def put_object(self, storage_path: str, data: bytes) -> Path:
        target = self._resolve(storage_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target

    def exists(self, storage_path: str) -> bool:
        return self._resolve(storage_path).exists()

    def delete_object(self, storage_path: str) -> None:
        """Delete a stored object.

        Raises:
            FileNotFoundError: If nothing is stored at ``storage_path``.
        """
        self._resolve(storage_path).unlink()

    def url_for(self, storage_path: str) -> str:
        return self._resolve(storage_path).resolve().as_uri()


class GalleryStore:
    """Per-owner photo library kept in ``<data_dir>/users/<owner>/library.jsonl``."""

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)

    def library_path(self, owner_id: str) -> Path:
        if not is_path_segment(owner_id):
            raise ValueError(f"Invalid owner id: {owner_id!r}")
        return self._data_dir / "users" / owner_id / "library.jsonl"

    def _rw_lock(self, owner_id: str) -> FileLock:
        # Held across read-modify-write so rewrites never drop an append
        self.library_path(owner_id).parent.mkdir(parents=True, exist_ok=True)
        return FileLock(str(lock_path_for(self.library_path(owner_id))) + ".rw")

    def add_item(self, item: PhotoLibraryItem) -> PhotoLibraryItem:
        with self._rw_lock(item.owner_id):
            append_jsonl(self.library_path(item.owner_id), item)
        return item

    def get_items(self, owner_id: str) -> list[PhotoLibraryItem]:
        """Return the owner's library, newest first."""
        try:
            items = read_jsonl(self.library_path(owner_id), PhotoLibraryItem)
        except FileNotFoundError:
            return []
        return sorted(items, key=lambda item: item.created_at, reverse=True)

    def get_item(self, owner_id: str, library_id: str) -> PhotoLibraryItem | None:
        for item in self.get_items(owner_id):
            if item.id == library_id:
                return item
        return None

    def delete_item(self, owner_id: str, library_id: str) -> None:
        """Remove a library entry.

        Raises:
            LibraryItemNotFoundError: If the entry doesn't exist.
        """
        path = self.library_path(owner_id)
        with self._rw_lock(owner_id):
            items = self._read_raw(owner_id)
            remaining = [item for item in items if item.id != library_id]
            if len(remaining) == len(items):
                raise LibraryItemNotFoundError(owner_id, library_id)
            write_jsonl(path, remaining)

    def record_vote(
        self, owner_id: str, library_id: str, result: VoteResult, session_id: str
    ) -> bool:
        """Update library stats after a vote.

        Returns:
            False if the library entry no longer exists, True otherwise.
        """
        path = self.library_path(owner_id)
        with self._rw_lock(owner_id):
            items = self._read_raw(owner_id)
            for item in items:
                if item.id != library_id:
                    continue
                item.stats.total_votes += 1
                item.stats.last_voted_at = datetime.now(tz=UTC)
                if result == "win":
                    item.stats.yes_votes += 1
                if session_id not in item.session_ids:
                    item.stats.session_count += 1
                    item.session_ids.append(session_id)
                write_jsonl(path, items)
                return True
        return False

    def _read_raw(self, owner_id: str) -> list[PhotoLibraryItem]:
        try:
            return read_jsonl(self.library_path(owner_id), PhotoLibraryItem)
        except FileNotFoundError:
            return []
