"""Tests for blob and gallery stores."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from photobattle.common.errors import LibraryItemNotFoundError
from photobattle.common.models import PhotoLibraryItem
from photobattle.common.storage import BlobStore, GalleryStore


def library_item(item_id: str, owner_id: str = "owner-1", age_days: int = 0) -> PhotoLibraryItem:
    return PhotoLibraryItem(
        id=item_id,
        owner_id=owner_id,
        url=f"https://example.test/{item_id}.jpg",
        storage_path=f"images/original/{owner_id}/{item_id}.jpg",
        created_at=datetime(2025, 1, 10, tzinfo=UTC) - timedelta(days=age_days),
    )


class TestBlobStore:
    """Tests for BlobStore."""

    def test_put_and_delete(self, blob_store: BlobStore) -> None:
        """Objects can be stored and removed."""
        blob_store.put_object("images/original/u/a.jpg", b"jpeg")
        assert blob_store.exists("images/original/u/a.jpg")

        blob_store.delete_object("images/original/u/a.jpg")
        assert not blob_store.exists("images/original/u/a.jpg")

    def test_delete_missing_raises(self, blob_store: BlobStore) -> None:
        """Deleting a missing object is an error for the caller to handle."""
        with pytest.raises(FileNotFoundError):
            blob_store.delete_object("images/original/u/missing.jpg")

    @pytest.mark.parametrize("bad_path", ["/etc/passwd", "../escape.jpg", "a/../../b", ""])
    def test_rejects_paths_outside_root(self, blob_store: BlobStore, bad_path: str) -> None:
        """Storage paths cannot escape the store root."""
        with pytest.raises(ValueError):
            blob_store.put_object(bad_path, b"x")

    def test_url_for(self, tmp_path: Path) -> None:
        """URLs point at the stored file."""
        store = BlobStore(tmp_path)
        store.put_object("a/b.jpg", b"x")
        assert store.url_for("a/b.jpg").startswith("file://")
        assert store.url_for("a/b.jpg").endswith("/a/b.jpg")


class TestGalleryStore:
    """Tests for GalleryStore."""

    def test_empty_library(self, gallery: GalleryStore) -> None:
        """Owners without uploads have an empty library."""
        assert gallery.get_items("owner-1") == []

    def test_items_newest_first(self, gallery: GalleryStore) -> None:
        """Library listing is newest first."""
        gallery.add_item(library_item("old", age_days=5))
        gallery.add_item(library_item("new", age_days=0))

        assert [item.id for item in gallery.get_items("owner-1")] == ["new", "old"]

    def test_libraries_are_per_owner(self, gallery: GalleryStore) -> None:
        """Owners only see their own photos."""
        gallery.add_item(library_item("a", owner_id="owner-1"))
        gallery.add_item(library_item("b", owner_id="owner-2"))

        assert [item.id for item in gallery.get_items("owner-2")] == ["b"]

    def test_delete_item(self, gallery: GalleryStore) -> None:
        """Deleted entries disappear."""
        gallery.add_item(library_item("a"))
        gallery.add_item(library_item("b"))

        gallery.delete_item("owner-1", "a")

        assert gallery.get_item("owner-1", "a") is None
        assert gallery.get_item("owner-1", "b") is not None

    def test_delete_missing_raises(self, gallery: GalleryStore) -> None:
        """Deleting an unknown entry raises."""
        with pytest.raises(LibraryItemNotFoundError):
            gallery.delete_item("owner-1", "missing")

    def test_record_vote_updates_stats(self, gallery: GalleryStore) -> None:
        """Wins, totals and session counts are tracked."""
        gallery.add_item(library_item("a"))

        assert gallery.record_vote("owner-1", "a", "win", "battle-1")
        assert gallery.record_vote("owner-1", "a", "loss", "battle-1")
        assert gallery.record_vote("owner-1", "a", "win", "battle-2")

        stats = gallery.get_item("owner-1", "a").stats
        assert stats.total_votes == 3
        assert stats.yes_votes == 2
        assert stats.session_count == 2
        assert stats.last_voted_at is not None

    def test_record_vote_for_missing_item(self, gallery: GalleryStore) -> None:
        """Votes for deleted gallery photos are reported, not raised."""
        assert gallery.record_vote("owner-1", "missing", "win", "battle-1") is False

    @pytest.mark.parametrize("owner_id", ["", "..", "../battles", "a/b"])
    def test_rejects_path_like_owner_ids(self, gallery: GalleryStore, owner_id: str) -> None:
        """Owner ids become directory names and must be a single segment."""
        with pytest.raises(ValueError):
            gallery.get_items(owner_id)
