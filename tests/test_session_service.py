"""Tests for SessionService."""

from datetime import UTC, datetime, timedelta

import pytest

from photobattle.common.config import BattleConfig
from photobattle.common.errors import (
    EmptyGalleryError,
    InvalidSecretKeyError,
    PermissionDeniedError,
    PhotoNotFoundError,
    SessionNotFoundError,
)
from photobattle.common.models import PhotoBattle
from photobattle.common.repository import BattleRepository
from photobattle.common.storage import BlobStore, GalleryStore
from photobattle.services.merge_service import MergeService
from photobattle.services.session_service import SessionService
from photobattle.services.vote_service import VoteService


@pytest.fixture
def service(repo: BattleRepository, blob_store: BlobStore, gallery: GalleryStore) -> SessionService:
    config = BattleConfig(link_history_limit=2)
    merge_service = MergeService(repo, blob_store, gallery, config=config)
    return SessionService(repo, blob_store, gallery, merge_service, config=config)


@pytest.fixture
def uploaded(service: SessionService) -> list[str]:
    """Three photos in owner-1's gallery, no battle yet."""
    return [service.upload_photo("owner-1", f"photo{i}.JPG", b"jpeg").id for i in range(3)]


class TestUploadPhoto:
    """Tests for upload_photo."""

    def test_stores_blob_and_gallery_item(
        self, service: SessionService, blob_store: BlobStore, gallery: GalleryStore
    ) -> None:
        """Uploads land in the blob store and the gallery."""
        item = service.upload_photo("owner-1", "beach.png", b"png-bytes")

        assert item.storage_path.startswith("images/original/owner-1/")
        assert item.storage_path.endswith(".png")
        assert blob_store.exists(item.storage_path)
        assert gallery.get_item("owner-1", item.id) == item

    def test_appends_to_existing_battle(
        self, service: SessionService, repo: BattleRepository, uploaded: list[str]
    ) -> None:
        """New uploads join the owner's battle."""
        service.create_session_from_library("owner-1", [])

        item = service.upload_photo("owner-1", "late.jpg", b"jpeg")

        assert repo.load("owner-1").find_photo(item.id) is not None


class TestCreateSessionFromLibrary:
    """Tests for create_session_from_library."""

    def test_creates_battle_from_whole_gallery(
        self, service: SessionService, uploaded: list[str]
    ) -> None:
        """An empty selection uses every gallery photo."""
        battle = service.create_session_from_library("owner-1", [], creator_name="Sam")

        assert battle.id == "owner-1"
        assert battle.owner_id == "owner-1"
        assert battle.creator_name == "Sam"
        assert sorted(p.id for p in battle.photos) == sorted(uploaded)
        assert all(p.library_id == p.id for p in battle.photos)
        assert battle.photo_aliases == {}
        assert battle.secret_key
        assert battle.link_expires_at > datetime.now(tz=UTC) + timedelta(days=29)

    def test_creates_battle_from_selection(
        self, service: SessionService, uploaded: list[str]
    ) -> None:
        """Only selected photos are used."""
        battle = service.create_session_from_library("owner-1", uploaded[:2])
        assert sorted(p.id for p in battle.photos) == sorted(uploaded[:2])

    def test_adds_missing_photos_to_existing_battle(
        self, service: SessionService, uploaded: list[str]
    ) -> None:
        """Existing battles gain only photos they don't have."""
        first = service.create_session_from_library("owner-1", uploaded[:1])
        second = service.create_session_from_library("owner-1", uploaded)

        assert len(second.photos) == 3
        assert second.secret_key == first.secret_key

    def test_keeps_ratings_of_existing_photos(
        self, service: SessionService, repo: BattleRepository, uploaded: list[str]
    ) -> None:
        """Adding photos does not reset earlier votes."""
        service.create_session_from_library("owner-1", uploaded[:2])
        VoteService(repo).submit_vote("owner-1", uploaded[0], uploaded[1])

        battle = service.create_session_from_library("owner-1", uploaded)

        assert battle.find_photo(uploaded[0]).rating == 1216

    def test_empty_selection_rotates_link(
        self, service: SessionService, uploaded: list[str]
    ) -> None:
        """Re-sharing with no selection issues a new key and keeps the old one."""
        first = service.create_session_from_library("owner-1", uploaded)
        second = service.create_session_from_library("owner-1", [])

        assert second.secret_key != first.secret_key
        assert second.link_history[0].secret_key == first.secret_key

    def test_link_history_is_capped(self, service: SessionService, uploaded: list[str]) -> None:
        """Only the configured number of old links are kept, newest first."""
        keys = [service.create_session_from_library("owner-1", uploaded).secret_key]
        for _ in range(3):
            keys.append(service.create_session_from_library("owner-1", []).secret_key)

        battle = service.create_session_from_library("owner-1", uploaded)

        assert [entry.secret_key for entry in battle.link_history] == [keys[2], keys[1]]

    def test_empty_gallery(self, service: SessionService) -> None:
        """A battle needs at least one gallery photo."""
        with pytest.raises(EmptyGalleryError):
            service.create_session_from_library("owner-1", [])

    def test_unknown_selection(self, service: SessionService, uploaded: list[str]) -> None:
        """Selections matching nothing are rejected."""
        with pytest.raises(EmptyGalleryError):
            service.create_session_from_library("owner-1", ["missing"])


def _fail_gallery_cleanup(monkeypatch: pytest.MonkeyPatch, gallery: GalleryStore) -> None:
    def delete_item(owner_id: str, library_id: str) -> None:
        raise OSError("gallery unavailable")

    monkeypatch.setattr(gallery, "delete_item", delete_item)


class TestRetiredPhotosStayRetired:
    """Gallery entries left behind by failed cleanup never rejoin the battle."""

    def test_merged_photo_is_not_added_back(
        self,
        monkeypatch: pytest.MonkeyPatch,
        service: SessionService,
        repo: BattleRepository,
        gallery: GalleryStore,
        uploaded: list[str],
    ) -> None:
        """Re-sharing after a merge keeps the merged photo an alias only."""
        a, b, c = uploaded
        service.create_session_from_library("owner-1", uploaded)
        _fail_gallery_cleanup(monkeypatch, gallery)

        result = service.merge_photos("owner-1", a, b, "owner-1")

        assert result.cleanup_errors
        assert gallery.get_item("owner-1", b) is not None

        battle = service.create_session_from_library("owner-1", [])

        assert battle.find_photo(b) is None
        assert battle.photo_aliases == {b: a}
        assert b in battle.retired_photo_ids

        later = service.merge_photos("owner-1", a, c, "owner-1")
        assert later.photo_aliases == {b: a, c: a}
        assert [photo.id for photo in repo.load("owner-1").photos] == [a]

    def test_deleted_photo_is_not_added_back(
        self,
        monkeypatch: pytest.MonkeyPatch,
        service: SessionService,
        repo: BattleRepository,
        gallery: GalleryStore,
        uploaded: list[str],
    ) -> None:
        """Neither re-sharing nor an explicit selection revives a deleted photo."""
        a, b, _ = uploaded
        service.create_session_from_library("owner-1", uploaded)
        _fail_gallery_cleanup(monkeypatch, gallery)

        errors = service.delete_photo("owner-1", b, "owner-1")

        assert errors == ["gallery: gallery unavailable"]
        assert gallery.get_item("owner-1", b) is not None

        service.create_session_from_library("owner-1", [])
        service.create_session_from_library("owner-1", [a, b])

        battle = repo.load("owner-1")
        assert battle.find_photo(b) is None
        assert len(battle.photos) == 2
        assert battle.retired_photo_ids == [b]


class TestSetPublic:
    """Tests for set_public."""

    def test_owner_can_publish_and_unpublish(
        self, service: SessionService, repo: BattleRepository, uploaded: list[str]
    ) -> None:
        """Visibility flips and every change bumps the version token."""
        created = service.create_session_from_library("owner-1", uploaded)
        assert created.is_public is False

        published = service.set_public("owner-1", True, "owner-1")
        hidden = service.set_public("owner-1", False, "owner-1")

        assert published.is_public is True
        assert published.updated_at > created.updated_at
        assert hidden.is_public is False
        assert hidden.updated_at > published.updated_at
        assert repo.load("owner-1").is_public is False

    def test_other_user_cannot_publish(
        self, service: SessionService, repo: BattleRepository, uploaded: list[str]
    ) -> None:
        """Only the owner changes visibility."""
        before = service.create_session_from_library("owner-1", uploaded)

        with pytest.raises(PermissionDeniedError):
            service.set_public("owner-1", True, "intruder")

        after = repo.load("owner-1")
        assert after.is_public is False
        assert after.updated_at == before.updated_at

    def test_unknown_battle(self, service: SessionService) -> None:
        """Unknown battles raise SessionNotFoundError."""
        with pytest.raises(SessionNotFoundError):
            service.set_public("nobody", True, "nobody")


class TestRotateLink:
    """Tests for rotate_link."""

    def test_owner_can_rotate(self, service: SessionService, uploaded: list[str]) -> None:
        """Rotation replaces the key and records the old one."""
        battle = service.create_session_from_library("owner-1", uploaded)

        rotated = service.rotate_link("owner-1", "owner-1")

        assert rotated.secret_key != battle.secret_key
        assert rotated.link_history[0].secret_key == battle.secret_key
        assert rotated.link_history[0].expires_at == battle.link_expires_at

    def test_other_user_cannot_rotate(self, service: SessionService, uploaded: list[str]) -> None:
        """Only the owner can rotate."""
        service.create_session_from_library("owner-1", uploaded)
        with pytest.raises(PermissionDeniedError):
            service.rotate_link("owner-1", "intruder")


class TestDeletePhoto:
    """Tests for delete_photo."""

    def test_removes_photo_without_replay(
        self,
        service: SessionService,
        repo: BattleRepository,
        blob_store: BlobStore,
        gallery: GalleryStore,
        uploaded: list[str],
    ) -> None:
        """Deletes leave history, aliases and other ratings alone."""
        a, b, c = uploaded
        service.create_session_from_library("owner-1", uploaded)
        VoteService(repo).submit_vote("owner-1", a, b)
        before = repo.load("owner-1")
        storage_path = before.find_photo(b).storage_path

        errors = service.delete_photo("owner-1", b, "owner-1")

        after = repo.load("owner-1")
        assert errors == []
        assert after.find_photo(b) is None
        assert after.find_photo(a).rating == 1216
        assert after.photo_aliases == before.photo_aliases
        assert after.updated_at > before.updated_at
        assert len(repo.fetch_history("owner-1")) == 1
        assert not blob_store.exists(storage_path)
        assert gallery.get_item("owner-1", b) is None

    def test_unknown_photo(self, service: SessionService, uploaded: list[str]) -> None:
        """Deleting an unknown photo raises PhotoNotFoundError."""
        service.create_session_from_library("owner-1", uploaded)
        with pytest.raises(PhotoNotFoundError):
            service.delete_photo("owner-1", "missing", "owner-1")

    def test_not_owner(
        self, service: SessionService, repo: BattleRepository, uploaded: list[str]
    ) -> None:
        """Only the owner can delete photos."""
        service.create_session_from_library("owner-1", uploaded)
        with pytest.raises(PermissionDeniedError):
            service.delete_photo("owner-1", uploaded[0], "intruder")
        assert repo.load("owner-1").find_photo(uploaded[0]) is not None

    def test_cleanup_errors_are_reported(
        self,
        service: SessionService,
        repo: BattleRepository,
        blob_store: BlobStore,
        uploaded: list[str],
    ) -> None:
        """A blob that is already gone does not fail the delete."""
        battle = service.create_session_from_library("owner-1", uploaded)
        blob_store.delete_object(battle.find_photo(uploaded[0]).storage_path)

        errors = service.delete_photo("owner-1", uploaded[0], "owner-1")

        assert len(errors) == 1
        assert repo.load("owner-1").find_photo(uploaded[0]) is None


class TestLoadResults:
    """Tests for load_results."""

    def test_ranked_by_rating(
        self, service: SessionService, repo: BattleRepository, uploaded: list[str]
    ) -> None:
        """Results are sorted by rating, highest first."""
        battle = service.create_session_from_library("owner-1", uploaded)
        VoteService(repo).submit_vote("owner-1", uploaded[2], uploaded[0])

        results = service.load_results("owner-1", battle.secret_key)

        assert results[0].id == uploaded[2]
        assert results[-1].id == uploaded[0]

    def test_wrong_key(self, service: SessionService, uploaded: list[str]) -> None:
        """A wrong key is rejected."""
        service.create_session_from_library("owner-1", uploaded)
        with pytest.raises(InvalidSecretKeyError):
            service.load_results("owner-1", "guess")

    def test_unknown_battle(self, service: SessionService) -> None:
        """Unknown battles raise SessionNotFoundError."""
        with pytest.raises(SessionNotFoundError):
            service.load_results("nobody", "key")


class TestMergePhotos:
    """Tests for merge_photos."""

    def test_delegates_to_merge_service(
        self, service: SessionService, repo: BattleRepository, uploaded: list[str]
    ) -> None:
        """Merges go through the coordinator."""
        a, b, _ = uploaded
        service.create_session_from_library("owner-1", uploaded)

        result = service.merge_photos("owner-1", a, b, "owner-1")

        stored: PhotoBattle = repo.load("owner-1")
        assert result.photo_aliases == {b: a}
        assert stored.find_photo(b) is None
