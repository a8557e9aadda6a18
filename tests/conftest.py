from pathlib import Path

import pytest

import photobattle.common.logging as logging_module
from photobattle.common.logging import configure_log_path, set_request_id, set_run_id
from photobattle.common.models import BattlePhoto, PhotoBattle
from photobattle.common.repository import BattleRepository
from photobattle.common.storage import BlobStore, GalleryStore


@pytest.fixture(autouse=True)
def isolated_log(tmp_path_factory: pytest.TempPathFactory):
    """Send every logger to a per-test file."""
    original = logging_module.DEFAULT_LOG_PATH
    log_path = tmp_path_factory.mktemp("logs") / "photobattle.jsonl"
    configure_log_path(log_path)
    yield log_path
    configure_log_path(original)
    set_run_id(None)
    set_request_id(None)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def repo(data_dir: Path) -> BattleRepository:
    return BattleRepository(data_dir=data_dir)


@pytest.fixture
def blob_store(data_dir: Path) -> BlobStore:
    return BlobStore(data_dir / "blobs")


@pytest.fixture
def gallery(data_dir: Path) -> GalleryStore:
    return GalleryStore(data_dir)


def make_battle(photo_ids: list[str], owner_id: str = "owner-1") -> PhotoBattle:
    return PhotoBattle(
        id=owner_id,
        owner_id=owner_id,
        secret_key="secret-key",
        photos=[
            BattlePhoto(
                id=photo_id,
                url=f"https://example.test/{photo_id}.jpg",
                storage_path=f"images/original/{owner_id}/{photo_id}.jpg",
            )
            for photo_id in photo_ids
        ],
    )


@pytest.fixture
def battle_abc(repo: BattleRepository) -> PhotoBattle:
    """Stored battle with live photos A, B and C and no votes."""
    return repo.create(make_battle(["A", "B", "C"]))
