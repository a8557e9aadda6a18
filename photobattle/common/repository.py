"""Battle session store backed by the filesystem.

Layout under ``data_dir``:
    battles/<battle_id>.json            session document (photos, aliases, token)
    battles/<battle_id>/history.jsonl   append-only vote history

All document mutations go through ``BattleRepository.transaction``, which
holds the document lock for the whole read-modify-write and bumps the
``updated_at`` version token on commit. Reads outside a transaction see a
consistent snapshot because documents are replaced atomically.

Example:
    >>> repo = BattleRepository(data_dir="data")
    >>> with repo.transaction("owner-1") as txn:
    ...     photos = [p for p in txn.snapshot.photos if p.id != "photo-9"]
    ...     txn.update(photos=photos)
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from filelock import FileLock

from photobattle.common.errors import BattleError, InvalidBattleIdError, SessionNotFoundError
from photobattle.common.models import BattleHistoryEntry, PhotoBattle
from photobattle.common.persistence import (
    append_jsonl,
    is_path_segment,
    lock_path_for,
    read_json_document,
    read_jsonl,
    write_json_document,
)

_VERSION_STEP = timedelta(microseconds=1)


def next_version(previous: datetime | None) -> datetime:
    """Return a version token strictly later than ``previous``.

    Uses the wall clock, nudged forward when the clock has not advanced past
    the previous token (coarse clocks, skew between writers).
    """
    now = datetime.now(tz=UTC)
    if previous is not None and now <= previous:
        return previous + _VERSION_STEP
    return now


class BattleTransaction:
    """Pending changes to one battle, applied on commit.

    ``snapshot`` is the document as read under the lock. Changes made through
    ``update`` and ``append_history`` are only written when the transaction
    block exits without an exception.
    """

    def __init__(self, snapshot: PhotoBattle) -> None:
        self.snapshot = snapshot
        self.committed: PhotoBattle | None = None
        self._updates: dict[str, Any] = {}
        self._history: list[BattleHistoryEntry] = []

    def update(self, **fields: Any) -> None:
        unknown = set(fields) - set(PhotoBattle.model_fields)
        if unknown:
            raise BattleError(f"Unknown battle fields: {', '.join(sorted(unknown))}")
        if "updated_at" in fields:
            raise BattleError("updated_at is managed by the transaction")
        self._updates.update(fields)

    def append_history(self, entry: BattleHistoryEntry) -> None:
        self._history.append(entry)

    @property
    def has_changes(self) -> bool:
        return bool(self._updates or self._history)

    def build(self) -> PhotoBattle:
        return self.snapshot.model_copy(
            update={**self._updates, "updated_at": next_version(self.snapshot.updated_at)},
            deep=True,
        )

    @property
    def pending_history(self) -> list[BattleHistoryEntry]:
        return list(self._history)

    def require_committed(self) -> PhotoBattle:
        """Return the written document once the transaction block has exited.

        Raises:
            BattleError: If the block made no changes, so nothing was written.
        """
        if self.committed is None:
            raise BattleError(f"Transaction on {self.snapshot.id} committed no changes")
        return self.committed


class BattleRepository:
    """Data access for battle session documents and their history logs.

    Args:
        data_dir: Directory containing the ``battles`` tree (default: "data")
    """

    def __init__(self, data_dir: str | Path = "data") -> None:
        self._data_dir = Path(data_dir)

    @property
    def battles_dir(self) -> Path:
        return self._data_dir / "battles"

    @staticmethod
    def _checked_id(battle_id: str) -> str:
        if not is_path_segment(battle_id):
            raise InvalidBattleIdError(battle_id)
        return battle_id

    def session_path(self, battle_id: str) -> Path:
        return self.battles_dir / f"{self._checked_id(battle_id)}.json"

    def history_path(self, battle_id: str) -> Path:
        return self.battles_dir / self._checked_id(battle_id) / "history.jsonl"

    def exists(self, battle_id: str) -> bool:
        return self.session_path(battle_id).exists()

    def load(self, battle_id: str) -> PhotoBattle:
        """Read the current session document.

        Raises:
            SessionNotFoundError: If the battle doesn't exist.
        """
        try:
            return read_json_document(self.session_path(battle_id), PhotoBattle)
        except FileNotFoundError as e:
            raise SessionNotFoundError(battle_id) from e

    def create(self, battle: PhotoBattle) -> PhotoBattle:
        """Persist a new battle with an initial version token.

        Raises:
            BattleError: If a battle with the same id already exists.
        """
        path = self.session_path(battle.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(lock_path_for(path)):
            if path.exists():
                raise BattleError(f"Battle already exists: {battle.id}")
            created = battle.model_copy(update={"updated_at": next_version(battle.updated_at)})
            write_json_document(path, created)
        return created

    def fetch_history(self, battle_id: str) -> list[BattleHistoryEntry]:
        """Return every history entry for the battle, oldest first.

        Entries with the same ``created_at`` keep file (append) order.
        """
        try:
            entries = read_jsonl(self.history_path(battle_id), BattleHistoryEntry)
        except FileNotFoundError:
            return []
        return sorted(entries, key=lambda entry: entry.created_at)

    @contextmanager
    def transaction(self, battle_id: str) -> Iterator[BattleTransaction]:
        """Run a read-modify-write on one battle under its document lock.

        History entries are appended before the document is replaced, so the
        log is never behind the rating projection.

        Raises:
            SessionNotFoundError: If the battle doesn't exist.
        """
        path = self.session_path(battle_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(lock_path_for(path)):
            txn = BattleTransaction(self.load(battle_id))
            yield txn
            if not txn.has_changes:
                return
            committed = txn.build()
            for entry in txn.pending_history:
                append_jsonl(self.history_path(battle_id), entry)
            write_json_document(path, committed)
            txn.committed = committed
