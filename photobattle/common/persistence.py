"""File persistence for battle documents and append-only logs.

Documents are single JSON files replaced atomically; logs are JSON Lines files
only ever appended to. Both are written with camelCase keys.

Locking is the caller's concern for documents (see ``BattleRepository``),
because a read-compare-write cycle must hold the lock across all three steps.
Appends take their own lock.
"""

import tempfile
from pathlib import Path, PurePosixPath
from typing import TypeVar

from filelock import FileLock
from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


def lock_path_for(path: str | Path) -> Path:
    """Return the lock file path guarding ``path``."""
    path = Path(path)
    return path.with_suffix(path.suffix + ".lock")


def is_path_segment(name: str) -> bool:
    """True when ``name`` is a single file name with no directory parts."""
    return PurePosixPath(name).parts == (name,) and name != ".." and "\\" not in name


def _dump(obj: BaseModel) -> str:
    return obj.model_dump_json(by_alias=True)


def append_jsonl(path: str | Path, obj: BaseModel) -> None:
    """Append a Pydantic model as a JSON line to a JSONL file.

    Creates the file and its parent directories if they don't exist.

    Args:
        path: Path to the JSONL file
        obj: Pydantic model instance to append
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with FileLock(lock_path_for(path)):
        with path.open("a", encoding="utf-8") as f:
            f.write(_dump(obj) + "\n")


def read_jsonl(path: str | Path, model_class: type[T]) -> list[T]:
    """Read all lines from a JSONL file as model instances, in file order.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    results: list[T] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                results.append(model_class.model_validate_json(line))

    return results


def write_jsonl(path: str | Path, objects: list[T]) -> None:
    """Rewrite a JSONL file atomically under its lock."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with FileLock(lock_path_for(path)):
        _atomic_write(path, "".join(_dump(obj) + "\n" for obj in objects))


def read_json_document(path: str | Path, model_class: type[T]) -> T:
    """Read a single JSON document as a model instance.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    return model_class.model_validate_json(path.read_text(encoding="utf-8"))


def write_json_document(path: str | Path, obj: BaseModel) -> None:
    """Replace a JSON document atomically.

    Writes to a temp file in the same directory, then renames it over the
    target so readers see either the old or the new document, never a partial
    one. The caller must hold the document's lock.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write(path, _dump(obj))


def _atomic_write(path: Path, content: str) -> None:
    fd, temp_path_str = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    temp_path = Path(temp_path_str)
    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(content)
        temp_path.replace(path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
