"""Structured JSON logging module for photobattle."""

import json
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

DEFAULT_LOG_PATH = Path("data/logs/photobattle.jsonl")

_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def generate_id() -> str:
    """Generate a request or run id.

    Example:
        >>> len(generate_id()) > 0
        True
    """
    try:
        return str(uuid.uuid4())
    except OSError:
        # No entropy source available
        return datetime.now(tz=UTC).isoformat()


def set_run_id(run_id: str | None) -> None:
    """Set the run ID for the current context (e.g. one CLI invocation)."""
    _run_id.set(run_id)


def get_run_id() -> str | None:
    return _run_id.get()


def set_request_id(request_id: str | None) -> None:
    """Set the request ID for the current context (one HTTP request)."""
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


class JSONLogger:
    """Logger that writes JSON Lines to a file with consistent metadata.

    Every entry carries a timestamp, level, logger name and message, plus the
    current run/request ids when set. Writes are serialised with a file lock so
    the API workers and the CLI can share one log file.
    """

    def __init__(self, name: str, log_path: str | Path | None = None):
        self.name = name
        self.log_path = log_path if log_path is not None else DEFAULT_LOG_PATH

    @property
    def log_path(self) -> Path:
        """Get the log file path."""
        return self._log_path

    @log_path.setter
    def log_path(self, value: str | Path) -> None:
        """Set the log file path, creating its directory."""
        self._log_path = Path(value)
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_path = self._log_path.with_suffix(self._log_path.suffix + ".lock")

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, (str, int, float, bool, type(None))):
            return value
        if isinstance(value, (list, tuple, set)):
            return [self._serialize_value(v) for v in value]
        if isinstance(value, dict):
            return {str(k): self._serialize_value(v) for k, v in value.items()}
        return str(value)

    def _log(self, level: str, message: str, metadata: dict[str, Any] | None = None) -> None:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
        }

        run_id = get_run_id()
        if run_id:
            entry["run_id"] = run_id

        request_id = get_request_id()
        if request_id:
            entry["request_id"] = request_id

        if metadata:
            entry["metadata"] = self._serialize_value(metadata)

        json_line = json.dumps(entry, ensure_ascii=False)

        with FileLock(self._lock_path):
            with self._log_path.open("a", encoding="utf-8") as f:
                f.write(json_line + "\n")

    def info(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self._log("info", message, metadata)

    def error(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self._log("error", message, metadata)

    def warning(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self._log("warning", message, metadata)

    def debug(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self._log("debug", message, metadata)


_loggers: dict[str, JSONLogger] = {}


def get_logger(name: str) -> JSONLogger:
    """Get or create a logger with the given name.

    Args:
        name: Logger name (typically module name, e.g., "services.merge_service")

    Returns:
        JSONLogger instance
    """
    if name not in _loggers:
        _loggers[name] = JSONLogger(name)
    return _loggers[name]


def configure_log_path(log_path: str | Path) -> None:
    """Point every existing and future logger at ``log_path``."""
    global DEFAULT_LOG_PATH

    DEFAULT_LOG_PATH = Path(log_path)
    for logger in _loggers.values():
        logger.log_path = log_path
