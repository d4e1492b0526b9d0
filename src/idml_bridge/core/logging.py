"""Logging helpers shared across idml-bridge commands.

Command loggers write JSON lines to a rotating file under the workspace
``logs`` directory and optionally mirror to stderr. An export run also gets a
plain-text ``conversion-log.txt`` next to its IDML through
:func:`job_log_handler`.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator

__all__ = [
    "JOB_LOG_FORMAT",
    "JsonLogFormatter",
    "configure_logger",
    "job_log_handler",
]

JOB_LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
CONSOLE_FORMAT = "%(levelname)s %(message)s"

_FILE_MARKER = "_idml_bridge_file"
_CONSOLE_MARKER = "_idml_bridge_console"


def _standard_record_keys() -> frozenset[str]:
    blank = logging.LogRecord("", logging.INFO, "", 0, "", None, None)
    return frozenset(blank.__dict__) | {"message", "asctime", "taskName"}


class JsonLogFormatter(logging.Formatter):
    """Emit log records as structured JSON lines.

    Attributes passed through ``extra=`` are collected under ``"extra"``;
    paths become strings and anything not JSON friendly is ``repr``'d.
    """

    _RESERVED = _standard_record_keys()

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in self._RESERVED
        }
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, ensure_ascii=True)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    filename: str | None = None,
) -> tuple[logging.Logger, Path]:
    """Configure ``name`` and return it with the path of its log file.

    Calling this again for the same logger reuses its handlers, moving the
    file handler when the target path changed. ``verbose`` lowers the file
    level to DEBUG and adds a stderr mirror; without it the mirror is
    removed.
    """

    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(logging.DEBUG)

    log_name = filename or f"{name.rsplit('.', 1)[-1]}.log"
    path = _resolve_log_path(log_dir, log_name)

    handler = _file_handler(logger, path, max_bytes, backup_count)
    handler.setLevel(logging.DEBUG if verbose else _coerce_level(level))

    console = _tagged(logger, _CONSOLE_MARKER)
    if verbose:
        if console is None:
            console = logging.StreamHandler(stream=sys.stderr)
            console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
            setattr(console, _CONSOLE_MARKER, True)
            logger.addHandler(console)
        console.setLevel(logging.DEBUG)
    elif console is not None:
        logger.removeHandler(console)
        console.close()

    return logger, path


@contextmanager
def job_log_handler(
    logger: logging.Logger,
    path: Path,
    *,
    level: str = "DEBUG",
) -> Iterator[Path]:
    """Mirror ``logger`` into a plain-text job log for the duration of a run.

    The handler is flushed, closed and detached on every exit path, including
    setup failures raised inside the ``with`` block.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(_coerce_level(level))
    handler.setFormatter(logging.Formatter(JOB_LOG_FORMAT))
    logger.addHandler(handler)
    try:
        yield path
    finally:
        handler.flush()
        logger.removeHandler(handler)
        handler.close()


def _coerce_level(level: str) -> int:
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.INFO


def _tagged(logger: logging.Logger, marker: str) -> logging.Handler | None:
    for handler in logger.handlers:
        if getattr(handler, marker, False):
            return handler
    return None


def _file_handler(
    logger: logging.Logger,
    path: Path,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    current = _tagged(logger, _FILE_MARKER)
    if current is not None:
        if getattr(current, "baseFilename", None) == os.path.abspath(path):
            return current
        logger.removeHandler(current)
        current.close()

    handler = RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(JsonLogFormatter())
    setattr(handler, _FILE_MARKER, True)
    logger.addHandler(handler)
    return handler


def _resolve_log_path(log_dir: Path, filename: str) -> Path:
    """Return a writable log file path, falling back to the temp directory."""

    for directory in (log_dir, _fallback_log_dir()):
        path = directory / filename
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)
        except PermissionError:
            continue
        for target, mode in ((directory, 0o700), (path, 0o600)):
            try:
                target.chmod(mode)
            except PermissionError:  # pragma: no cover - depends on filesystem
                pass
        return path
    raise PermissionError(f"No writable log directory for {filename}")


def _fallback_log_dir() -> Path:
    return Path(tempfile.gettempdir()) / "idml-bridge-logs"


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _jsonable(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return repr(value)
