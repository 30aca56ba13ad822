"""Structured logging setup for LoadSurge."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

_ROOT = "loadsurge"


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter.

    Emits objects with keys: timestamp, level, logger, message, and
    ``run_id`` when the record was logged through a :class:`RunLogger`.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        run_id = getattr(record, "run_id", None)
        if run_id is not None:
            entry["run_id"] = run_id
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        msg = f"Unknown log level: {level!r}"
        raise ValueError(msg)
    return resolved


def setup_logging(
    level: int | str = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root ``loadsurge`` logger.

    Installs a single stderr handler. Calling it again only updates the
    level, so handlers are never duplicated.

    Args:
        level: Logging level as an int or a name such as ``"debug"``.
        json_format: Emit one-line JSON logs instead of human-readable ones.

    Returns:
        The configured ``loadsurge`` root logger.
    """
    numeric = _resolve_level(level)
    logger = logging.getLogger(_ROOT)
    logger.setLevel(numeric)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(numeric)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Keep records out of the root logger to avoid duplicate output
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``loadsurge`` namespace.

    Args:
        name: Logger name, appended to the ``loadsurge.`` prefix.
            ``get_logger("hub")`` returns ``logging.getLogger("loadsurge.hub")``.

    Returns:
        The child logger.
    """
    return logging.getLogger(f"{_ROOT}.{name}")


class RunLogger(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter that tags every record with a simulation run id."""

    def __init__(self, logger: logging.Logger, run_id: int) -> None:
        super().__init__(logger, {"run_id": run_id})

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"[run {self.extra['run_id']}] {msg}", kwargs
