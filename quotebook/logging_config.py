"""Logging setup for quotebook.

Two outputs:
- the ``quotebook`` logger, written to ``<data_dir>/logs/quotebook-<date>.log``
- a store event log, ``<data_dir>/logs/store-events-<date>.log``, with one
  line per storage-level occurrence (fallbacks, imports, decay sweeps)
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from quotebook.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Set by setup_quotebook_logging; None means follow the cached settings.
_configured_log_dir: Optional[Path] = None


def _log_dir() -> Path:
    if _configured_log_dir is not None:
        return _configured_log_dir
    return get_settings().data_dir / "logs"


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_quotebook_logging(
    level: str = "INFO", log_dir: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """Configure the ``quotebook`` logger.

    Args:
        level: Level name, case-insensitive. Unknown names fall back to INFO.
            DEBUG also echoes to the console.
        log_dir: Directory for the log file and the store event log,
            usually ``settings.data_dir / "logs"``. Defaults to the logs
            directory under the cached settings' data dir.

    Returns:
        The configured ``quotebook`` logger. Calling this again does not add
        duplicate handlers.
    """
    level_name = (level or "INFO").upper()
    if level_name not in _VALID_LEVELS:
        level_name = "INFO"
    numeric_level = getattr(logging, level_name)

    global _configured_log_dir
    if log_dir is not None:
        _configured_log_dir = Path(log_dir)

    logger = logging.getLogger("quotebook")
    logger.setLevel(numeric_level)

    directory = _log_dir()
    directory.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)

    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(directory / f"quotebook-{_today()}.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if numeric_level == logging.DEBUG and not has_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    return logger


def log_store_event(event_type: str, details: str, backend: str = "local") -> None:
    """Append one line to the store event log.

    Failures are reported at DEBUG and never reach the caller.
    """
    try:
        log_dir = _log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        line = f"{timestamp} | {event_type} | backend={backend} | {details}\n"
        with open(log_dir / f"store-events-{_today()}.log", "a", encoding="utf-8") as f:
            f.write(line)
    except (OSError, ValueError) as e:
        logging.getLogger(__name__).debug(f"Failed to write store event: {e}")


def log_fallback(operation: str, error: Exception) -> None:
    """Record a remote read failure that was served from the local store."""
    log_store_event("fallback", f"op={operation}, error={error}", backend="remote")


def log_import(backend: str, **counts: int) -> None:
    """Record a snapshot import with its per-kind counts."""
    details = ", ".join(f"{key}={value}" for key, value in counts.items())
    log_store_event("import", details, backend=backend)


def log_decay(backend: str, decayed: int, scanned: int) -> None:
    """Record a decay sweep."""
    log_store_event("decay", f"decayed={decayed}, scanned={scanned}", backend=backend)
