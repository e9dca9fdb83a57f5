"""Key/value persistence for the local store.

The local store keeps each collection as a JSON string under a fixed key,
the same shape a browser's localStorage would hold. FileKeyValueStore
persists those strings as files under the data directory.
"""

import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


def validate_key(key: str) -> str:
    """Validate a key before it becomes part of a file name.

    Raises:
        ValueError: If the key is not a lowercase identifier.
    """
    if not isinstance(key, str) or not _KEY_PATTERN.match(key):
        raise ValueError(f"Invalid store key: {key!r}")
    return key


class FileKeyValueStore:
    """String values stored one file per key, written atomically.

    Args:
        root: Directory holding the files. Created on first write.
    """

    def __init__(self, root: Path):
        self.root = Path(root).expanduser()

    def _path(self, key: str) -> Path:
        return self.root / f"{validate_key(key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{key}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, path)
        except OSError:
            logger.error(f"Failed to write local store key {key!r}", exc_info=True)
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class MemoryKeyValueStore:
    """Process-local key/value store. Nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(validate_key(key))

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[validate_key(key)] = value
