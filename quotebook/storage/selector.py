"""Backend selection.

Decides once, at construction, which store is active. A configured and
well-formed database URL selects the RemoteStore; anything else selects the
LocalStore. Selection only validates configuration shape; it never opens a
connection, so ``is_remote_active()`` is advisory.
"""

import logging
from typing import Optional

from sqlalchemy.exc import ArgumentError, NoSuchModuleError

from quotebook.config import Settings

from .base import QuoteStore
from .kv import FileKeyValueStore
from .local import KeyValueStore, LocalStore
from .remote import RemoteStore

logger = logging.getLogger(__name__)


class BackendSelector:
    """Resolve the active store from settings.

    Args:
        settings: Application settings (database_url, data_dir).
        kv: Key/value store for the local backend. Defaults to files under
            ``settings.data_dir``.
    """

    def __init__(self, settings: Settings, kv: Optional[KeyValueStore] = None):
        self.settings = settings
        self._local = LocalStore(kv if kv is not None else FileKeyValueStore(settings.data_dir))
        self._remote = self._build_remote(settings.database_url)

    @staticmethod
    def _build_remote(database_url: Optional[str]) -> Optional[RemoteStore]:
        if not database_url or not database_url.strip():
            logger.warning("No database URL configured; using local storage")
            return None
        try:
            return RemoteStore(database_url)
        except (ArgumentError, NoSuchModuleError, ImportError, ValueError) as e:
            logger.error(f"Failed to initialize remote database, using local storage: {e}")
            return None

    def is_remote_active(self) -> bool:
        return self._remote is not None

    @property
    def active(self) -> QuoteStore:
        return self._remote if self._remote is not None else self._local

    @property
    def local(self) -> LocalStore:
        return self._local

    @property
    def remote(self) -> Optional[RemoteStore]:
        return self._remote
