"""
Pytest fixtures and test configuration for quotebook tests.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from quotebook import logging_config
from quotebook.config import get_settings
from quotebook.service import QuoteBook
from quotebook.storage import LocalStore, MemoryKeyValueStore, RemoteStore

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; ``advance`` moves it forward."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep data files and logs out of the real home directory."""
    home = tmp_path / "quotebook_home"
    monkeypatch.setenv("QUOTEBOOK_DATA_DIR", str(home))
    monkeypatch.delenv("QUOTEBOOK_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("QUOTEBOOK_LOG_LEVEL", raising=False)
    get_settings.cache_clear()
    yield home
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_quotebook_logger(monkeypatch):
    """Remove handlers and the log dir set by setup_quotebook_logging between tests."""
    monkeypatch.setattr(logging_config, "_configured_log_dir", None)
    logger = logging.getLogger("quotebook")
    yield
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def clock_factory():
    """Build independent clocks for tests that seed several stores."""
    return FakeClock


@pytest.fixture
def database_url(tmp_path):
    """A file-backed SQLite database standing in for the remote server."""
    return f"sqlite:///{tmp_path / 'remote.db'}"


@pytest.fixture
def remote_store(database_url):
    store = RemoteStore(database_url)
    yield store
    store.close()


@pytest.fixture
def local_store():
    return LocalStore(MemoryKeyValueStore())


@pytest.fixture(params=["local", "remote"])
def store(request, database_url):
    """Each test using this fixture runs once per backend."""
    if request.param == "local":
        yield LocalStore(MemoryKeyValueStore())
    else:
        remote = RemoteStore(database_url)
        yield remote
        remote.close()


@pytest.fixture
def book(store, clock):
    """A QuoteBook over each backend, without fallback."""
    return QuoteBook(store, clock=clock)


@pytest.fixture
def local_book(local_store, clock):
    return QuoteBook(local_store, clock=clock)


@pytest.fixture
def remote_book(remote_store, local_store, clock):
    """Remote-backed QuoteBook with the local store as read fallback."""
    return QuoteBook(remote_store, fallback=local_store, clock=clock)
