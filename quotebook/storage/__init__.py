"""quotebook storage backends.

This module provides the storage abstraction layer for quotebook:
a relational RemoteStore and a key/value backed LocalStore behind one
QuoteStore contract.
"""

from .base import (
    ConfidenceUpdate,
    QuoteStore,
    category_from_record,
    category_to_record,
    quote_from_record,
    quote_to_record,
)
from .kv import FileKeyValueStore, MemoryKeyValueStore
from .local import LocalStore
from .query import QuoteQuery, escape_like_pattern
from .remote import RemoteStore, normalize_database_url
from .selector import BackendSelector

__all__ = [
    # Contract
    "QuoteStore",
    "ConfidenceUpdate",
    "QuoteQuery",
    # Implementations
    "LocalStore",
    "RemoteStore",
    "BackendSelector",
    # Key/value stores
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    # Utilities
    "escape_like_pattern",
    "normalize_database_url",
    "quote_to_record",
    "quote_from_record",
    "category_to_record",
    "category_from_record",
]
