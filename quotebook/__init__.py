"""
quotebook - Personal quote keeping with a knowledge-freshness lifecycle.

Quotes and categories live in a remote relational database or a local
key/value store, behind one QuoteBook service.
"""

from .protocols import (
    BackendUnavailableError,
    ConflictError,
    InvalidFormatError,
    NotFoundError,
    ProtectedCategoryError,
    QuotebookError,
    StorageError,
    UnauthorizedOperationError,
)
from .service import QuoteBook
from .types import ALL_CATEGORIES, SENTINEL_CATEGORY, Category, Quote

try:
    from importlib.metadata import version

    __version__ = version("quotebook")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "QuoteBook",
    "Quote",
    "Category",
    "ALL_CATEGORIES",
    "SENTINEL_CATEGORY",
    "QuotebookError",
    "NotFoundError",
    "ConflictError",
    "InvalidFormatError",
    "ProtectedCategoryError",
    "StorageError",
    "BackendUnavailableError",
    "UnauthorizedOperationError",
]
