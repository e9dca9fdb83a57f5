"""Snapshot export/import format for quotebook.

A snapshot is a JSON object::

    {
      "version": 1,
      "exportedAt": "2026-01-01T00:00:00.000000+00:00",
      "categories": [{"id": 1, "name": "读书心得"}, ...],
      "quotes": [{"id": 1700000000000, "content": "...", ...}, ...]
    }

Import merges by id. Records keep their ids, nothing absent from the
snapshot is deleted, and optional fields missing from older exports get
defaults (confidence 0.7, last_accessed_at = created_at).
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from quotebook.lifecycle import clamp_confidence
from quotebook.protocols import InvalidFormatError
from quotebook.storage.base import category_to_record, quote_to_record
from quotebook.types import (
    DEFAULT_CONFIDENCE,
    SENTINEL_CATEGORY,
    Category,
    Quote,
    format_timestamp,
)

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

REQUIRED_KEYS = ("quotes", "categories")


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class CategoryRecord(BaseModel):
    """A category as it appears in a snapshot."""

    id: int
    name: str = Field(..., min_length=1)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    def to_category(self) -> Category:
        return Category(id=self.id, name=self.name)


class QuoteRecord(BaseModel):
    """A quote as it appears in a snapshot. Only id and content are required."""

    id: int
    content: str
    title: Optional[str] = None
    author: Optional[str] = None
    comment: Optional[str] = None
    category: Optional[str] = None
    is_pinned: Optional[bool] = None
    confidence: Optional[float] = None
    last_accessed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        extra = "ignore"

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content cannot be empty")
        return v

    def to_quote(self, known_categories: Collection[str], now: datetime) -> Quote:
        """Build a Quote, filling defaults for fields older exports lack."""
        created_at = _as_utc(self.created_at) or now
        category = self.category if self.category in known_categories else SENTINEL_CATEGORY
        confidence = DEFAULT_CONFIDENCE if self.confidence is None else self.confidence
        return Quote(
            id=self.id,
            title=self.title or "",
            content=self.content,
            author=self.author or "",
            comment=self.comment or "",
            category=category,
            is_pinned=bool(self.is_pinned),
            confidence=clamp_confidence(confidence),
            last_accessed_at=_as_utc(self.last_accessed_at) or created_at,
            created_at=created_at,
        )


class Snapshot(BaseModel):
    """A full export of both collections."""

    version: int = SNAPSHOT_VERSION
    exported_at: Optional[datetime] = Field(default=None, alias="exportedAt")
    categories: List[CategoryRecord]
    quotes: List[QuoteRecord]

    class Config:
        populate_by_name = True
        extra = "ignore"


@dataclass
class ImportResult:
    """Counts from one snapshot import."""

    categories_inserted: int = 0
    categories_updated: int = 0
    categories_skipped: int = 0
    quotes_inserted: int = 0
    quotes_updated: int = 0

    @property
    def total(self) -> int:
        return (
            self.categories_inserted
            + self.categories_updated
            + self.quotes_inserted
            + self.quotes_updated
        )


def build_snapshot(
    quotes: Sequence[Quote], categories: Sequence[Category], exported_at: datetime
) -> Dict[str, Any]:
    """Assemble the serializable snapshot dict."""
    return {
        "version": SNAPSHOT_VERSION,
        "exportedAt": format_timestamp(exported_at),
        "categories": [category_to_record(c) for c in categories],
        "quotes": [quote_to_record(q) for q in quotes],
    }


def dump_snapshot(snapshot: Mapping[str, Any]) -> str:
    return json.dumps(snapshot, ensure_ascii=False, indent=2)


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def parse_snapshot(data: Union[str, bytes, Mapping[str, Any]]) -> Snapshot:
    """Decode and validate a snapshot.

    Raises:
        InvalidFormatError: If the payload is not JSON, not an object, lacks
            ``quotes`` or ``categories``, or holds an invalid record.
    """
    if isinstance(data, (str, bytes)):
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidFormatError(f"Snapshot is not valid JSON: {e}") from e
    else:
        payload = data

    if not isinstance(payload, Mapping):
        raise InvalidFormatError("Snapshot must be a JSON object")

    for key in REQUIRED_KEYS:
        if key not in payload:
            raise InvalidFormatError(f"Snapshot is missing required key {key!r}")

    try:
        snapshot = Snapshot.model_validate(dict(payload))
    except ValidationError as e:
        raise InvalidFormatError(f"Invalid snapshot at {_describe(e)}") from e

    if snapshot.version > SNAPSHOT_VERSION:
        logger.warning(
            f"Snapshot version {snapshot.version} is newer than supported "
            f"version {SNAPSHOT_VERSION}; importing known fields only"
        )
    return snapshot
