"""Shared helper functions for CLI commands."""

import json
import re
from typing import Any, Optional

from quotebook.lifecycle import confidence_band
from quotebook.types import Quote


def validate_input(value: str, field_name: str, max_length: int = 1000) -> str:
    """Validate and sanitize CLI inputs."""
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")

    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters)")

    # Remove null bytes and control characters except newlines
    sanitized = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)

    return sanitized


def optional_input(value: Optional[str], field_name: str, max_length: int = 1000) -> Optional[str]:
    """Like validate_input, but passes None through."""
    if value is None:
        return None
    return validate_input(value, field_name, max_length)


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def format_quote(quote: Quote) -> str:
    """One quote as a short multi-line block."""
    pin = "📌 " if quote.is_pinned else ""
    heading = f"[{quote.id}] {pin}{quote.title}".rstrip()
    lines = [heading, f"  {quote.content}"]
    if quote.author:
        lines.append(f"  ~ {quote.author}")
    if quote.comment:
        lines.append(f"  💭 {quote.comment}")
    band = confidence_band(quote.confidence).value
    lines.append(f"  {quote.category} · confidence {quote.confidence:.2f} ({band})")
    return "\n".join(lines)
