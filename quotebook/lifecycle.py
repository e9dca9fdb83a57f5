"""Knowledge lifecycle: confidence boost and decay.

A quote's confidence is its knowledge freshness. Re-reading a quote boosts
it; a maintenance sweep decays quotes that have not been touched for a
week. All state lives in ``Quote.confidence``; bands are derived for
display only.
"""

import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from quotebook.protocols import InvalidFormatError
from quotebook.types import DEFAULT_CONFIDENCE

BOOST_STEP = 0.1
DECAY_STEP = 0.05
DECAY_AFTER = timedelta(days=7)

# Repeated float steps drift (0.7 + 0.1 == 0.7999999999999999); four
# decimals is well below any step size.
_PRECISION = 4

__all__ = [
    "BOOST_STEP",
    "DECAY_AFTER",
    "DECAY_STEP",
    "DEFAULT_CONFIDENCE",
    "ConfidenceBand",
    "boosted",
    "clamp_confidence",
    "confidence_band",
    "decayed",
    "is_stale",
]


class ConfidenceBand(str, Enum):
    """Display band for a confidence value."""

    DORMANT = "dormant"
    FADING = "fading"
    WANING = "waning"
    SPROUTING = "sprouting"
    THRIVING = "thriving"


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value to [0.0, 1.0].

    Raises:
        InvalidFormatError: If the value is not a finite number.
    """
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidFormatError(f"confidence must be a number, got {value!r}") from e
    if math.isnan(value) or math.isinf(value):
        raise InvalidFormatError(f"confidence must be finite, got {value}")
    return round(max(0.0, min(1.0, value)), _PRECISION)


def boosted(confidence: float) -> float:
    return clamp_confidence(confidence + BOOST_STEP)


def decayed(confidence: float) -> float:
    return clamp_confidence(confidence - DECAY_STEP)


def is_stale(last_accessed_at: Optional[datetime], now: datetime) -> bool:
    """True if the quote has not been accessed within DECAY_AFTER."""
    if last_accessed_at is None:
        return False
    return now - last_accessed_at > DECAY_AFTER


def confidence_band(confidence: float) -> ConfidenceBand:
    """Map a confidence value to its display band.

    dormant is exactly 0; fading (0, 0.3); waning [0.3, 0.7);
    sprouting [0.7, 0.8); thriving [0.8, 1.0].
    """
    if confidence <= 0.0:
        return ConfidenceBand.DORMANT
    if confidence < 0.3:
        return ConfidenceBand.FADING
    if confidence < 0.7:
        return ConfidenceBand.WANING
    if confidence < 0.8:
        return ConfidenceBand.SPROUTING
    return ConfidenceBand.THRIVING
