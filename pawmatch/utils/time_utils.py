"""
Timestamp helpers.

Documents carry timestamps in several shapes depending on who wrote them:
epoch seconds (what ``SqliteDocumentStore`` writes for ``SERVER_TIMESTAMP``),
timezone-aware ``datetime`` objects, ISO-8601 strings, or ``{"seconds": n}``
mappings exported from hosted document stores. ``to_epoch_seconds`` folds
all of them to a float so sort policies can compare them directly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(tz=timezone.utc)


def utc_epoch_seconds() -> float:
    """Return the current UTC time as epoch seconds."""
    return utcnow().timestamp()


def to_epoch_seconds(value: Any) -> float:
    """Coerce a document timestamp to epoch seconds.

    Missing or unparseable values map to ``0.0`` (epoch), so documents
    without a timestamp sort last in descending order.

    Args:
        value: ``None``, int/float seconds, ``datetime``, ISO string, or a
            mapping with a ``seconds`` key.

    Returns:
        Float seconds since the Unix epoch.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, dict):
        return to_epoch_seconds(value.get("seconds"))
    if isinstance(value, str):
        try:
            return to_epoch_seconds(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return 0.0
    return 0.0


def from_epoch_seconds(value: Any) -> datetime | None:
    """Inverse of ``to_epoch_seconds`` for display; ``None`` when absent."""
    seconds = to_epoch_seconds(value)
    if seconds <= 0:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
