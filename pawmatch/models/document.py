"""
Helpers for reading loosely-typed store documents into typed records.

Documents written by different screens over time use alternate keys for the
same attribute (``animalType`` vs ``species``, ``ageRange`` vs ``age``).
Each record model declares the keys it accepts as an ordered tuple and reads
them with ``first_value``: the first non-blank value wins.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from pawmatch.utils.time_utils import to_epoch_seconds

T = TypeVar("T")


def is_blank(value: Any) -> bool:
    """``True`` for ``None`` and the empty string (whitespace is not blank)."""
    return value is None or value == ""


def first_value(data: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """Return the first non-blank value among ``keys``; else ``None``."""
    for key in keys:
        value = data.get(key)
        if not is_blank(value):
            return value
    return None


def has_any_key(data: Mapping[str, Any], keys: Iterable[str]) -> bool:
    return any(key in data for key in keys)


def optional_str(value: Any) -> Optional[str]:
    """Coerce a document value to ``str``, keeping ``None``."""
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def first_resolved(
    source: T,
    accessors: Iterable[Callable[[T], Optional[str]]],
    default: str,
) -> str:
    """Try each accessor in order and return the first non-blank string.

    Used for display-name fallback chains, e.g. profile name → display name
    → email → literal default.
    """
    for accessor in accessors:
        value = accessor(source)
        if not is_blank(value):
            return str(value)
    return default


def optional_seconds(value: Any) -> Optional[float]:
    """Epoch seconds for a document timestamp, or ``None`` when absent."""
    seconds = to_epoch_seconds(value)
    return seconds if seconds > 0 else None
