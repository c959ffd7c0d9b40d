"""
Deterministic conversation ids for a (pet, adopter, shelter) triple.

The id is both the lookup key and the creation key of a ``threads``
document, so at most one conversation exists per triple::

    thread_id_for("p1", "a1", "s1") == "p1_a1_s1"

Component ids are issued by the document store (20-char alphanumeric) and
the auth service (alphanumeric uids), so ``_`` never appears inside a
component in practice. ``parse_thread_id`` does not rely on that: an id that
does not split into exactly three parts is reported as unparseable
(``None``) instead of being mis-split.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

SEPARATOR = "_"


@dataclass(frozen=True)
class ThreadKey:
    """Structured form of a thread id."""

    pet_id: str
    adopter_id: str
    shelter_id: str

    @property
    def thread_id(self) -> str:
        return SEPARATOR.join((self.pet_id, self.adopter_id, self.shelter_id))


def _component(value: Any) -> str:
    return "" if value is None else str(value).strip()


def thread_key_for(pet_id: Any, adopter_id: Any, shelter_id: Any) -> ThreadKey:
    """Normalised key: each part coerced to ``str`` and trimmed; ``None`` → ``""``."""
    return ThreadKey(_component(pet_id), _component(adopter_id), _component(shelter_id))


def thread_id_for(pet_id: Any, adopter_id: Any, shelter_id: Any) -> str:
    """Deterministic thread id ``"{pet}_{adopter}_{shelter}"``. Never raises."""
    return thread_key_for(pet_id, adopter_id, shelter_id).thread_id


def parse_thread_id(thread_id: Optional[str]) -> Optional[ThreadKey]:
    """Split a thread id back into its components.

    Returns ``None`` for ``None`` or any id that does not have exactly
    three ``_``-separated parts.
    """
    if not thread_id:
        return None
    parts = str(thread_id).split(SEPARATOR)
    if len(parts) != 3:
        return None
    return ThreadKey(*parts)


def is_safe_component(value: Any) -> bool:
    """``True`` when ``value`` can be embedded in a thread id and recovered."""
    return SEPARATOR not in _component(value)
