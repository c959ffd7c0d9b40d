"""
Document store collaborator interface.

The engine talks to its backing store only through ``DocumentStore``:
get-by-id, put (optionally merging), add-with-generated-id, field update,
one-shot ``query`` and live ``subscribe``. A subscription delivers either a
snapshot (the full current result of its query) or an error, and must be
released with ``Subscription.unsubscribe()``.

``Query`` is an immutable description: equality filters, an optional
order-by field, and an optional limit. ``Query.unordered()`` gives the
fallback form used when the ordered query cannot be served.

Ordered queries that also filter need a composite index on the store side
(``Query.required_index``). Stores report a missing index as
``MissingIndexError``: raised from ``query()``, delivered to ``on_error``
from ``subscribe()``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional

Document = dict[str, Any]
DocumentSnapshot = list[tuple[str, Document]]
SnapshotCallback = Callable[[DocumentSnapshot], None]
ErrorCallback = Callable[[Exception], None]


class _ServerTimestamp:
    """Sentinel replaced by the store's clock at write time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Query:
    """Immutable query over one collection.

    Attributes:
        collection: Collection path, e.g. ``"pets"`` or
            ``"threads/p1_a1_s1/messages"``.
        filters:    ``(field, value)`` equality predicates, all must hold.
        order_by:   Field to sort by, or ``None`` for store order.
        descending: Sort direction when ``order_by`` is set.
        limit:      Maximum documents returned, or ``None``.
    """

    collection: str
    filters:    tuple[tuple[str, Any], ...] = ()
    order_by:   Optional[str] = None
    descending: bool = True
    limit:      Optional[int] = None

    def where(self, field: str, value: Any) -> "Query":
        return replace(self, filters=self.filters + ((field, value),))

    def ordered(self, field: str, descending: bool = True) -> "Query":
        return replace(self, order_by=field, descending=descending)

    def limited(self, limit: Optional[int]) -> "Query":
        return replace(self, limit=limit)

    def unordered(self) -> "Query":
        """Same predicate and limit without ``order_by`` (needs no index)."""
        return replace(self, order_by=None)

    @property
    def required_index(self) -> Optional[tuple[str, ...]]:
        """Composite index fields this query needs, or ``None``."""
        if self.order_by is None or not self.filters:
            return None
        return tuple(f for f, _ in self.filters) + (self.order_by,)

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return all(doc.get(f) == v for f, v in self.filters)

    def describe(self) -> str:
        parts = [self.collection]
        parts += [f"{f}=={v!r}" for f, v in self.filters]
        if self.order_by:
            parts.append(f"order_by {self.order_by} {'desc' if self.descending else 'asc'}")
        if self.limit is not None:
            parts.append(f"limit {self.limit}")
        return " | ".join(parts)


class Subscription:
    """Handle for a live query; ``unsubscribe`` is idempotent."""

    def __init__(self, release: Optional[Callable[[], None]] = None) -> None:
        self._release = release
        self._active = release is not None

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        release, self._release = self._release, None
        if release is not None:
            release()


class DocumentStore(ABC):
    """Key-value document service with live subscriptions."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Return a copy of the document, or ``None`` when absent."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False) -> None:
        """Write a document; with ``merge=True`` top-level fields are merged."""

    @abstractmethod
    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        """Insert under a generated id and return it."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Merge ``fields`` into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """

    @abstractmethod
    def query(self, query: Query) -> DocumentSnapshot:
        """Run a one-shot query.

        Raises:
            QueryError: If the query cannot be served (e.g. missing index).
        """

    @abstractmethod
    def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Start a live query. Errors go to ``on_error``; may also raise
        ``QueryError`` when the subscription cannot be created at all."""
