"""
Live collection merger: several live subscriptions → one ordered view.

Each source is a ``FailoverSubscription``: an ordered primary query with an
unordered fallback for when the store cannot serve the primary (typically
a missing composite index). Every snapshot a source delivers is merged into
the shared ``LiveCollectionView`` by id, last writer wins.

Merge rules
-----------
- Every id in the incoming batch replaces the stored document wholesale.
- Ids absent from the batch are left untouched, whichever source wrote them.
- The ordered sequence is rebuilt and swapped in together with the mapping;
  readers see either the old view or the new one, never a mix.
- Sorting is stable, so re-delivering a snapshot never reorders the view.

Usage
-----
    with LiveCollectionMerger(store, SortPolicy("lastMessageAt")) as merger:
        merger.add_source("as_adopter", primary, fallback)
        merger.add_source("as_shelter", primary2, fallback2)
        rows = merger.view.items
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from pawmatch.exceptions import QueryError
from pawmatch.live.query import Document, DocumentSnapshot, DocumentStore, Query, Subscription
from pawmatch.utils.time_utils import to_epoch_seconds

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_FAILURE_MESSAGE = "Failed to load."


class ViewState(StrEnum):
    LOADING = "loading"
    READY   = "ready"
    FAILED  = "failed"


@dataclass(frozen=True)
class SortPolicy:
    """Order documents by a timestamp field; missing or unparseable → 0."""

    field:      str
    descending: bool = True

    def key(self, doc: Mapping[str, Any]) -> float:
        return to_epoch_seconds(doc.get(self.field))


@dataclass(frozen=True)
class MergedView:
    """Immutable result of a merge.

    Attributes:
        documents: Read-only ``id → document`` mapping.
        items:     ``(id, document)`` pairs in sort order.
    """

    documents: Mapping[str, Document]
    items:     tuple[tuple[str, Document], ...]

    @property
    def ids(self) -> list[str]:
        return [doc_id for doc_id, _ in self.items]

    def __len__(self) -> int:
        return len(self.items)


EMPTY_VIEW = MergedView(documents=MappingProxyType({}), items=())


def merge_documents(
    existing:    Mapping[str, Document],
    incoming:    Iterable[tuple[str, Document]],
    sort_policy: Optional[SortPolicy] = None,
) -> MergedView:
    """Merge an incoming batch into ``existing`` and return a new view.

    ``existing`` is not modified. Re-inserting a known id keeps its
    insertion position, which is what makes equal-timestamp ties stable.
    """
    merged: dict[str, Document] = dict(existing)
    for doc_id, doc in incoming:
        merged[doc_id] = dict(doc)

    items = list(merged.items())
    if sort_policy is not None:
        # sorted() stays stable with reverse=True
        items = sorted(items, key=lambda kv: sort_policy.key(kv[1]), reverse=sort_policy.descending)

    return MergedView(documents=MappingProxyType(merged), items=tuple(items))


class LiveCollectionView:
    """The merged, ordered state shared by every source of one collection."""

    def __init__(self, sort_policy: Optional[SortPolicy] = None) -> None:
        self.sort_policy = sort_policy
        self._view: MergedView = EMPTY_VIEW
        self._state = ViewState.LOADING
        self._error: Optional[str] = None
        self._listeners: list[Callable[["LiveCollectionView"], None]] = []

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def current(self) -> MergedView:
        return self._view

    @property
    def items(self) -> tuple[tuple[str, Document], ...]:
        return self._view.items

    @property
    def documents(self) -> Mapping[str, Document]:
        return self._view.documents

    def records(self, converter: Callable[[str, Document], T]) -> list[T]:
        """Convert each ``(id, doc)`` in order, e.g. ``PetListing.from_document``."""
        return [converter(doc_id, doc) for doc_id, doc in self._view.items]

    def apply_snapshot(self, rows: DocumentSnapshot) -> None:
        new_view = merge_documents(self._view.documents, rows, self.sort_policy)
        self._view = new_view
        self._state = ViewState.READY
        self._error = None
        self._notify()

    def fail(self, message: str) -> None:
        """Clear the documents and surface ``message``."""
        self._view = EMPTY_VIEW
        self._state = ViewState.FAILED
        self._error = message
        self._notify()

    def add_listener(self, listener: Callable[["LiveCollectionView"], None]) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


class FailoverSubscription:
    """Primary subscription with a single fallback hand-off.

    Args:
        store:      Backing document store.
        name:       Source name used in log messages.
        primary:    Preferred (usually ordered) query.
        fallback:   Query to use if the primary fails; ``None`` means fail
                    straight away.
        on_snapshot: Called with each snapshot from the live subscription.
        on_failed:  Called with the error once both queries have failed.
    """

    def __init__(
        self,
        store:       DocumentStore,
        name:        str,
        primary:     Query,
        fallback:    Optional[Query],
        on_snapshot: Callable[[DocumentSnapshot], None],
        on_failed:   Callable[[Exception], None],
    ) -> None:
        self.store = store
        self.name = name
        self.primary = primary
        self.fallback = fallback
        self._on_snapshot = on_snapshot
        self._on_failed = on_failed

        self._primary_sub: Optional[Subscription] = None
        self._fallback_sub: Optional[Subscription] = None
        self._primary_failed = False
        self._fallback_failed = False
        self._closed = False

    @property
    def using_fallback(self) -> bool:
        return self._primary_failed and not self._fallback_failed

    @property
    def failed(self) -> bool:
        return self._fallback_failed

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> "FailoverSubscription":
        try:
            sub = self.store.subscribe(self.primary, self._deliver_primary, self._primary_error)
        except QueryError as exc:
            self._primary_error(exc)
            return self
        # The store may report an error before subscribe() returns.
        if self._primary_failed or self._closed:
            sub.unsubscribe()
        else:
            self._primary_sub = sub
        return self

    def close(self) -> None:
        self._closed = True
        for sub in (self._primary_sub, self._fallback_sub):
            if sub is not None:
                sub.unsubscribe()
        self._primary_sub = None
        self._fallback_sub = None

    # ── Primary ───────────────────────────────────────────────────────────────

    def _deliver_primary(self, rows: DocumentSnapshot) -> None:
        if self._closed or self._primary_failed:
            return
        self._on_snapshot(rows)

    def _primary_error(self, exc: Exception) -> None:
        if self._closed or self._primary_failed:
            return
        self._primary_failed = True
        if self._primary_sub is not None:
            self._primary_sub.unsubscribe()
            self._primary_sub = None

        if self.fallback is None:
            logger.warning("Feed %r failed with no fallback: %s", self.name, exc)
            self._fallback_error(exc)
            return

        logger.warning(
            "Feed %r primary query failed (%s); falling back to %s",
            self.name, exc, self.fallback.describe(),
        )
        self._start_fallback()

    # ── Fallback ──────────────────────────────────────────────────────────────

    def _start_fallback(self) -> None:
        try:
            sub = self.store.subscribe(self.fallback, self._deliver_fallback, self._fallback_error)
        except QueryError as exc:
            self._fallback_error(exc)
            return
        if self._fallback_failed or self._closed:
            sub.unsubscribe()
        else:
            self._fallback_sub = sub

    def _deliver_fallback(self, rows: DocumentSnapshot) -> None:
        if self._closed or self._fallback_failed:
            return
        self._on_snapshot(rows)

    def _fallback_error(self, exc: Exception) -> None:
        if self._closed or self._fallback_failed:
            return
        self._fallback_failed = True
        if self._fallback_sub is not None:
            self._fallback_sub.unsubscribe()
            self._fallback_sub = None
        logger.error("Feed %r failed: %s", self.name, exc)
        self._on_failed(exc)


class LiveCollectionMerger:
    """One ``LiveCollectionView`` fed by N named failover sources.

    Once any source has failed outright, the view stays ``FAILED`` and empty:
    snapshots from the remaining healthy sources are dropped, since the
    merged view would silently miss the failed source's documents.
    Replacing the last failed source with ``add_source`` under the same name
    resubscribes the healthy sources so the view is rebuilt from scratch.
    """

    def __init__(
        self,
        store:           DocumentStore,
        sort_policy:     Optional[SortPolicy] = None,
        failure_message: str = DEFAULT_FAILURE_MESSAGE,
    ) -> None:
        self.store = store
        self.failure_message = failure_message
        self.view = LiveCollectionView(sort_policy)
        self._sources: dict[str, FailoverSubscription] = {}
        self._failed_sources: set[str] = set()

    @property
    def sources(self) -> Mapping[str, FailoverSubscription]:
        return MappingProxyType(self._sources)

    @property
    def failed_sources(self) -> frozenset[str]:
        return frozenset(self._failed_sources)

    def add_source(self, name: str, primary: Query, fallback: Optional[Query] = None) -> FailoverSubscription:
        """Subscribe a new named source; replaces (and closes) one of the same name."""
        previous = self._sources.pop(name, None)
        if previous is not None:
            previous.close()
        recovering = name in self._failed_sources
        self._failed_sources.discard(name)

        source = FailoverSubscription(
            self.store,
            name,
            primary,
            fallback,
            on_snapshot=self._apply_snapshot,
            on_failed=lambda exc: self._source_failed(name, exc),
        )
        self._sources[name] = source
        source.start()

        if recovering and not self._failed_sources:
            for other in [s for n, s in self._sources.items() if n != name]:
                self.add_source(other.name, other.primary, other.fallback)
        return source

    def close(self) -> None:
        for source in self._sources.values():
            source.close()
        self._sources.clear()

    def _apply_snapshot(self, rows: DocumentSnapshot) -> None:
        if self._failed_sources:
            logger.debug("Dropping snapshot; failed sources: %s", sorted(self._failed_sources))
            return
        self.view.apply_snapshot(rows)

    def _source_failed(self, name: str, exc: Exception) -> None:
        self._failed_sources.add(name)
        self.view.fail(self.failure_message)

    def __enter__(self) -> "LiveCollectionMerger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
