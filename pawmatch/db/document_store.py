"""
SQLite implementation of ``DocumentStore``.

Documents are JSON blobs keyed by ``(collection, doc_id)``. Queries load a
collection, apply equality filters, then optional ordering and limit in
Python. Ordered queries that also filter need a composite index declared
with ``declare_index()``; without one they fail with ``MissingIndexError``,
as a hosted document database does before its index is built.

Ordered queries omit documents that lack the order-by field.

Live subscriptions are run-to-completion: every write re-runs the queries
subscribed to that collection and, when the result changed, delivers the
new snapshot before the write call returns.
"""

from __future__ import annotations

import json
import logging
import secrets
import sqlite3
import string
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from pawmatch.exceptions import DocumentNotFoundError, MissingIndexError
from pawmatch.live.query import (
    SERVER_TIMESTAMP,
    Document,
    DocumentSnapshot,
    DocumentStore,
    ErrorCallback,
    Query,
    SnapshotCallback,
    Subscription,
)
from pawmatch.utils.time_utils import to_epoch_seconds, utc_epoch_seconds

logger = logging.getLogger(__name__)

ID_LENGTH = 20
_ID_ALPHABET = string.ascii_letters + string.digits


def generate_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(ID_LENGTH))


def _resolve_sentinels(value: Any, now: float) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, Mapping):
        return {k: _resolve_sentinels(v, now) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_resolve_sentinels(v, now) for v in value]
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_epoch_seconds(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _order_key(value: Any) -> tuple[int, float, str]:
    if isinstance(value, bool):
        return (0, float(value), "")
    if isinstance(value, (int, float)):
        return (1, float(value), "")
    return (2, 0.0, str(value))


@dataclass
class _Listener:
    query:       Query
    on_snapshot: SnapshotCallback
    on_error:    ErrorCallback
    last:        Optional[DocumentSnapshot] = field(default=None)


class SqliteDocumentStore(DocumentStore):
    """Document store over an open ``sqlite3.Connection``.

    The connection is owned by the caller (typically ``get_connection()``);
    ``apply_schema()`` must have been run on it. Each write is committed
    immediately.

    Args:
        conn:  Open connection.
        clock: Source of epoch seconds for ``SERVER_TIMESTAMP``.
    """

    def __init__(
        self,
        conn:  sqlite3.Connection,
        clock: Callable[[], float] = utc_epoch_seconds,
    ) -> None:
        self.conn = conn
        self.clock = clock
        self._listeners: dict[int, _Listener] = {}
        self._next_listener = 0

    # ── Indexes ───────────────────────────────────────────────────────────────

    def declare_index(self, collection: str, fields: tuple[str, ...] | list[str]) -> None:
        self.conn.execute(
            "INSERT OR IGNORE INTO query_indexes (collection, fields) VALUES (?, ?);",
            (collection, ",".join(fields)),
        )
        self.conn.commit()
        logger.info("Declared index on %s(%s)", collection, ", ".join(fields))

    def has_index(self, collection: str, fields: tuple[str, ...]) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM query_indexes WHERE collection = ? AND fields = ?;",
            (collection, ",".join(fields)),
        ).fetchone()
        return row is not None

    def _check_index(self, query: Query) -> None:
        required = query.required_index
        if required is not None and not self.has_index(query.collection, required):
            raise MissingIndexError(query.collection, required)

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        row = self.conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND doc_id = ?;",
            (collection, doc_id),
        ).fetchone()
        return json.loads(row[0]) if row else None

    def query(self, query: Query) -> DocumentSnapshot:
        self._check_index(query)
        return self._run(query)

    def _run(self, query: Query) -> DocumentSnapshot:
        rows = self.conn.execute(
            "SELECT doc_id, data FROM documents WHERE collection = ? ORDER BY rowid;",
            (query.collection,),
        ).fetchall()

        results = [(row[0], json.loads(row[1])) for row in rows]
        results = [(doc_id, doc) for doc_id, doc in results if query.matches(doc)]

        if query.order_by is not None:
            results = [r for r in results if r[1].get(query.order_by) is not None]
            results.sort(key=lambda r: _order_key(r[1][query.order_by]), reverse=query.descending)

        if query.limit is not None:
            results = results[: max(0, query.limit)]
        return results

    # ── Writes ────────────────────────────────────────────────────────────────

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False) -> None:
        resolved = _resolve_sentinels(dict(data), self.clock())
        if merge:
            existing = self.get(collection, doc_id) or {}
            resolved = {**existing, **resolved}
        self._write(collection, doc_id, resolved)

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = generate_id()
        while self.get(collection, doc_id) is not None:
            doc_id = generate_id()
        self.set(collection, doc_id, data)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        existing = self.get(collection, doc_id)
        if existing is None:
            raise DocumentNotFoundError(collection, doc_id)
        resolved = _resolve_sentinels(dict(fields), self.clock())
        self._write(collection, doc_id, {**existing, **resolved})

    def delete(self, collection: str, doc_id: str) -> None:
        self.conn.execute(
            "DELETE FROM documents WHERE collection = ? AND doc_id = ?;",
            (collection, doc_id),
        )
        self.conn.commit()
        self._notify(collection)

    def _write(self, collection: str, doc_id: str, data: Document) -> None:
        # Upsert keeps the rowid, so store order is first-insertion order.
        self.conn.execute(
            """
            INSERT INTO documents (collection, doc_id, data)
            VALUES (?, ?, ?)
            ON CONFLICT(collection, doc_id) DO UPDATE SET
                data       = excluded.data,
                updated_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now');
            """,
            (collection, doc_id, json.dumps(data, default=_json_default)),
        )
        self.conn.commit()
        logger.debug("Wrote %s/%s", collection, doc_id)
        self._notify(collection)

    # ── Subscriptions ─────────────────────────────────────────────────────────

    @property
    def active_subscription_count(self) -> int:
        return len(self._listeners)

    def subscribe(
        self,
        query:       Query,
        on_snapshot: SnapshotCallback,
        on_error:    ErrorCallback,
    ) -> Subscription:
        """Deliver the current result now and after every relevant write.

        A query needing an undeclared index reports ``MissingIndexError``
        through ``on_error`` and returns an inactive subscription.
        """
        try:
            self._check_index(query)
        except MissingIndexError as exc:
            logger.debug("Subscription rejected: %s", exc)
            on_error(exc)
            return Subscription()

        key = self._next_listener
        self._next_listener += 1
        listener = _Listener(query, on_snapshot, on_error)
        self._listeners[key] = listener

        subscription = Subscription(lambda: self._listeners.pop(key, None))
        self._deliver(listener)
        return subscription

    def _notify(self, collection: str) -> None:
        for key, listener in list(self._listeners.items()):
            # A callback may have unsubscribed a later listener.
            if key in self._listeners and listener.query.collection == collection:
                self._deliver(listener)

    def _deliver(self, listener: _Listener) -> None:
        rows = self._run(listener.query)
        if rows == listener.last:
            return
        listener.last = rows
        listener.on_snapshot([(doc_id, dict(doc)) for doc_id, doc in rows])
