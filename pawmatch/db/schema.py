"""
SQLite DDL for the document store.

Two tables:
  1. documents     one JSON document per (collection, doc_id)
  2. query_indexes declared composite indexes that ordered, filtered
                   queries require

Every statement is guarded with ``IF NOT EXISTS``; ``apply_schema()`` can be
run against an existing database any number of times.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_DOCUMENTS = """
CREATE TABLE IF NOT EXISTS documents (
    collection  TEXT    NOT NULL,
    doc_id      TEXT    NOT NULL,
    data        TEXT    NOT NULL,
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    PRIMARY KEY (collection, doc_id)
);
"""

_DDL_DOCUMENTS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_documents_collection
    ON documents(collection);
"""

_DDL_QUERY_INDEXES = """
CREATE TABLE IF NOT EXISTS query_indexes (
    collection  TEXT    NOT NULL,
    fields      TEXT    NOT NULL,
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    PRIMARY KEY (collection, fields)
);
"""

_ALL_DDL: list[str] = [
    _DDL_DOCUMENTS,
    _DDL_DOCUMENTS_INDEXES,
    _DDL_QUERY_INDEXES,
]

ALL_TABLE_NAMES = ["documents", "query_indexes"]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create the store tables on ``conn`` if they are missing."""
    for ddl in _ALL_DDL:
        for statement in ddl.split(";"):
            if statement.strip():
                conn.execute(statement)
    conn.commit()
    logger.info("Schema applied: %d tables.", len(ALL_TABLE_NAMES))


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row[0] for row in rows]
