"""
SQLite connection handling for the document store.

``get_connection()`` yields a connection with WAL journaling (optional), a
busy timeout and ``sqlite3.Row`` rows. Pending work is committed when the
block exits cleanly and rolled back when it raises.

Usage::

    from pawmatch.db.connection import get_connection

    with get_connection("data/db/pawmatch.db") as conn:
        store = SqliteDocumentStore(conn)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from pawmatch.config import DatabaseConfig

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Open ``db_path`` (creating parent directories) and yield the connection.

    Args:
        db_path: Database file, or ``":memory:"`` for tests.
        wal_mode: Use the WAL journal (ignored for in-memory databases).
        busy_timeout_ms: How long a writer waits on a locked database.

    Raises:
        sqlite3.OperationalError: If the file cannot be opened.
    """
    if db_path != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row
    logger.debug("Opened SQLite database at %s", db_path)

    try:
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
        if wal_mode and db_path != MEMORY_DB:
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()


def connection_for(config: DatabaseConfig, db_path: Optional[str] = None):
    """``get_connection`` with the settings from ``[database]``.

    ``db_path`` overrides ``config.db_path`` (CLI ``--db-path``).
    """
    return get_connection(
        db_path or config.db_path,
        wal_mode=config.wal_mode,
        busy_timeout_ms=config.busy_timeout_ms,
    )
