"""SQLite database layer for the result cache and crawl run tracking."""

import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

_RESULT_CACHE_TABLE = """
CREATE TABLE IF NOT EXISTS result_cache (
    cache_key   TEXT    PRIMARY KEY,
    url         TEXT    NOT NULL,
    timestamp   INTEGER NOT NULL,
    data        TEXT    NOT NULL
);
"""

_CRAWL_RUNS_TABLE = """
CREATE TABLE IF NOT EXISTS crawl_runs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    queued_count    INTEGER NOT NULL,
    result_count    INTEGER NOT NULL,
    status          TEXT    NOT NULL,
    started_at      TEXT    NOT NULL,
    finished_at     TEXT    NOT NULL
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_RESULT_CACHE_TABLE)
    conn.execute(_CRAWL_RUNS_TABLE)
    conn.commit()
    return conn


def get_cache_entry(conn: sqlite3.Connection, cache_key: str) -> sqlite3.Row | None:
    """Return the raw cache row for a key, or None."""
    return conn.execute(
        "SELECT url, timestamp, data FROM result_cache WHERE cache_key = ?",
        (cache_key,),
    ).fetchone()


def put_cache_entry(
    conn: sqlite3.Connection,
    cache_key: str,
    url: str,
    timestamp: int,
    data_json: str,
) -> None:
    """Insert or overwrite a cache row."""
    conn.execute(
        """
        INSERT INTO result_cache (cache_key, url, timestamp, data)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(cache_key)
        DO UPDATE SET
            url = excluded.url,
            timestamp = excluded.timestamp,
            data = excluded.data
        """,
        (cache_key, url, timestamp, data_json),
    )
    conn.commit()


def delete_cache_entries(conn: sqlite3.Connection, cache_keys: Iterable[str]) -> int:
    """Delete the given keys (exact match). Returns the number of rows removed."""
    keys = [(k,) for k in cache_keys]
    if not keys:
        return 0
    before = conn.total_changes
    conn.executemany("DELETE FROM result_cache WHERE cache_key = ?", keys)
    conn.commit()
    return conn.total_changes - before


def insert_crawl_run(
    conn: sqlite3.Connection,
    queued_count: int,
    result_count: int,
    status: str,
    started_at: datetime,
    finished_at: datetime,
) -> int:
    """Record a finished or cancelled crawl batch. Returns the row ID."""
    cursor = conn.execute(
        """
        INSERT INTO crawl_runs
            (queued_count, result_count, status, started_at, finished_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            queued_count,
            result_count,
            status,
            started_at.isoformat(),
            finished_at.isoformat(),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0
