"""Persistent per-query download state of the metric cache."""

from __future__ import annotations

import os
import sqlite3
import threading
from dataclasses import dataclass

from .keys import HOUR

BACKFILL_INTERVAL = 4 * HOUR

_SCHEMA = """
CREATE TABLE IF NOT EXISTS prometheus_query_state (
    project_id TEXT NOT NULL,
    query TEXT NOT NULL,
    last_ts INTEGER NOT NULL,
    last_error TEXT NOT NULL,
    PRIMARY KEY(project_id, query)
)
"""


@dataclass
class QueryState:
    """How far a query has been downloaded, and the last error it hit."""

    project_id: str
    query: str
    last_ts: int
    last_error: str = ""


@dataclass(frozen=True)
class CacheStatus:
    """A project's first recorded error and how far its queries lag behind, in seconds."""

    error: str
    lag_max: int
    lag_avg: int


class StateStore:
    """Query states kept in an SQLite database."""

    def __init__(self, path: str | os.PathLike[str] = ":memory:") -> None:
        self._lock = threading.Lock()
        self._db = sqlite3.connect(os.fspath(path), check_same_thread=False)
        with self._lock, self._db:
            self._db.execute("PRAGMA synchronous = FULL")
            self._db.execute(_SCHEMA)

    def __enter__(self) -> StateStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def save(self, state: QueryState) -> None:
        """Insert or replace the state of one query."""
        with self._lock, self._db:
            self._db.execute(
                "INSERT OR REPLACE INTO prometheus_query_state "
                "(project_id, query, last_ts, last_error) VALUES (?, ?, ?, ?)",
                (state.project_id, state.query, state.last_ts, state.last_error),
            )

    def load(self, project_id: str) -> dict[str, QueryState]:
        """Return the project's states keyed by query."""
        with self._lock:
            rows = self._db.execute(
                "SELECT project_id, query, last_ts, last_error "
                "FROM prometheus_query_state WHERE project_id = ?",
                (project_id,),
            ).fetchall()
        return {
            query: QueryState(project_id=pid, query=query, last_ts=last_ts, last_error=err)
            for pid, query, last_ts, err in rows
        }

    def delete(self, state: QueryState) -> None:
        """Forget the state of one query."""
        with self._lock, self._db:
            self._db.execute(
                "DELETE FROM prometheus_query_state WHERE project_id = ? AND query = ?",
                (state.project_id, state.query),
            )

    def delete_project(self, project_id: str) -> None:
        """Forget every state of a project."""
        with self._lock, self._db:
            self._db.execute(
                "DELETE FROM prometheus_query_state WHERE project_id = ?",
                (project_id,),
            )

    def min_update_time(self, project_id: str) -> int:
        """Return the earliest last update time of the project's queries, 0 if none."""
        with self._lock:
            (value,) = self._db.execute(
                "SELECT min(last_ts) FROM prometheus_query_state WHERE project_id = ?",
                (project_id,),
            ).fetchone()
        return int(value) if value is not None else 0

    def status(self, project_id: str, now: int) -> CacheStatus:
        """Summarise the project's errors and lag as of `now`."""
        with self._lock:
            row = self._db.execute(
                "SELECT last_error FROM prometheus_query_state "
                "WHERE project_id = ? AND last_error != '' LIMIT 1",
                (project_id,),
            ).fetchone()
            lag_max, lag_avg = self._db.execute(
                "SELECT max(? - last_ts), avg(? - last_ts) "
                "FROM prometheus_query_state WHERE project_id = ?",
                (now, now, project_id),
            ).fetchone()
        error = row[0] if row is not None else ""
        if lag_max is None or lag_avg is None:
            return CacheStatus(error=error, lag_max=BACKFILL_INTERVAL, lag_avg=BACKFILL_INTERVAL)
        return CacheStatus(error=error, lag_max=int(lag_max), lag_avg=int(lag_avg))

    def close(self) -> None:
        """Close the database."""
        with self._lock:
            self._db.close()