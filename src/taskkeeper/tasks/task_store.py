# src/taskkeeper/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
from pathlib import Path

from ..errors import PersistenceError, StorageFormatError
from .task_codec import (
    HEADER,
    Snapshot,
    ordered_for_save,
    read_snapshot,
    row_to_task,
    task_to_row,
    write_snapshot,
)

logger = logging.getLogger(__name__)

STORAGE_KINDS = ("memory", "csv", "sqlite")


class InMemoryBacking:
    """Keeps the last saved snapshot in process memory (tests, throwaway sessions)."""

    def __init__(self, snapshot: Snapshot | None = None) -> None:
        self._snapshot = snapshot.copy() if snapshot is not None else None
        self.save_count = 0

    def describe(self) -> str:
        return "memory"

    def load(self) -> Snapshot | None:
        return self._snapshot.copy() if self._snapshot is not None else None

    def save(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot.copy()
        self.save_count += 1


class CsvFileBacking:
    """
    Flat CSV file (see task_codec for the layout).

    Writes go to a temporary file first and are moved into place with
    os.replace, so a crash mid-write never leaves a truncated file behind.
    """

    def __init__(self, path: str | Path = "tasks.csv") -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def describe(self) -> str:
        return f"csv:{self._path}"

    def load(self) -> Snapshot | None:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8", newline="") as fh:
                snapshot = read_snapshot(fh)
        except UnicodeDecodeError as e:
            raise StorageFormatError(f"{self._path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read {self._path}: {e}") from e
        logger.debug("Read %d rows from %s", len(snapshot.entities), self._path)
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8", newline="") as fh:
                write_snapshot(snapshot, fh)
            os.replace(tmp, self._path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise PersistenceError(f"Failed to write {self._path}: {e}") from e


class SqliteBacking:
    """
    SQLite snapshot store.

    The schema is simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns and add them

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Failed to open task database {self._db_path}: {e}") from e
        logger.info("SqliteBacking ready db=%s", self._db_path)

    def describe(self) -> str:
        return f"sqlite:{self._db_path}"

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY,
                    position INTEGER NOT NULL DEFAULT 0,
                    type TEXT NOT NULL,
                    name TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'NEW',
                    description TEXT NOT NULL DEFAULT '',
                    epic TEXT NOT NULL DEFAULT '',
                    start_time TEXT NOT NULL DEFAULT '',
                    duration TEXT NOT NULL DEFAULT '',
                    end_time TEXT NOT NULL DEFAULT ''
                )
                """
            )
            cur.execute(
                "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("SqliteBacking migration: added column %s", name)

            # databases created before end_time was stored
            add_col("end_time", "TEXT NOT NULL DEFAULT ''")

            conn.commit()
        finally:
            conn.close()

    # ---- TaskBacking ----

    def load(self) -> Snapshot | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT value FROM meta WHERE key = 'next_id'")
            meta_row = cur.fetchone()
            cur.execute(f"SELECT {', '.join(HEADER)} FROM tasks ORDER BY position ASC")
            rows = cur.fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read {self._db_path}: {e}") from e
        finally:
            conn.close()

        if meta_row is None and not rows:
            return None

        entities = [row_to_task([str(r[c] if r[c] is not None else "") for c in HEADER]) for r in rows]
        try:
            next_id = int(meta_row["value"]) if meta_row is not None else 1
        except ValueError as e:
            raise StorageFormatError(f"Bad next_id in {self._db_path}: {e}") from e

        max_id = max((t.id for t in entities), default=0)
        return Snapshot(entities=entities, next_id=max(next_id, max_id + 1))

    def save(self, snapshot: Snapshot) -> None:
        params = [
            (*task_to_row(task), pos)
            for pos, task in enumerate(ordered_for_save(snapshot.entities))
        ]
        conn = self._get_conn()
        try:
            with conn:
                conn.execute("DELETE FROM tasks")
                conn.executemany(
                    f"""
                    INSERT INTO tasks({', '.join(HEADER)}, position)
                    VALUES ({', '.join('?' for _ in HEADER)}, ?)
                    """,
                    params,
                )
                conn.execute(
                    "INSERT OR REPLACE INTO meta(key, value) VALUES ('next_id', ?)",
                    (str(int(snapshot.next_id)),),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write {self._db_path}: {e}") from e
        finally:
            conn.close()
        logger.debug("Wrote %d rows to %s", len(params), self._db_path)


def make_backing(
    kind: str,
    *,
    csv_path: str | Path,
    db_path: str | Path,
) -> InMemoryBacking | CsvFileBacking | SqliteBacking:
    """Pick a backing by name ("memory", "csv", "sqlite"). Unknown names fall back to csv."""
    key = (kind or "").strip().lower()
    if key == "memory":
        return InMemoryBacking()
    if key == "sqlite":
        return SqliteBacking(db_path)
    if key != "csv":
        logger.warning("Unknown storage backend %r, using csv.", kind)
    return CsvFileBacking(csv_path)
