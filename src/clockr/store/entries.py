"""SQLite-backed entry store.

Every call either completes or raises StorageError with nothing written.
Writes issued inside `atomic()` share a single transaction.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from clockr.clock import parse_ts, to_iso
from clockr.errors import StorageError
from clockr.model import Entry, Workspace, normalise_description
from clockr.store import db as db_mod

_WORKSPACE_COUNT_KEY = "workspace_count"


class EntryStore:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._depth = 0

    @classmethod
    def open(cls, db_path: Path) -> EntryStore:
        try:
            conn = db_mod.connect(db_path)
        except sqlite3.Error as e:
            raise StorageError(f"cannot open database {db_path}: {e}") from e
        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def _execute(self, sql: str, args: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, args)
        except sqlite3.Error as e:
            logger.warning("storage call failed: {}", e)
            raise StorageError(str(e)) from e

    @contextmanager
    def atomic(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._conn.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            try:
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(str(e)) from e

    # settings

    def get_workspace_count(self) -> int | None:
        row = self._execute(
            "SELECT value FROM settings WHERE key=?",
            (_WORKSPACE_COUNT_KEY,),
        ).fetchone()
        if row is None:
            return None
        try:
            return int(row["value"])
        except (TypeError, ValueError):
            return None

    def set_workspace_count(self, count: int) -> None:
        with self.atomic():
            self._execute(
                "INSERT OR REPLACE INTO settings(key, value) VALUES (?, ?)",
                (_WORKSPACE_COUNT_KEY, str(count)),
            )
        logger.debug("stored workspace count {}", count)

    # workspaces

    def list_workspaces(self) -> list[Workspace]:
        cur = self._execute("SELECT id, name FROM workspaces ORDER BY id")
        return [Workspace(id=int(r["id"]), name=str(r["name"])) for r in cur.fetchall()]

    def upsert_workspace(self, workspace_id: int, name: str) -> None:
        with self.atomic():
            self._execute(
                """
                INSERT INTO workspaces(id, name) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET name=excluded.name
                """,
                (workspace_id, name),
            )
        logger.debug("stored workspace {} name={!r}", workspace_id, name)

    # entries

    def list_entries(self, workspace_id: int | None = None) -> list[Entry]:
        if workspace_id is None:
            cur = self._execute(
                """
                SELECT id, workspace_id, start_time, end_time, duration, description
                FROM entries
                ORDER BY start_time DESC, id DESC
                """
            )
        else:
            cur = self._execute(
                """
                SELECT id, workspace_id, start_time, end_time, duration, description
                FROM entries
                WHERE workspace_id = ?
                ORDER BY start_time DESC, id DESC
                """,
                (workspace_id,),
            )

        return [_entry_from_row(r) for r in cur.fetchall()]

    def get_entry(self, entry_id: int) -> Entry | None:
        row = self._execute(
            """
            SELECT id, workspace_id, start_time, end_time, duration, description
            FROM entries
            WHERE id = ?
            """,
            (entry_id,),
        ).fetchone()
        return _entry_from_row(row) if row is not None else None

    def create_entry(
        self,
        workspace_id: int,
        start_time: datetime,
        end_time: datetime,
        duration_ms: int,
        description: str,
    ) -> int:
        with self.atomic():
            cur = self._execute(
                """
                INSERT INTO entries(workspace_id, start_time, end_time, duration, description)
                VALUES (?, ?, ?, ?, ?)
                """,
                (workspace_id, to_iso(start_time), to_iso(end_time), duration_ms, description),
            )
            entry_id = cur.lastrowid
            if entry_id is None:
                raise StorageError(f"no row id returned for entry in workspace {workspace_id}")
        logger.debug("stored entry {} for workspace {}", entry_id, workspace_id)
        return int(entry_id)

    def update_entry_description(self, entry_id: int, description: str) -> None:
        with self.atomic():
            self._execute(
                "UPDATE entries SET description=? WHERE id=?",
                (description, entry_id),
            )

    def delete_entry(self, entry_id: int) -> None:
        with self.atomic():
            self._execute("DELETE FROM entries WHERE id=?", (entry_id,))

    def delete_all_entries(self) -> None:
        with self.atomic():
            self._execute("DELETE FROM entries")

    # running timer marker

    def get_active_timer(self) -> tuple[int, datetime] | None:
        row = self._execute(
            "SELECT workspace_id, start_time FROM active_timer WHERE id=1"
        ).fetchone()
        if row is None:
            return None
        return int(row["workspace_id"]), parse_ts(str(row["start_time"]))

    def set_active_timer(self, workspace_id: int, start_time: datetime) -> None:
        with self.atomic():
            self._execute(
                "INSERT OR REPLACE INTO active_timer(id, workspace_id, start_time) VALUES (1, ?, ?)",
                (workspace_id, to_iso(start_time)),
            )

    def clear_active_timer(self) -> None:
        with self.atomic():
            self._execute("DELETE FROM active_timer")


def _entry_from_row(r: sqlite3.Row) -> Entry:
    return Entry(
        id=int(r["id"]),
        workspace_id=int(r["workspace_id"]),
        start_time=parse_ts(str(r["start_time"])),
        end_time=parse_ts(str(r["end_time"])),
        duration_ms=int(r["duration"]),
        description=normalise_description(r["description"]),
    )
