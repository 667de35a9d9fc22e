from __future__ import annotations

import sqlite3
from pathlib import Path

SCHEMA_VERSION = 2


def connect(db_path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    _migrate(conn)
    return conn


def _migrate(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )

    cur = conn.execute("SELECT value FROM meta WHERE key='schema_version'")
    row = cur.fetchone()
    if row is None:
        version = 0
        conn.execute(
            "INSERT INTO meta(key, value) VALUES('schema_version', ?)",
            ("0",),
        )
        conn.commit()
    else:
        try:
            version = int(row["value"])
        except (TypeError, ValueError):
            version = 0

    # v1: settings, workspaces, entries
    if version < 1:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workspaces (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workspace_id INTEGER NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                duration INTEGER NOT NULL,
                description TEXT,
                FOREIGN KEY(workspace_id) REFERENCES workspaces(id)
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_entries_workspace ON entries(workspace_id)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_entries_start_time ON entries(start_time)")
        version = 1

    # v2: running timer marker, so a timer survives between invocations
    if version < 2:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS active_timer (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                workspace_id INTEGER NOT NULL,
                start_time TEXT NOT NULL,
                FOREIGN KEY(workspace_id) REFERENCES workspaces(id)
            )
            """
        )
        version = 2

    conn.execute(
        "UPDATE meta SET value=? WHERE key='schema_version'",
        (str(version),),
    )
    conn.commit()
