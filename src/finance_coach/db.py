from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DB_PATH = DATA_DIR / "finance_coach.db"
DB_PATH = Path(os.environ.get("FINANCE_COACH_DB_PATH", DEFAULT_DB_PATH))


@contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    """Yield a SQLite connection that commits on success."""

    connection = _open_connection()
    try:
        yield connection
        connection.commit()
    finally:
        connection.close()


def _open_connection() -> sqlite3.Connection:
    _ensure_data_dir()
    connection = sqlite3.connect(DB_PATH)
    connection.row_factory = sqlite3.Row
    return connection


def _ensure_data_dir() -> None:
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def now_iso(value: datetime | None = None) -> str:
    """Return the current UTC timestamp (seconds precision) as ISO 8601."""

    moment = value or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    else:
        moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="seconds")


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp into an aware UTC datetime, or ``None``."""

    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def init_db() -> None:
    """Initialise the database schema if tables are missing."""

    with connect() as connection:
        _create_tables(connection)


def _create_tables(connection: sqlite3.Connection) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS progress (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS unit_completions (
            learner_id TEXT NOT NULL,
            unit_id TEXT NOT NULL,
            completed_at TEXT NOT NULL,
            PRIMARY KEY (learner_id, unit_id)
        )
        """
    )


def get_progress(key: str, default: str | None = None) -> str | None:
    with _open_connection() as connection:
        row = connection.execute(
            "SELECT value FROM progress WHERE key = ?", (key,)
        ).fetchone()
    return str(row["value"]) if row else default


def set_progress(key: str, value: str) -> None:
    timestamp = now_iso()
    with _open_connection() as connection:
        connection.execute(
            """
            INSERT INTO progress (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, timestamp),
        )
        connection.commit()


# ── Completion ledger ─────────────────────────────────────────────────────────


def mark_unit_completed(learner_id: str, unit_id: str) -> None:
    timestamp = now_iso()
    with _open_connection() as connection:
        connection.execute(
            """
            INSERT INTO unit_completions (learner_id, unit_id, completed_at)
            VALUES (?, ?, ?)
            ON CONFLICT(learner_id, unit_id) DO NOTHING
            """,
            (learner_id, unit_id, timestamp),
        )
        connection.commit()


def clear_unit_completion(learner_id: str, unit_id: str) -> bool:
    """Remove a completion. Returns True if a row was deleted."""
    with _open_connection() as connection:
        cursor = connection.execute(
            "DELETE FROM unit_completions WHERE learner_id = ? AND unit_id = ?",
            (learner_id, unit_id),
        )
        connection.commit()
    return cursor.rowcount > 0


def get_completion_ledger(learner_id: str) -> dict[str, bool]:
    """Return ``{unit_id: True}`` for every unit the learner has completed."""
    with _open_connection() as connection:
        rows = connection.execute(
            "SELECT unit_id FROM unit_completions WHERE learner_id = ? ORDER BY completed_at, unit_id",
            (learner_id,),
        ).fetchall()
    return {str(row["unit_id"]): True for row in rows}


__all__ = [
    "DB_PATH",
    "clear_unit_completion",
    "connect",
    "get_completion_ledger",
    "get_progress",
    "init_db",
    "mark_unit_completed",
    "now_iso",
    "parse_iso",
    "set_progress",
]
