"""SQLite-backed document store for turns and ingestion records."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from guidebot.errors import ConfigurationNotReady, PersistenceFailure
from guidebot.models import IngestionRecord, Turn

from .migrations import SqliteMigration, apply_sqlite_migrations

LOGGER = logging.getLogger(__name__)

_COMPONENT = "document_store"

_MIGRATIONS = (
    SqliteMigration(
        version=1,
        name="create_turns_and_ingestion_records",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS turns (
                turn_id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                question_normalized TEXT NOT NULL,
                question_raw TEXT NOT NULL,
                answer_text TEXT NOT NULL,
                page_numbers_json TEXT NOT NULL DEFAULT '[]',
                rating INTEGER,
                success INTEGER NOT NULL,
                created_at TEXT NOT NULL
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS ingestion_records (
                document_name TEXT NOT NULL,
                byte_size INTEGER NOT NULL,
                segment_count INTEGER NOT NULL,
                processed_at TEXT NOT NULL,
                UNIQUE(document_name, byte_size)
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_turns_question_success ON turns(question_normalized, success)",
            "CREATE INDEX IF NOT EXISTS idx_turns_session_success ON turns(session_id, success, created_at)",
        ),
    ),
)

_TURN_COLUMNS = (
    "turn_id, session_id, question_normalized, question_raw, answer_text, "
    "page_numbers_json, rating, success, created_at"
)


def _row_to_turn(row: sqlite3.Row) -> Turn:
    return Turn(
        session_id=row["session_id"],
        turn_id=row["turn_id"],
        question_normalized=row["question_normalized"],
        question_raw=row["question_raw"],
        answer_text=row["answer_text"],
        page_numbers=json.loads(row["page_numbers_json"] or "[]"),
        rating=row["rating"],
        success=bool(row["success"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_record(row: sqlite3.Row) -> IngestionRecord:
    return IngestionRecord(
        document_name=row["document_name"],
        byte_size=int(row["byte_size"]),
        segment_count=int(row["segment_count"]),
        processed_at=datetime.fromisoformat(row["processed_at"]),
    )


class SQLiteDocumentStore:
    """Persist turns and ingestion records in a single SQLite database."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None

    @property
    def is_ready(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            conn: sqlite3.Connection | None = None
            try:
                if str(self.db_path) != ":memory:":
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False, timeout=30.0)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL")
                with conn:
                    apply_sqlite_migrations(conn, component=_COMPONENT, migrations=_MIGRATIONS)
            except (sqlite3.Error, OSError) as error:
                if conn is not None:
                    conn.close()
                raise PersistenceFailure(f"Failed to open document store at {self.db_path}", cause=error) from error
            self._conn = conn
            LOGGER.info("Document store ready at %s", self.db_path)

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.commit()
            finally:
                self._conn.close()
                self._conn = None

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._conn is None:
                raise ConfigurationNotReady("Document store schema is not initialised yet")
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as error:
                self._conn.rollback()
                raise PersistenceFailure("Document store operation failed", cause=error) from error

    def insert_turn(self, turn: Turn) -> None:
        with self._connection() as conn:
            conn.execute(
                f"INSERT INTO turns ({_TURN_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    turn.turn_id,
                    turn.session_id,
                    turn.question_normalized,
                    turn.question_raw,
                    turn.answer_text,
                    json.dumps(list(turn.page_numbers)),
                    turn.rating,
                    int(turn.success),
                    turn.created_at.isoformat(),
                ),
            )

    def get_turn(self, turn_id: str) -> Optional[Turn]:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {_TURN_COLUMNS} FROM turns WHERE turn_id = ?",
                (turn_id,),
            ).fetchone()
        return _row_to_turn(row) if row is not None else None

    def find_successful_turn(self, question_normalized: str) -> Optional[Turn]:
        with self._connection() as conn:
            row = conn.execute(
                f"""
                SELECT {_TURN_COLUMNS} FROM turns
                WHERE question_normalized = ? AND success = 1
                ORDER BY rowid ASC
                LIMIT 1
                """,
                (question_normalized,),
            ).fetchone()
        return _row_to_turn(row) if row is not None else None

    def recent_successful_turns(self, session_id: str, limit: int) -> List[Turn]:
        if limit <= 0:
            return []
        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_TURN_COLUMNS} FROM turns
                WHERE session_id = ? AND success = 1
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (session_id, limit),
            ).fetchall()
        return [_row_to_turn(row) for row in rows]

    def list_turns(self, limit: Optional[int] = None) -> List[Turn]:
        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_TURN_COLUMNS} FROM turns
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (-1 if limit is None else limit,),
            ).fetchall()
        return [_row_to_turn(row) for row in rows]

    def update_turn_rating(self, turn_id: str, rating: int) -> bool:
        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE turns SET rating = ? WHERE turn_id = ?",
                (rating, turn_id),
            )
        return cursor.rowcount > 0

    def find_ingestion_record(self, document_name: str, byte_size: int) -> Optional[IngestionRecord]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT document_name, byte_size, segment_count, processed_at
                FROM ingestion_records
                WHERE document_name = ? AND byte_size = ?
                """,
                (document_name, byte_size),
            ).fetchone()
        return _row_to_record(row) if row is not None else None

    def insert_ingestion_record(self, record: IngestionRecord) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO ingestion_records
                    (document_name, byte_size, segment_count, processed_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    record.document_name,
                    record.byte_size,
                    record.segment_count,
                    record.processed_at.isoformat(),
                ),
            )

    def list_ingestion_records(self) -> List[IngestionRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT document_name, byte_size, segment_count, processed_at
                FROM ingestion_records
                ORDER BY processed_at ASC, rowid ASC
                """
            ).fetchall()
        return [_row_to_record(row) for row in rows]


__all__ = ["SQLiteDocumentStore"]
