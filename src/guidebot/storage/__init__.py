"""Document store backends for turns and ingestion records."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Protocol

from guidebot.models import IngestionRecord, Turn


class DocumentStore(Protocol):
    """Append-only record store with exact-match lookups.

    Every method raises :class:`~guidebot.errors.ConfigurationNotReady` before
    :meth:`open` has completed and :class:`~guidebot.errors.PersistenceFailure`
    when the backend rejects an operation.
    """

    @property
    def is_ready(self) -> bool:
        ...

    def open(self) -> None:
        ...

    def close(self) -> None:
        ...

    def insert_turn(self, turn: Turn) -> None:
        ...

    def get_turn(self, turn_id: str) -> Optional[Turn]:
        ...

    def find_successful_turn(self, question_normalized: str) -> Optional[Turn]:
        """Return the earliest successful turn for the normalized question."""

    def recent_successful_turns(self, session_id: str, limit: int) -> List[Turn]:
        """Return up to *limit* successful turns of a session, newest first."""

    def list_turns(self, limit: Optional[int] = None) -> List[Turn]:
        """Return turns across all sessions, newest first."""

    def update_turn_rating(self, turn_id: str, rating: int) -> bool:
        """Set the rating of a turn; return ``False`` when the id is unknown."""

    def find_ingestion_record(self, document_name: str, byte_size: int) -> Optional[IngestionRecord]:
        ...

    def insert_ingestion_record(self, record: IngestionRecord) -> None:
        ...

    def list_ingestion_records(self) -> List[IngestionRecord]:
        ...


def build_document_store(backend: str, *, database_path: str | Path | None = None) -> DocumentStore:
    """Return a document store for the configured backend name."""

    backend = backend.strip().lower()
    if backend == "memory":
        from .memory import InMemoryDocumentStore

        return InMemoryDocumentStore()

    if backend == "sqlite":
        from .sqlite_store import SQLiteDocumentStore

        return SQLiteDocumentStore(database_path or "data/guidebot.sqlite3")

    raise ValueError(f"Unsupported DOCUMENT_STORE backend: {backend!r}")


__all__ = ["DocumentStore", "build_document_store"]
