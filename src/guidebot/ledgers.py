"""Conversation and ingestion ledgers on top of the document store."""
from __future__ import annotations

import logging
from typing import List, Optional, Set

from guidebot.concurrency import call_external
from guidebot.errors import ConfigurationNotReady, PersistenceFailure
from guidebot.models import Document, IngestionRecord, Turn
from guidebot.storage import DocumentStore
from guidebot.telemetry import emit_ledger_event

LOGGER = logging.getLogger(__name__)


def _as_persistence_failure(error: Exception, message: str) -> PersistenceFailure:
    if isinstance(error, PersistenceFailure):
        return error
    return PersistenceFailure(message, cause=error)


class ConversationLedger:
    """Persist every turn, successful or not, and serve lookups over them."""

    def __init__(self, store: DocumentStore, *, timeout: float | None = None) -> None:
        self._store = store
        self._timeout = timeout

    async def append(self, turn: Turn) -> None:
        try:
            await call_external(self._store.insert_turn, turn, timeout=self._timeout)
        except ConfigurationNotReady:
            raise
        except Exception as error:
            emit_ledger_event(
                "ledger.turn.append",
                session_id=turn.session_id,
                turn_id=turn.turn_id,
                success=turn.success,
                error=error,
            )
            raise _as_persistence_failure(error, "Failed to persist turn") from error
        emit_ledger_event(
            "ledger.turn.append",
            session_id=turn.session_id,
            turn_id=turn.turn_id,
            success=turn.success,
        )

    async def update_rating(self, turn_id: str, rating: int) -> bool:
        """Attach *rating* to a turn; unknown ids are a no-op returning ``False``."""

        updated = await call_external(
            self._store.update_turn_rating, turn_id, rating, timeout=self._timeout
        )
        if not updated:
            LOGGER.info("Rating ignored for unknown turn %s", turn_id)
        return bool(updated)

    async def get(self, turn_id: str) -> Optional[Turn]:
        return await call_external(self._store.get_turn, turn_id, timeout=self._timeout)

    async def find_successful(self, question_normalized: str) -> Optional[Turn]:
        return await call_external(
            self._store.find_successful_turn, question_normalized, timeout=self._timeout
        )

    async def recent_successful(self, session_id: str, limit: int) -> List[Turn]:
        return await call_external(
            self._store.recent_successful_turns, session_id, limit, timeout=self._timeout
        )

    async def history(self, limit: Optional[int] = None) -> List[Turn]:
        return await call_external(self._store.list_turns, limit, timeout=self._timeout)


class IngestionLedger:
    """Decide whether a (name, byte size) pair still needs indexing.

    Content edits that keep the byte size unchanged are not detected.
    """

    def __init__(self, store: DocumentStore, *, timeout: float | None = None) -> None:
        self._store = store
        self._timeout = timeout
        # Pairs indexed during this process whose ledger write failed.
        self._completed_unrecorded: Set[Document] = set()

    async def should_process(self, document_name: str, byte_size: int) -> bool:
        if Document(document_name, byte_size) in self._completed_unrecorded:
            return False
        try:
            existing = await call_external(
                self._store.find_ingestion_record, document_name, byte_size, timeout=self._timeout
            )
        except ConfigurationNotReady:
            LOGGER.warning("Ingestion ledger not ready; processing %s", document_name)
            return True
        return existing is None

    async def record(self, document_name: str, byte_size: int, segment_count: int) -> IngestionRecord:
        """Persist an ingestion record.

        On failure the pair is still treated as complete for the lifetime of
        this ledger, and :class:`PersistenceFailure` is raised so callers can
        report it; the document will be indexed again after a cold start.
        """

        record = IngestionRecord(
            document_name=document_name,
            byte_size=byte_size,
            segment_count=segment_count,
        )
        try:
            await call_external(self._store.insert_ingestion_record, record, timeout=self._timeout)
        except Exception as error:
            self._completed_unrecorded.add(Document(document_name, byte_size))
            raise _as_persistence_failure(error, f"Failed to record ingestion of {document_name}") from error
        return record

    async def records(self) -> List[IngestionRecord]:
        return await call_external(self._store.list_ingestion_records, timeout=self._timeout)


__all__ = ["ConversationLedger", "IngestionLedger"]
