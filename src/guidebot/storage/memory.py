"""Process-local document store used in development and tests."""
from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from guidebot.errors import ConfigurationNotReady
from guidebot.models import IngestionRecord, Turn


class InMemoryDocumentStore:
    """Keep turns and ingestion records in lists guarded by a lock."""

    def __init__(self, *, auto_open: bool = True) -> None:
        self._turns: List[Turn] = []
        self._records: Dict[Tuple[str, int], IngestionRecord] = {}
        self._lock = threading.RLock()
        self._ready = False
        if auto_open:
            self.open()

    @property
    def is_ready(self) -> bool:
        return self._ready

    def open(self) -> None:
        self._ready = True

    def close(self) -> None:
        self._ready = False

    def _require_ready(self) -> None:
        if not self._ready:
            raise ConfigurationNotReady("In-memory document store is not open")

    def insert_turn(self, turn: Turn) -> None:
        self._require_ready()
        with self._lock:
            self._turns.append(replace(turn, page_numbers=list(turn.page_numbers)))

    def get_turn(self, turn_id: str) -> Optional[Turn]:
        self._require_ready()
        with self._lock:
            for turn in self._turns:
                if turn.turn_id == turn_id:
                    return replace(turn)
        return None

    def find_successful_turn(self, question_normalized: str) -> Optional[Turn]:
        self._require_ready()
        with self._lock:
            for turn in self._turns:
                if turn.success and turn.question_normalized == question_normalized:
                    return replace(turn)
        return None

    def recent_successful_turns(self, session_id: str, limit: int) -> List[Turn]:
        self._require_ready()
        with self._lock:
            matches = [
                (index, turn)
                for index, turn in enumerate(self._turns)
                if turn.session_id == session_id and turn.success
            ]
        matches.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [replace(turn) for _, turn in matches[: max(0, limit)]]

    def list_turns(self, limit: Optional[int] = None) -> List[Turn]:
        self._require_ready()
        with self._lock:
            ordered = sorted(
                enumerate(self._turns),
                key=lambda item: (item[1].created_at, item[0]),
                reverse=True,
            )
        turns = [replace(turn) for _, turn in ordered]
        return turns if limit is None else turns[:limit]

    def update_turn_rating(self, turn_id: str, rating: int) -> bool:
        self._require_ready()
        with self._lock:
            for turn in self._turns:
                if turn.turn_id == turn_id:
                    turn.rating = rating
                    return True
        return False

    def find_ingestion_record(self, document_name: str, byte_size: int) -> Optional[IngestionRecord]:
        self._require_ready()
        with self._lock:
            return self._records.get((document_name, byte_size))

    def insert_ingestion_record(self, record: IngestionRecord) -> None:
        self._require_ready()
        with self._lock:
            self._records.setdefault((record.document_name, record.byte_size), record)

    def list_ingestion_records(self) -> List[IngestionRecord]:
        self._require_ready()
        with self._lock:
            return list(self._records.values())


__all__ = ["InMemoryDocumentStore"]
