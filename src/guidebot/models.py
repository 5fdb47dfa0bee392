"""Records exchanged between the ingestion and answer pipelines."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_question(question: str) -> str:
    """Return the cache key for *question* (trimmed and lower-cased)."""

    return question.strip().lower()


@dataclass(slots=True, frozen=True)
class Document:
    """Identity of a source document; the ingestion ledger keys on it."""

    name: str
    byte_size: int


@dataclass(slots=True)
class SourceDocument:
    """A document as presented to the ingestion pipeline by a source."""

    name: str
    byte_size: int
    raw_bytes: bytes
    page_count: int

    @property
    def identity(self) -> Document:
        return Document(name=self.name, byte_size=self.byte_size)


@dataclass(slots=True)
class Segment:
    """A chunk of document text with its provenance.

    ``estimated_page`` is a linear approximation and must be treated as advisory.
    """

    text: str
    source_document: str
    ordinal_index: int
    estimated_page: int


@dataclass(slots=True)
class IndexedPassage:
    """A segment together with its embedding, as stored in the vector index."""

    id: str
    text: str
    embedding: List[float]
    metadata: Dict[str, object]

    @property
    def estimated_page(self) -> int:
        value = self.metadata.get("estimated_page")
        try:
            return int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0


@dataclass(slots=True)
class Turn:
    """One question/answer exchange within a session."""

    session_id: str
    turn_id: str
    question_normalized: str
    question_raw: str
    answer_text: str
    page_numbers: List[int] = field(default_factory=list)
    rating: Optional[int] = None
    success: bool = True
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.page_numbers = sorted({int(page) for page in self.page_numbers})


@dataclass(slots=True)
class IngestionRecord:
    """Marks a (document name, byte size) pair as fully indexed."""

    document_name: str
    byte_size: int
    segment_count: int
    processed_at: datetime = field(default_factory=utcnow)


__all__ = [
    "Document",
    "IndexedPassage",
    "IngestionRecord",
    "Segment",
    "SourceDocument",
    "Turn",
    "normalize_question",
    "utcnow",
]
