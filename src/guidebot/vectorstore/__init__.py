"""Vector index backends holding the indexed passages."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol, Sequence

from guidebot.errors import IndexUnavailable, RetrievalUnavailable
from guidebot.models import IndexedPassage

DEFAULT_COLLECTION_NAME = "guideline_passages"


@dataclass(slots=True)
class PassageMatch:
    """A passage returned from a similarity query together with its distance."""

    passage: IndexedPassage
    distance: float


class PassageIndex(Protocol):
    """Contract shared by every vector index backend."""

    collection_name: str

    def upsert(self, passages: Sequence[IndexedPassage]) -> List[str]:
        """Insert or replace passages keyed by their ids."""

    def query(self, embedding: Sequence[float], k: int) -> List[PassageMatch]:
        """Return up to *k* passages ordered by ascending distance."""


def build_passage_index(
    backend: str,
    *,
    collection_name: str = DEFAULT_COLLECTION_NAME,
    persist_dir: str | Path | None = None,
) -> PassageIndex:
    """Return a passage index for the configured backend name."""

    backend = backend.strip().lower()
    if backend in {"mock", "memory"}:
        from .mock_store import InMemoryPassageIndex

        return InMemoryPassageIndex(collection_name=collection_name)

    if backend == "chroma":
        from .chroma_store import ChromaPassageIndex

        return ChromaPassageIndex(persist_dir or "chroma_db", collection_name=collection_name)

    raise ValueError(f"Unsupported VECTOR_STORE backend: {backend!r}")


__all__ = [
    "DEFAULT_COLLECTION_NAME",
    "IndexUnavailable",
    "PassageIndex",
    "PassageMatch",
    "RetrievalUnavailable",
    "build_passage_index",
]
