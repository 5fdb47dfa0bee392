"""Embed segments and write them into the passage index."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Dict, List, Optional, Sequence

from guidebot.concurrency import call_external
from guidebot.embeddings import EmbeddingModel
from guidebot.errors import IndexUnavailable
from guidebot.models import IndexedPassage, Segment
from guidebot.telemetry import emit_index_event
from guidebot.vectorstore import PassageIndex

LOGGER = logging.getLogger(__name__)


def passage_id(document_name: str, ordinal_index: int) -> str:
    """Deterministic passage id so re-indexing a document replaces its passages."""

    return uuid.uuid5(uuid.NAMESPACE_URL, f"{document_name}#{ordinal_index}").hex


class Indexer:
    def __init__(
        self,
        index: PassageIndex,
        embedding_model: EmbeddingModel,
        *,
        timeout: float | None = None,
    ) -> None:
        self._index = index
        self._embedding_model = embedding_model
        self._timeout = timeout

    async def index(
        self,
        document_name: str,
        segments: Sequence[Segment],
        *,
        byte_size: Optional[int] = None,
    ) -> int:
        """Embed *segments* and upsert them; returns the number of passages written.

        Any failure surfaces as :class:`IndexUnavailable`.
        """

        if not segments:
            return 0

        started = time.perf_counter()
        try:
            embeddings: List[List[float]] = await call_external(
                self._embedding_model.embed_texts,
                [segment.text for segment in segments],
                timeout=self._timeout,
            )
        except Exception as error:
            raise IndexUnavailable(f"Failed to embed segments of {document_name}", cause=error) from error

        if len(embeddings) != len(segments):
            raise IndexUnavailable(
                f"Embedding model returned {len(embeddings)} vectors for {len(segments)} segments"
            )

        passages = []
        for segment, embedding in zip(segments, embeddings):
            metadata: Dict[str, object] = {
                "source_document": document_name,
                "ordinal_index": segment.ordinal_index,
                "estimated_page": segment.estimated_page,
            }
            if byte_size is not None:
                metadata["byte_size"] = byte_size
            passages.append(
                IndexedPassage(
                    id=passage_id(document_name, segment.ordinal_index),
                    text=segment.text,
                    embedding=list(embedding),
                    metadata=metadata,
                )
            )

        collection = getattr(self._index, "collection_name", "unknown")
        try:
            await call_external(self._index.upsert, passages, timeout=self._timeout)
        except Exception as error:
            emit_index_event(
                "index.upsert",
                collection=collection,
                count=len(passages),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            )
            if isinstance(error, IndexUnavailable):
                raise
            raise IndexUnavailable(f"Failed to index passages of {document_name}", cause=error) from error

        emit_index_event(
            "index.upsert",
            collection=collection,
            count=len(passages),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return len(passages)


__all__ = ["Indexer", "passage_id"]
