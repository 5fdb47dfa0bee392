"""Utilities for retrieving relevant passages from the passage index."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List

from guidebot.concurrency import call_external
from guidebot.embeddings import EmbeddingModel
from guidebot.models import IndexedPassage
from guidebot.telemetry import emit_retriever_event
from guidebot.vectorstore import PassageIndex

LOGGER = logging.getLogger(__name__)


class Retriever:
    """High level orchestrator for retrieving context passages.

    Retrieval problems degrade to an empty result rather than failing the
    request: an unreachable index or a failed embedding call is logged and
    yields ``[]``.
    """

    def __init__(
        self,
        index: PassageIndex,
        embedding_model: EmbeddingModel,
        *,
        default_k: int = 5,
        timeout: float | None = None,
    ) -> None:
        self._index = index
        self._embedding_model = embedding_model
        self.default_k = default_k
        self._timeout = timeout

    async def search(self, question: str, k: int | None = None) -> List[IndexedPassage]:
        top_k = self.default_k if k is None else k
        if top_k <= 0 or not question or not question.strip():
            return []

        started = time.perf_counter()
        try:
            embedding = await call_external(
                self._embedding_model.embed_query, question, timeout=self._timeout
            )
            if not embedding:
                return []
            matches = await call_external(self._index.query, embedding, top_k, timeout=self._timeout)
        except Exception as error:
            LOGGER.warning("Retrieval failed; continuing with empty context: %s", error)
            emit_retriever_event(
                query=question,
                top_k=top_k,
                results=[],
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            )
            return []

        passages = [match.passage for match in matches]
        results: List[Dict[str, Any]] = [
            {
                "id": match.passage.id,
                "source": match.passage.metadata.get("source_document"),
                "page": match.passage.estimated_page,
                "distance": round(float(match.distance), 6),
            }
            for match in matches
        ]
        emit_retriever_event(
            query=question,
            top_k=top_k,
            results=results,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return passages

    @staticmethod
    def page_numbers(passages: Iterable[IndexedPassage]) -> List[int]:
        """Sorted, de-duplicated positive page estimates of *passages*."""

        return sorted({page for page in (passage.estimated_page for passage in passages) if page > 0})

    @staticmethod
    def join_context(passages: Iterable[IndexedPassage]) -> str:
        return "\n\n".join(passage.text for passage in passages if passage.text)


__all__ = ["Retriever"]
