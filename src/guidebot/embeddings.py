"""Embedding helpers backed by Sentence Transformers."""
from __future__ import annotations

import hashlib
import logging
import math
import re
import time
from typing import List, Sequence

from guidebot.config import DEFAULT_EMBEDDING_MODEL
from guidebot.telemetry import emit_embeddings_event

LOGGER = logging.getLogger(__name__)

FALLBACK_DIMENSION = 384
FALLBACK_MODEL_NAME = "hashed-bag-of-words"

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


class EmbeddingModel:
    """Wrapper around a SentenceTransformer embedding model with fallback support.

    When heavy dependencies are disabled (or fail to load) texts are embedded
    with a deterministic hashed bag-of-words vector, which keeps lexical
    similarity meaningful for offline development and tests.
    """

    def __init__(
        self,
        model_name_or_path: str | None = None,
        *,
        device: str | None = None,
        install_heavy: bool = False,
    ) -> None:
        model_path = model_name_or_path or DEFAULT_EMBEDDING_MODEL

        self._model = None
        self._dimension = FALLBACK_DIMENSION
        self._embedder = self._fallback_embed_texts
        self._model_name = FALLBACK_MODEL_NAME

        if not install_heavy:
            LOGGER.info("INSTALL_HEAVY is disabled; using deterministic fallback embeddings.")
            return

        try:
            from sentence_transformers import SentenceTransformer  # type: ignore import-not-found
        except Exception as error:  # pragma: no cover - depends on optional deps
            LOGGER.warning(
                "sentence-transformers is unavailable; using deterministic fallback embeddings (%s).",
                error,
            )
            return

        try:
            self._model = SentenceTransformer(model_path, device=device)
        except Exception as error:  # pragma: no cover - unexpected backend errors
            LOGGER.warning(
                "Failed to initialize sentence-transformers model '%s': %s. "
                "Using deterministic fallback embeddings instead.",
                model_path,
                error,
            )
            self._model = None
            return

        self._model_name = model_path
        self._dimension = int(self._model.get_sentence_embedding_dimension())
        self._embedder = self._embed_texts_with_model

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        started = time.perf_counter()
        try:
            embeddings = self._embedder(texts)
        except Exception as error:
            emit_embeddings_event(
                model=self._model_name,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(error)],
            )
            raise

        emit_embeddings_event(
            model=self._model_name,
            count=len(texts),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return embeddings

    def embed_query(self, text: str) -> List[float]:
        vectors = self.embed_texts([text])
        return vectors[0] if vectors else []

    def _embed_texts_with_model(self, texts: Sequence[str]) -> List[List[float]]:
        embeddings = self._model.encode(  # type: ignore[union-attr]
            list(texts),
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return embeddings.tolist()

    def _fallback_embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        return [self._hashed_embedding(str(text)) for text in texts]

    def _hashed_embedding(self, text: str) -> List[float]:
        vector = [0.0] * self._dimension
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._dimension
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            return vector
        return [value / norm for value in vector]

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        return int(self._dimension)


__all__ = ["EmbeddingModel", "FALLBACK_DIMENSION", "FALLBACK_MODEL_NAME"]
