"""In-memory passage index for development and tests."""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Sequence

import numpy as np

from guidebot.errors import IndexUnavailable
from guidebot.models import IndexedPassage

from . import DEFAULT_COLLECTION_NAME, PassageMatch

LOGGER = logging.getLogger(__name__)


class InMemoryPassageIndex:
    """Keep passages in a dict and rank them by cosine distance."""

    def __init__(self, *, collection_name: str = DEFAULT_COLLECTION_NAME) -> None:
        self.collection_name = collection_name
        self._items: Dict[str, IndexedPassage] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def upsert(self, passages: Sequence[IndexedPassage]) -> List[str]:
        if not passages:
            return []
        dimensions = {len(passage.embedding) for passage in passages}
        if len(dimensions) != 1:
            raise IndexUnavailable("All passages must share the same embedding dimension")
        (dimension,) = dimensions

        with self._lock:
            stored = next(iter(self._items.values()), None)
            if stored is not None and len(stored.embedding) != dimension:
                raise IndexUnavailable(
                    f"Embedding dimension {dimension} does not match the index dimension {len(stored.embedding)}"
                )
            for passage in passages:
                self._items[passage.id] = passage
        LOGGER.debug("Upserted %d passages into %s", len(passages), self.collection_name)
        return [passage.id for passage in passages]

    def query(self, embedding: Sequence[float], k: int) -> List[PassageMatch]:
        if k <= 0:
            return []
        with self._lock:
            items = list(self._items.values())
        if not items:
            return []

        matrix = np.asarray([item.embedding for item in items], dtype=float)
        query = np.asarray(embedding, dtype=float)
        if matrix.shape[1] != query.shape[0]:
            raise ValueError("Vectors must be of the same dimension")

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        similarities = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
        distances = 1.0 - similarities

        order = np.argsort(distances, kind="stable")[:k]
        return [PassageMatch(passage=items[index], distance=float(distances[index])) for index in order]


__all__ = ["InMemoryPassageIndex"]
