"""Chroma passage index adapter."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from guidebot.errors import IndexUnavailable, RetrievalUnavailable
from guidebot.models import IndexedPassage

from . import DEFAULT_COLLECTION_NAME, PassageMatch


def _clean_metadata(metadata: Dict[str, object]) -> Dict[str, Any]:
    # Chroma only accepts scalar metadata values.
    return {
        key: value
        for key, value in metadata.items()
        if isinstance(value, (str, int, float, bool))
    }


class ChromaPassageIndex:
    """Adapter around a persistent Chroma collection."""

    def __init__(
        self,
        persist_dir: str | Path,
        *,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        distance_metric: str = "cosine",
        client: Optional[Any] = None,
    ) -> None:
        self.persist_dir = Path(persist_dir)
        self.collection_name = collection_name
        self.distance_metric = distance_metric
        self._client = client
        self._collection: Any = None

    def _get_collection(self) -> Any:
        if self._collection is not None:
            return self._collection
        try:
            if self._client is None:
                import chromadb

                self.persist_dir.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=str(self.persist_dir))
            self._collection = self._client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": self.distance_metric},
            )
        except Exception as exc:
            raise IndexUnavailable("Failed to initialise Chroma collection", cause=exc) from exc
        return self._collection

    def upsert(self, passages: Sequence[IndexedPassage]) -> List[str]:
        if not passages:
            return []
        collection = self._get_collection()
        ids = [passage.id for passage in passages]
        try:
            collection.upsert(
                ids=ids,
                embeddings=[list(map(float, passage.embedding)) for passage in passages],
                documents=[passage.text for passage in passages],
                metadatas=[_clean_metadata(passage.metadata) for passage in passages],
            )
        except Exception as exc:
            raise IndexUnavailable("Failed to upsert passages into Chroma", cause=exc) from exc
        return ids

    def query(self, embedding: Sequence[float], k: int) -> List[PassageMatch]:
        if k <= 0:
            return []
        try:
            collection = self._get_collection()
            available = collection.count()
            if available == 0:
                return []
            result = collection.query(
                query_embeddings=[list(map(float, embedding))],
                n_results=min(k, available),
                include=["documents", "metadatas", "distances", "embeddings"],
            )
        except Exception as exc:
            raise RetrievalUnavailable("Chroma query failed", cause=exc) from exc

        ids = (result.get("ids") or [[]])[0]
        documents = (result.get("documents") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]
        embeddings = result.get("embeddings")
        vectors = embeddings[0] if embeddings is not None and len(embeddings) else [None] * len(ids)

        matches: List[PassageMatch] = []
        for passage_id, document, metadata, distance, vector in zip(
            ids, documents, metadatas, distances, vectors
        ):
            passage = IndexedPassage(
                id=str(passage_id),
                text=str(document or ""),
                embedding=[float(value) for value in vector] if vector is not None else [],
                metadata=dict(metadata or {}),
            )
            matches.append(
                PassageMatch(passage=passage, distance=float(distance) if distance is not None else 0.0)
            )
        return matches


__all__ = ["ChromaPassageIndex"]
