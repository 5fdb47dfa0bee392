from __future__ import annotations

import asyncio

import pytest

from guidebot.errors import IndexUnavailable
from guidebot.ingest.chunking import ChunkEstimator
from guidebot.ingest.indexer import Indexer, passage_id

from conftest import POLICY_PARAGRAPHS, FailingPassageIndex


def test_index_writes_one_passage_per_segment(passage_index, embedding_model) -> None:
    segments = ChunkEstimator().split("\n\n".join(POLICY_PARAGRAPHS), 2, source_document="policy.pdf")
    indexer = Indexer(passage_index, embedding_model)

    written = asyncio.run(indexer.index("policy.pdf", segments, byte_size=10_240))

    assert written == len(segments)
    assert len(passage_index) == len(segments)
    matches = passage_index.query(embedding_model.embed_query("hand hygiene"), k=1)
    metadata = matches[0].passage.metadata
    assert metadata["source_document"] == "policy.pdf"
    assert metadata["byte_size"] == 10_240
    assert metadata["estimated_page"] in {1, 2}


def test_reindexing_replaces_passages(passage_index, embedding_model) -> None:
    segments = ChunkEstimator().split("\n\n".join(POLICY_PARAGRAPHS), 2, source_document="policy.pdf")
    indexer = Indexer(passage_index, embedding_model)

    asyncio.run(indexer.index("policy.pdf", segments))
    asyncio.run(indexer.index("policy.pdf", segments))

    assert len(passage_index) == len(segments)


def test_passage_ids_are_derived_from_name_and_ordinal() -> None:
    assert passage_id("policy.pdf", 0) == passage_id("policy.pdf", 0)
    assert passage_id("policy.pdf", 0) != passage_id("policy.pdf", 1)
    assert passage_id("policy.pdf", 0) != passage_id("other.pdf", 0)


def test_empty_segments_are_not_indexed(passage_index, embedding_model) -> None:
    assert asyncio.run(Indexer(passage_index, embedding_model).index("empty.txt", [])) == 0
    assert len(passage_index) == 0


def test_backend_failure_raises_index_unavailable(embedding_model) -> None:
    segments = ChunkEstimator().split("Some guideline text.", 1, source_document="a.txt")
    indexer = Indexer(FailingPassageIndex(), embedding_model)

    with pytest.raises(IndexUnavailable):
        asyncio.run(indexer.index("a.txt", segments))
