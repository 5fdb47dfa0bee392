from __future__ import annotations

import asyncio

from guidebot.models import IndexedPassage
from guidebot.services.retriever import Retriever

from conftest import FailingPassageIndex


def _passage(passage_id: str, text: str, page: object, embedding_model) -> IndexedPassage:
    return IndexedPassage(
        id=passage_id,
        text=text,
        embedding=embedding_model.embed_query(text),
        metadata={"source_document": "policy.pdf", "estimated_page": page},
    )


def test_search_ranks_by_similarity(passage_index, embedding_model) -> None:
    passage_index.upsert(
        [
            _passage("a", "Fire evacuation routes are posted on every floor.", 1, embedding_model),
            _passage("b", "Hand hygiene is required before patient contact.", 2, embedding_model),
        ]
    )

    results = asyncio.run(Retriever(passage_index, embedding_model).search("hand hygiene before contact", k=2))

    assert [passage.id for passage in results] == ["b", "a"]


def test_search_on_empty_index_returns_nothing(passage_index, embedding_model) -> None:
    assert asyncio.run(Retriever(passage_index, embedding_model).search("What is JCI?")) == []


def test_search_degrades_to_empty_when_index_unreachable(embedding_model) -> None:
    assert asyncio.run(Retriever(FailingPassageIndex(), embedding_model).search("What is JCI?")) == []


def test_page_numbers_are_sorted_unique_and_positive(embedding_model) -> None:
    passages = [
        _passage("a", "x", 3, embedding_model),
        _passage("b", "y", 1, embedding_model),
        _passage("c", "z", 3, embedding_model),
        _passage("d", "w", 0, embedding_model),
        _passage("e", "v", "not-a-page", embedding_model),
    ]

    assert Retriever.page_numbers(passages) == [1, 3]
