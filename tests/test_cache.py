from __future__ import annotations

import asyncio

from guidebot.ledgers import ConversationLedger
from guidebot.models import Turn
from guidebot.services.cache import ConsistencyCache


def _turn(turn_id: str, answer: str, *, success: bool = True) -> Turn:
    return Turn(
        session_id="s1",
        turn_id=turn_id,
        question_normalized="what is jci?",
        question_raw="What is JCI?",
        answer_text=answer,
        page_numbers=[2],
        success=success,
    )


def test_lookup_normalises_question(store) -> None:
    ledger = ConversationLedger(store)
    asyncio.run(ledger.append(_turn("t1", "JCI accredits hospitals.")))

    hit = asyncio.run(ConsistencyCache(ledger).lookup("   WHAT is JCI?  "))

    assert hit is not None
    assert hit.turn_id == "t1"
    assert hit.page_numbers == [2]


def test_only_successful_turns_are_cached(store) -> None:
    ledger = ConversationLedger(store)
    asyncio.run(ledger.append(_turn("bad", "## System Error", success=False)))

    assert asyncio.run(ConsistencyCache(ledger).lookup("What is JCI?")) is None


def test_earliest_successful_turn_wins(store) -> None:
    ledger = ConversationLedger(store)
    asyncio.run(ledger.append(_turn("bad", "## System Error", success=False)))
    asyncio.run(ledger.append(_turn("first", "First answer.")))
    asyncio.run(ledger.append(_turn("second", "Second answer.")))

    hit = asyncio.run(ConsistencyCache(ledger).lookup("what is jci?"))

    assert hit is not None
    assert hit.answer_text == "First answer."


def test_blank_question_never_hits(store) -> None:
    assert asyncio.run(ConsistencyCache(ConversationLedger(store)).lookup("   ")) is None
