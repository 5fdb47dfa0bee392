from __future__ import annotations

import asyncio

import pytest

from guidebot.errors import ConfigurationNotReady, PersistenceFailure
from guidebot.ledgers import ConversationLedger, IngestionLedger
from guidebot.models import Turn
from guidebot.storage.memory import InMemoryDocumentStore

from conftest import RecordFailingStore, TurnFailingStore


def _turn(turn_id: str, **kwargs) -> Turn:
    values = dict(
        session_id="s1",
        turn_id=turn_id,
        question_normalized="what is jci?",
        question_raw="What is JCI?",
        answer_text="JCI accredits hospitals.",
    )
    values.update(kwargs)
    return Turn(**values)


def test_append_persists_failed_turns_too(store) -> None:
    ledger = ConversationLedger(store)

    asyncio.run(ledger.append(_turn("ok")))
    asyncio.run(ledger.append(_turn("bad", success=False)))

    history = asyncio.run(ledger.history())
    assert {turn.turn_id for turn in history} == {"ok", "bad"}


def test_rating_update_and_unknown_id(store) -> None:
    ledger = ConversationLedger(store)
    asyncio.run(ledger.append(_turn("t1")))

    assert asyncio.run(ledger.update_rating("t1", 4)) is True
    assert asyncio.run(ledger.get("t1")).rating == 4
    assert asyncio.run(ledger.update_rating("does-not-exist", 4)) is False


def test_append_failure_raises_persistence_failure() -> None:
    ledger = ConversationLedger(TurnFailingStore())

    with pytest.raises(PersistenceFailure):
        asyncio.run(ledger.append(_turn("t1")))


def test_append_on_unready_store_raises_not_ready() -> None:
    ledger = ConversationLedger(InMemoryDocumentStore(auto_open=False))

    with pytest.raises(ConfigurationNotReady):
        asyncio.run(ledger.append(_turn("t1")))


def test_ingestion_ledger_record_then_skip(store) -> None:
    ledger = IngestionLedger(store)

    assert asyncio.run(ledger.should_process("policy.pdf", 10240)) is True
    record = asyncio.run(ledger.record("policy.pdf", 10240, 7))

    assert record.segment_count == 7
    assert asyncio.run(ledger.should_process("policy.pdf", 10240)) is False
    assert asyncio.run(ledger.should_process("policy.pdf", 10241)) is True


def test_failed_record_is_remembered_in_process() -> None:
    ledger = IngestionLedger(RecordFailingStore())

    with pytest.raises(PersistenceFailure):
        asyncio.run(ledger.record("policy.pdf", 10240, 7))

    assert asyncio.run(ledger.should_process("policy.pdf", 10240)) is False
    # A new ledger (cold start) indexes the document again.
    assert asyncio.run(IngestionLedger(RecordFailingStore()).should_process("policy.pdf", 10240)) is True
