from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from guidebot.ledgers import ConversationLedger
from guidebot.models import Turn
from guidebot.services.context import ContextWindowBuilder


def _append(ledger: ConversationLedger, index: int, *, session: str = "s1", success: bool = True) -> None:
    asyncio.run(
        ledger.append(
            Turn(
                session_id=session,
                turn_id=f"t{index}",
                question_normalized=f"q{index}",
                question_raw=f"Q{index}",
                answer_text=f"A{index}",
                success=success,
                created_at=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=index),
            )
        )
    )


def test_build_returns_last_three_successful_oldest_first(store) -> None:
    ledger = ConversationLedger(store)
    for index in range(5):
        _append(ledger, index)
    _append(ledger, 5, success=False)
    _append(ledger, 6, session="other")

    pairs = asyncio.run(ContextWindowBuilder(ledger).build("s1"))

    assert pairs == [("Q2", "A2"), ("Q3", "A3"), ("Q4", "A4")]


def test_failed_turns_never_appear(store) -> None:
    ledger = ConversationLedger(store)
    _append(ledger, 0, success=False)
    _append(ledger, 1)

    pairs = asyncio.run(ContextWindowBuilder(ledger).build("s1"))

    assert pairs == [("Q1", "A1")]


def test_format_renders_pairs_or_placeholder() -> None:
    assert ContextWindowBuilder.format([]) == "No previous conversation"
    assert ContextWindowBuilder.format([("Q1", "A1"), ("Q2", "A2")]) == "Q: Q1\nA: A1\n\nQ: Q2\nA: A2"
