"""Exact-match cache over previously successful answers."""
from __future__ import annotations

from typing import Optional

from guidebot.ledgers import ConversationLedger
from guidebot.models import Turn, normalize_question


class ConsistencyCache:
    """Return a prior successful turn for the same normalised question.

    Entries are never invalidated; a re-ingested corpus does not refresh
    answers that were already cached.
    """

    def __init__(self, ledger: ConversationLedger) -> None:
        self._ledger = ledger

    async def lookup(self, question_raw: str) -> Optional[Turn]:
        key = normalize_question(question_raw)
        if not key:
            return None
        return await self._ledger.find_successful(key)


__all__ = ["ConsistencyCache"]
