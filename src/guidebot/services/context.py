"""Conversation history assembly for the generation prompt."""
from __future__ import annotations

from typing import List, Sequence, Tuple

from guidebot.ledgers import ConversationLedger

from .prompt_builder import NO_PREVIOUS_CONVERSATION

DEFAULT_CONTEXT_TURNS = 3


class ContextWindowBuilder:
    def __init__(self, ledger: ConversationLedger, *, max_turns: int = DEFAULT_CONTEXT_TURNS) -> None:
        self._ledger = ledger
        self.max_turns = max_turns

    async def build(self, session_id: str) -> List[Tuple[str, str]]:
        """Return the most recent successful (question, answer) pairs, oldest first."""

        turns = await self._ledger.recent_successful(session_id, self.max_turns)
        return [(turn.question_raw, turn.answer_text) for turn in reversed(turns) if turn.success]

    @staticmethod
    def format(pairs: Sequence[Tuple[str, str]]) -> str:
        if not pairs:
            return NO_PREVIOUS_CONVERSATION
        return "\n\n".join(f"Q: {question}\nA: {answer}" for question, answer in pairs)


__all__ = ["ContextWindowBuilder", "DEFAULT_CONTEXT_TURNS"]
