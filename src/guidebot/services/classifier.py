"""Success/failure classification of generated answers."""
from __future__ import annotations

from typing import Iterable, Protocol, Tuple

FAILURE_SIGNATURES: Tuple[str, ...] = (
    "## System Error",
    "## Error",
    "encountered an error",
    "something went wrong",
    "System is initializing",
    "Information Not Available",
)


class AnswerClassifier(Protocol):
    def classify(self, answer_text: str) -> bool:
        """Return ``True`` when *answer_text* is a successful answer."""


class PhraseAnswerClassifier:
    """Flag an answer as failed when it contains a known failure phrase (case-insensitive)."""

    def __init__(self, signatures: Iterable[str] = FAILURE_SIGNATURES) -> None:
        self._signatures = tuple(signature.lower() for signature in signatures)

    def classify(self, answer_text: str) -> bool:
        lowered = (answer_text or "").lower()
        return not any(signature in lowered for signature in self._signatures)


__all__ = ["AnswerClassifier", "FAILURE_SIGNATURES", "PhraseAnswerClassifier"]
