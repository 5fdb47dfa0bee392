"""Utilities for constructing prompts for the guidelines assistant."""
from __future__ import annotations

from pathlib import Path

_PROMPTS_DIR = Path(__file__).resolve().parents[1] / "prompts"
ANSWER_TEMPLATE_PATH = _PROMPTS_DIR / "answer.txt"

NO_PREVIOUS_CONVERSATION = "No previous conversation"


def load_template(path: str | Path = ANSWER_TEMPLATE_PATH) -> str:
    """Read and trim the contents of a template file."""
    return Path(path).read_text(encoding="utf-8").strip()


def build_prompt(template: str, *, context: str, history: str, question: str) -> str:
    """Fill the answer template with retrieved context, prior turns and the question."""

    if question is None:
        raise ValueError("question must not be None")

    return template.format(
        context=context.strip(),
        history=history.strip() or NO_PREVIOUS_CONVERSATION,
        question=question.strip(),
    ).strip()


__all__ = ["ANSWER_TEMPLATE_PATH", "NO_PREVIOUS_CONVERSATION", "build_prompt", "load_template"]
