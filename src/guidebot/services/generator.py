"""Grounded answer generation on top of the configured LLM."""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from guidebot.concurrency import call_external
from guidebot.llm_provider import LLM
from guidebot.telemetry import emit_exception, emit_inference_request, emit_inference_result

from .prompt_builder import build_prompt, load_template

LOGGER = logging.getLogger(__name__)

INFORMATION_NOT_AVAILABLE = """## Information Not Available

I don't have relevant information in the hospital guidelines to answer this question.

## Please Check
• PDF documents are uploaded to the system
• The question relates to hospital procedures or guidelines
• System has finished processing documents"""

SYSTEM_ERROR = """## System Error

I apologize, but I encountered an error while processing your question.

## Please Try
• Asking the question again
• Using different wording
• Checking if the system is properly initialized"""

SYSTEM_INITIALIZING = "## System Error\n\nSystem is initializing. Please wait a moment and try again."

_SPACING_RULES = (
    (re.compile(r"([.!?])\s*(##)"), "\\1\n\n\\2"),
    (re.compile(r"(##[^•\n]+?)(?=\s*•)"), "\\1\n\n"),
    (re.compile(r"(•[^•#\n]*?)(?=\s*•)"), "\\1\n"),
    (re.compile(r"(•[^•#\n]*?)(?=\s*##)"), "\\1\n\n"),
)
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_EDGE_NEWLINES = re.compile(r"\A\n+|\n+\Z")
_PAGE_REFERENCES = (
    re.compile(r"\(Page\s+\d+[^)]*\)", re.IGNORECASE),
    re.compile(r"Page\s+\d+[^.]*\.?", re.IGNORECASE),
)


def format_response(raw_response: str) -> str:
    """Normalise heading and bullet spacing in model output."""

    formatted = raw_response
    for pattern, replacement in _SPACING_RULES:
        formatted = pattern.sub(replacement, formatted)
    formatted = _EXCESS_NEWLINES.sub("\n\n", formatted)
    return _EDGE_NEWLINES.sub("", formatted)


def strip_page_references(text: str) -> str:
    for pattern in _PAGE_REFERENCES:
        text = pattern.sub("", text)
    return text.strip()


class GenerationStatus(str, Enum):
    GENERATED = "generated"
    NO_CONTEXT = "no_context"
    MODEL_ERROR = "model_error"


@dataclass(slots=True)
class GenerationOutcome:
    answer: str
    status: GenerationStatus

    @property
    def model_invoked(self) -> bool:
        return self.status is not GenerationStatus.NO_CONTEXT


class AnswerGenerator:
    """Produce an answer from retrieved context, or a fixed fallback text.

    The model is never called without grounding context, and a model failure
    never propagates: it is turned into the fixed system-error answer.
    """

    def __init__(
        self,
        llm: LLM,
        *,
        template: Optional[str] = None,
        max_tokens: int = 1200,
        temperature: float = 0.0,
        timeout: float | None = None,
    ) -> None:
        self.llm = llm
        self.template = template if template is not None else load_template()
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._timeout = timeout

    async def generate(
        self,
        context: str,
        history: str,
        question: str,
        *,
        req_id: str | None = None,
    ) -> GenerationOutcome:
        if not context or not context.strip():
            return GenerationOutcome(INFORMATION_NOT_AVAILABLE, GenerationStatus.NO_CONTEXT)

        prompt = build_prompt(self.template, context=context, history=history, question=question)
        emit_inference_request(
            req_id=req_id or "",
            prompt_preview=question,
            prompt_len=len(prompt),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            context_chars=len(context),
        )

        started = time.perf_counter()
        try:
            raw = await call_external(
                self.llm.generate,
                prompt,
                self.max_tokens,
                self.temperature,
                timeout=self._timeout,
            )
        except Exception as error:
            emit_exception(module=__name__, error=error, req_id=req_id)
            emit_inference_result(
                req_id=req_id or "",
                duration_ms=(time.perf_counter() - started) * 1000.0,
                model_used=self.llm.model_name,
                answer_preview=SYSTEM_ERROR,
                fallback=True,
            )
            return GenerationOutcome(SYSTEM_ERROR, GenerationStatus.MODEL_ERROR)

        answer = strip_page_references(format_response(str(raw or "")))
        emit_inference_result(
            req_id=req_id or "",
            duration_ms=(time.perf_counter() - started) * 1000.0,
            model_used=self.llm.model_name,
            answer_preview=answer,
            fallback=False,
        )
        return GenerationOutcome(answer, GenerationStatus.GENERATED)


__all__ = [
    "AnswerGenerator",
    "GenerationOutcome",
    "GenerationStatus",
    "INFORMATION_NOT_AVAILABLE",
    "SYSTEM_ERROR",
    "SYSTEM_INITIALIZING",
    "format_response",
    "strip_page_references",
]
