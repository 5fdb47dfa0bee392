"""Answer pipeline: cache check, retrieval, generation, classification and persistence."""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import List

from guidebot.errors import ConfigurationNotReady
from guidebot.ledgers import ConversationLedger
from guidebot.logging_config import AUDIT_LOGGER_NAME
from guidebot.models import Turn, normalize_question
from guidebot.telemetry import emit_cache_event, emit_exception, log_event, summarize_sources

from .cache import ConsistencyCache
from .classifier import AnswerClassifier, PhraseAnswerClassifier
from .context import ContextWindowBuilder
from .generator import SYSTEM_ERROR, SYSTEM_INITIALIZING, AnswerGenerator, GenerationStatus
from .retriever import Retriever

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


@dataclass(slots=True)
class AnswerResponse:
    """Structured result returned from :meth:`AnswerPipeline.answer`."""

    turn_id: str
    answer: str
    page_numbers: List[int] = field(default_factory=list)
    success: bool = True
    consistent: bool = False


class AnswerPipeline:
    """High level orchestration of a single question/answer exchange.

    Every failure on the answer path is converted into answer text plus a
    ``success=False`` turn; nothing raised here reaches the transport layer.
    """

    def __init__(
        self,
        ledger: ConversationLedger,
        retriever: Retriever,
        generator: AnswerGenerator,
        *,
        cache: ConsistencyCache | None = None,
        context_builder: ContextWindowBuilder | None = None,
        classifier: AnswerClassifier | None = None,
        top_k: int = 5,
    ) -> None:
        self.ledger = ledger
        self.retriever = retriever
        self.generator = generator
        self.cache = cache or ConsistencyCache(ledger)
        self.context_builder = context_builder or ContextWindowBuilder(ledger)
        self.classifier = classifier or PhraseAnswerClassifier()
        self.top_k = top_k

    async def answer(self, question: str, session_id: str) -> AnswerResponse:
        req_id = uuid.uuid4().hex
        turn_id = str(uuid.uuid4())
        started = time.perf_counter()
        try:
            response = await self._answer(question, session_id, turn_id=turn_id, req_id=req_id)
        except ConfigurationNotReady as error:
            log_event(LOGGER, "answer.not_ready", level="warning", req_id=req_id, session_id=session_id, exc=str(error))
            return AnswerResponse(turn_id=turn_id, answer=SYSTEM_INITIALIZING, success=False)
        except Exception as error:
            emit_exception(module=__name__, error=error, req_id=req_id, session_id=session_id)
            await self._persist_quietly(
                Turn(
                    session_id=session_id,
                    turn_id=turn_id,
                    question_normalized=normalize_question(question),
                    question_raw=question.strip(),
                    answer_text=SYSTEM_ERROR,
                    success=False,
                )
            )
            response = AnswerResponse(turn_id=turn_id, answer=SYSTEM_ERROR, success=False)

        AUDIT_LOGGER.info(
            {
                "event": "answer",
                "req_id": req_id,
                "session_id": session_id,
                "turn_id": response.turn_id,
                "success": response.success,
                "consistent": response.consistent,
                "page_numbers": response.page_numbers,
                "duration_ms": round((time.perf_counter() - started) * 1000.0, 3),
            }
        )
        return response

    async def _answer(self, question: str, session_id: str, *, turn_id: str, req_id: str) -> AnswerResponse:
        question_raw = question.strip()
        question_normalized = normalize_question(question)

        cached = await self.cache.lookup(question)
        emit_cache_event(
            req_id=req_id,
            session_id=session_id,
            hit=cached is not None,
            source_turn_id=cached.turn_id if cached is not None else None,
        )
        if cached is not None:
            # Fresh turn so the returned id can receive feedback.
            await self._persist_quietly(
                Turn(
                    session_id=session_id,
                    turn_id=turn_id,
                    question_normalized=question_normalized,
                    question_raw=question_raw,
                    answer_text=cached.answer_text,
                    page_numbers=list(cached.page_numbers),
                    success=True,
                )
            )
            return AnswerResponse(
                turn_id=turn_id,
                answer=cached.answer_text,
                page_numbers=list(cached.page_numbers),
                success=True,
                consistent=True,
            )

        history = self.context_builder.format(await self.context_builder.build(session_id))
        passages = await self.retriever.search(question_raw, self.top_k)
        context = Retriever.join_context(passages)
        page_numbers = Retriever.page_numbers(passages)
        log_event(
            LOGGER,
            "answer.context",
            req_id=req_id,
            session_id=session_id,
            details={
                "passages": len(passages),
                "sources": summarize_sources(
                    str(passage.metadata.get("source_document", "")) for passage in passages
                ),
                "page_numbers": page_numbers,
            },
        )

        outcome = await self.generator.generate(context, history, question_raw, req_id=req_id)
        if outcome.status is GenerationStatus.NO_CONTEXT:
            page_numbers = []
        success = self.classifier.classify(outcome.answer)

        turn = Turn(
            session_id=session_id,
            turn_id=turn_id,
            question_normalized=question_normalized,
            question_raw=question_raw,
            answer_text=outcome.answer,
            page_numbers=page_numbers,
            success=success,
        )
        await self.ledger.append(turn)
        return AnswerResponse(
            turn_id=turn_id,
            answer=turn.answer_text,
            page_numbers=list(turn.page_numbers),
            success=success,
        )

    async def submit_feedback(self, turn_id: str, rating: int) -> bool:
        return await self.ledger.update_rating(turn_id, rating)

    async def _persist_quietly(self, turn: Turn) -> None:
        try:
            await self.ledger.append(turn)
        except Exception as error:
            LOGGER.warning("Ignoring failed write of turn %s: %s", turn.turn_id, error)


__all__ = ["AnswerPipeline", "AnswerResponse"]
