"""API router exposing chat, feedback, history and ingestion endpoints."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from guidebot.errors import ConfigurationNotReady, GuidebotError
from guidebot.ingest import IngestionPipeline, IngestionReport
from guidebot.models import Turn
from guidebot.runtime import PipelineContext
from guidebot.services import AnswerPipeline

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

HEALTH_MESSAGE = "Hospital Guidelines Chatbot API Running"
MIN_RATING = 1
MAX_RATING = 5


class ChatRequest(BaseModel):
    """Request body accepted by the chat endpoint."""

    message: Optional[str] = Field(None, description="Question asked by the user.")
    sessionId: Optional[str] = Field(None, description="Conversation the question belongs to.")


class ChatResponse(BaseModel):
    success: bool = True
    messageId: str
    answer: str
    pageNumbers: list[int]
    consistent: Optional[bool] = None


class FeedbackRequest(BaseModel):
    messageId: Optional[str] = None
    rating: Optional[int] = None


class ChatRecord(BaseModel):
    sessionId: str
    messageId: str
    question: str
    answer: str
    pageNumbers: list[int]
    rating: Optional[int] = None
    success: bool
    timestamp: datetime


class ChatHistoryResponse(BaseModel):
    success: bool = True
    chats: list[ChatRecord]
    total: int


def get_answer_pipeline(request: Request) -> AnswerPipeline:
    return request.app.state.answer_pipeline


def get_pipeline_context(request: Request) -> PipelineContext:
    return request.app.state.context


async def run_document_ingestion(request_app: Any) -> IngestionReport:
    """Scan the configured documents directory; concurrent runs are serialised."""

    state = request_app.state
    pipeline: IngestionPipeline = state.ingestion_pipeline
    async with state.ingest_lock:
        return await pipeline.run(state.context.document_source())


def _serialise_turn(turn: Turn) -> ChatRecord:
    return ChatRecord(
        sessionId=turn.session_id,
        messageId=turn.turn_id,
        question=turn.question_raw,
        answer=turn.answer_text,
        pageNumbers=list(turn.page_numbers),
        rating=turn.rating,
        success=turn.success,
        timestamp=turn.created_at,
    )


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(
    payload: ChatRequest,
    pipeline: AnswerPipeline = Depends(get_answer_pipeline),
) -> ChatResponse:
    """Answer a question from the ingested guideline documents."""

    if not payload.message or not payload.message.strip() or not payload.sessionId or not payload.sessionId.strip():
        raise HTTPException(status_code=400, detail="Message and sessionId required")

    result = await pipeline.answer(payload.message, payload.sessionId)
    return ChatResponse(
        messageId=result.turn_id,
        answer=result.answer,
        pageNumbers=result.page_numbers,
        consistent=True if result.consistent else None,
    )


@router.post("/feedback")
async def feedback(
    payload: FeedbackRequest,
    pipeline: AnswerPipeline = Depends(get_answer_pipeline),
) -> dict[str, Any]:
    """Attach a 1-5 rating to a previous answer; unknown ids are accepted."""

    if not payload.messageId or payload.rating is None:
        raise HTTPException(status_code=400, detail="MessageId and rating required")
    if not MIN_RATING <= payload.rating <= MAX_RATING:
        raise HTTPException(status_code=400, detail=f"Rating must be between {MIN_RATING} and {MAX_RATING}")

    try:
        await pipeline.submit_feedback(payload.messageId, payload.rating)
    except ConfigurationNotReady as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except GuidebotError as exc:
        LOGGER.error("Failed to save rating for %s: %s", payload.messageId, exc)
        raise HTTPException(status_code=500, detail="Failed to save rating") from exc
    return {"success": True}


@router.get("/chats", response_model=ChatHistoryResponse)
async def chat_history(
    context: PipelineContext = Depends(get_pipeline_context),
) -> ChatHistoryResponse:
    """Every stored turn across all sessions, newest first."""

    try:
        turns = await context.conversation_ledger.history()
    except ConfigurationNotReady as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except GuidebotError as exc:
        LOGGER.error("Failed to fetch chat history: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch chat history") from exc

    chats = [_serialise_turn(turn) for turn in turns]
    return ChatHistoryResponse(chats=chats, total=len(chats))


@router.get("/health")
def health(context: PipelineContext = Depends(get_pipeline_context)) -> dict[str, Any]:
    status = context.llm.status()
    return {
        "status": "OK",
        "message": HEALTH_MESSAGE,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "model": {
            "loaded": status.model_loaded,
            "name": status.model_name,
            "device": status.device,
            "error": status.error,
        },
    }


@router.post("/documents/rescan")
async def rescan_documents(request: Request) -> dict[str, Any]:
    """Ingest any new or changed documents from the documents directory."""

    report = await run_document_ingestion(request.app)
    return {"success": True, **report.as_dict()}


__all__ = ["router", "run_document_ingestion"]
