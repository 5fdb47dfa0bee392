"""Structured lifecycle events for the answer and ingestion pipelines."""

from __future__ import annotations

import logging
import os
import platform
import socket
import sys
import time
import traceback
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

LOGGER = logging.getLogger("guidebot.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "DOCUMENTS_DIR",
    "DOCUMENT_STORE",
    "DATABASE_PATH",
    "VECTOR_STORE",
    "CHROMA_PERSIST_DIR",
    "EMBEDDING_MODEL_PATH",
    "INSTALL_HEAVY",
    "LLM_MODEL_PATH",
    "LLM_MAX_TOKENS",
    "LLM_TEMPERATURE",
    "GUIDEBOT_STEP_TIMEOUT",
)


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    session_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if session_id:
        event["session_id"] = session_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_app_startup_event() -> None:
    env_values = {key: os.getenv(key) for key in _ENV_KEYS_TO_LOG if os.getenv(key) is not None}
    details = {
        "env": env_values,
        "python": sys.version.split()[0],
        "platform": platform.platform(),
    }
    log_event(
        LOGGER,
        "app.startup",
        details=details,
        pid=os.getpid(),
        hostname=socket.gethostname(),
        cwd=str(Path.cwd()),
    )


def emit_ingest_event(
    step: str,
    *,
    file_name: str,
    size_bytes: int | None = None,
    pages: int | None = None,
    segments: int | None = None,
    duration_ms: float | None = None,
    reason: str | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "file": file_name,
        "size_bytes": size_bytes,
        "pages": pages,
        "segments": segments,
    }
    if reason:
        details["reason"] = reason
    level = "error" if error else "info"
    log_event(LOGGER, step, level=level, duration_ms=duration_ms, details=details, exc=error)


def emit_index_event(
    step: str,
    *,
    collection: str,
    count: int,
    duration_ms: float | None = None,
    error: BaseException | None = None,
) -> None:
    details = {"collection": collection, "count": count}
    level = "error" if error else "info"
    log_event(LOGGER, step, level=level, duration_ms=duration_ms, details=details, exc=error)


def emit_embeddings_event(
    *, model: str, count: int, duration_ms: float, errors: list[str] | None = None
) -> None:
    details = {
        "model": model,
        "count": count,
        "errors": errors or [],
        "per_item_ms": round(duration_ms / count, 3) if count else None,
    }
    log_event(LOGGER, "embeddings.compute", duration_ms=duration_ms, details=details)


def emit_retriever_event(
    *,
    query: str,
    top_k: int,
    results: list[dict[str, Any]],
    duration_ms: float,
    error: BaseException | None = None,
) -> None:
    details = {
        "query_preview": query[:120],
        "top_k": top_k,
        "results": results,
    }
    level = "warning" if error else "info"
    log_event(
        LOGGER,
        "retriever.search",
        level=level,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_cache_event(*, req_id: str, session_id: str, hit: bool, source_turn_id: str | None) -> None:
    details = {"hit": hit, "source_turn_id": source_turn_id}
    log_event(LOGGER, "cache.lookup", req_id=req_id, session_id=session_id, details=details)


def emit_inference_request(
    *,
    req_id: str,
    prompt_preview: str,
    prompt_len: int,
    temperature: float,
    max_tokens: int | None,
    context_chars: int,
) -> None:
    details = {
        "prompt_preview": prompt_preview[:120],
        "prompt_len": prompt_len,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "context_chars": context_chars,
    }
    log_event(LOGGER, "inference.request", req_id=req_id, details=details)


def emit_inference_result(
    *,
    req_id: str,
    duration_ms: float,
    model_used: str,
    answer_preview: str,
    fallback: bool,
) -> None:
    details = {
        "model_used": model_used,
        "answer_preview": answer_preview[:120],
        "fallback": fallback,
    }
    log_event(LOGGER, "inference.result", req_id=req_id, duration_ms=duration_ms, details=details)


def emit_ledger_event(
    step: str,
    *,
    session_id: str | None = None,
    turn_id: str | None = None,
    success: bool | None = None,
    error: BaseException | None = None,
) -> None:
    details = {"turn_id": turn_id, "success": success}
    level = "error" if error else "info"
    log_event(LOGGER, step, level=level, session_id=session_id, details=details, exc=error)


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    session_id: str | None = None,
) -> None:
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        session_id=session_id,
        details={"module": module},
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(time.perf_counter() - start) * 1000.0,
            details=fields,
        )


def summarize_sources(names: Iterable[str]) -> list[str]:
    """Return the distinct source names in first-seen order."""

    seen: dict[str, None] = {}
    for name in names:
        seen.setdefault(name, None)
    return list(seen)


__all__ = [
    "emit_app_startup_event",
    "emit_cache_event",
    "emit_embeddings_event",
    "emit_exception",
    "emit_index_event",
    "emit_inference_request",
    "emit_inference_result",
    "emit_ingest_event",
    "emit_ledger_event",
    "emit_retriever_event",
    "log_event",
    "summarize_sources",
    "traced_duration",
]
