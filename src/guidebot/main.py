"""FastAPI application factory and lifespan wiring."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from guidebot.api.chat import router as chat_router
from guidebot.api.chat import run_document_ingestion
from guidebot.config import Settings
from guidebot.logging_config import configure_logging
from guidebot.runtime import PipelineContext
from guidebot.telemetry import emit_exception

LOGGER = logging.getLogger(__name__)


async def _ingest_in_background(app: FastAPI) -> None:
    try:
        report = await run_document_ingestion(app)
    except Exception as error:
        emit_exception(module=f"{__name__}.startup_ingest", error=error)
        return
    LOGGER.info("Startup ingestion complete: %s", report.as_dict())


def create_app(context: Optional[PipelineContext] = None, *, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API; the pipeline context is created on startup unless one is supplied."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        resolved_settings = context.settings if context is not None else (settings or Settings.from_env())
        configure_logging(resolved_settings.log_dir)
        pipeline_context = context or PipelineContext.from_settings(resolved_settings)
        await pipeline_context.startup()

        app.state.context = pipeline_context
        app.state.answer_pipeline = pipeline_context.build_answer_pipeline()
        app.state.ingestion_pipeline = pipeline_context.build_ingestion_pipeline()
        app.state.ingest_lock = asyncio.Lock()

        ingest_task: Optional[asyncio.Task] = None
        if resolved_settings.ingest_on_startup:
            ingest_task = asyncio.create_task(_ingest_in_background(app))
        try:
            yield
        finally:
            if ingest_task is not None:
                await ingest_task
            await pipeline_context.shutdown()

    app = FastAPI(title="Guidebot API", lifespan=lifespan)
    app.include_router(chat_router)
    return app


app = create_app()


__all__ = ["app", "create_app"]
