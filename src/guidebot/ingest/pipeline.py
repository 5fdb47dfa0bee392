"""High level ingestion pipeline entry point."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from starlette.concurrency import iterate_in_threadpool

from guidebot.concurrency import call_external
from guidebot.errors import IndexUnavailable, PersistenceFailure
from guidebot.ledgers import IngestionLedger
from guidebot.logging_config import AUDIT_LOGGER_NAME
from guidebot.models import SourceDocument
from guidebot.telemetry import emit_ingest_event, traced_duration

from .chunking import ChunkEstimator
from .extractors import DocumentTextExtractor
from .indexer import Indexer

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


@dataclass(slots=True)
class IngestionReport:
    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    empty: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    segment_count: int = 0
    duration_seconds: float = 0.0

    def as_dict(self) -> Dict[str, object]:
        return {
            "processed": list(self.processed),
            "skipped": list(self.skipped),
            "empty": list(self.empty),
            "failed": dict(self.failed),
            "segment_count": self.segment_count,
            "duration_seconds": round(self.duration_seconds, 3),
        }


class IngestionPipeline:
    """Pipeline orchestrating ledger filtering, extraction, chunking and indexing.

    Documents are processed one at a time; a failure only skips the offending
    document. The ledger record is written only after indexing succeeded.
    """

    def __init__(
        self,
        ledger: IngestionLedger,
        chunker: ChunkEstimator,
        indexer: Indexer,
        *,
        extractor: Optional[DocumentTextExtractor] = None,
        timeout: float | None = None,
    ) -> None:
        self.ledger = ledger
        self.chunker = chunker
        self.indexer = indexer
        self.extractor = extractor or DocumentTextExtractor()
        self._timeout = timeout

    async def run(self, source: Iterable[SourceDocument]) -> IngestionReport:
        report = IngestionReport()
        started = time.perf_counter()
        with traced_duration("ingest.run", logger=LOGGER):
            # Sources may read files while iterating.
            async for document in iterate_in_threadpool(iter(source)):
                await self._ingest_document(document, report)
        report.duration_seconds = time.perf_counter() - started
        LOGGER.info(
            "Ingestion finished: %d processed, %d skipped, %d empty, %d failed",
            len(report.processed),
            len(report.skipped),
            len(report.empty),
            len(report.failed),
        )
        return report

    async def _ingest_document(self, document: SourceDocument, report: IngestionReport) -> None:
        name = document.name
        started = time.perf_counter()

        try:
            pending = await self.ledger.should_process(name, document.byte_size)
        except Exception as error:
            self._fail(report, document, "ledger", error, started)
            return

        if not pending:
            report.skipped.append(name)
            emit_ingest_event(
                "ingest.skip",
                file_name=name,
                size_bytes=document.byte_size,
                reason="already indexed",
            )
            return

        try:
            text = await call_external(
                self.extractor.extract_text, name, document.raw_bytes, timeout=self._timeout
            )
        except Exception as error:
            self._fail(report, document, "extraction", error, started)
            return

        segments = self.chunker.split(text or "", document.page_count, source_document=name)
        if not segments:
            report.empty.append(name)
            emit_ingest_event(
                "ingest.skip",
                file_name=name,
                size_bytes=document.byte_size,
                pages=document.page_count,
                segments=0,
                reason="no extractable text",
            )
            return

        try:
            written = await self.indexer.index(name, segments, byte_size=document.byte_size)
        except IndexUnavailable as error:
            self._fail(report, document, "indexing", error, started)
            return

        try:
            await self.ledger.record(name, document.byte_size, written)
        except PersistenceFailure as error:
            # Passages are indexed; only the durable record is missing.
            self._fail(report, document, "ledger", error, started)
            return

        report.processed.append(name)
        report.segment_count += written
        duration_ms = (time.perf_counter() - started) * 1000.0
        emit_ingest_event(
            "ingest.document",
            file_name=name,
            size_bytes=document.byte_size,
            pages=document.page_count,
            segments=written,
            duration_ms=duration_ms,
        )
        AUDIT_LOGGER.info(
            {
                "event": "document_ingested",
                "document": name,
                "byte_size": document.byte_size,
                "pages": document.page_count,
                "segments": written,
                "duration_ms": round(duration_ms, 3),
            }
        )

    def _fail(
        self,
        report: IngestionReport,
        document: SourceDocument,
        stage: str,
        error: Exception,
        started: float,
    ) -> None:
        report.failed[document.name] = f"{stage}: {error}"
        emit_ingest_event(
            "ingest.error",
            file_name=document.name,
            size_bytes=document.byte_size,
            pages=document.page_count,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            reason=stage,
            error=error,
        )


__all__ = ["IngestionPipeline", "IngestionReport"]
