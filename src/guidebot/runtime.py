"""Explicitly constructed runtime holding every shared collaborator."""
from __future__ import annotations

import logging
from typing import Optional

from guidebot.concurrency import call_external
from guidebot.config import Settings
from guidebot.embeddings import EmbeddingModel
from guidebot.errors import GuidebotError
from guidebot.ingest import ChunkEstimator, ChunkingConfig, DirectoryDocumentSource, Indexer, IngestionPipeline
from guidebot.ledgers import ConversationLedger, IngestionLedger
from guidebot.llm_provider import LLM, build_llm
from guidebot.services import (
    AnswerGenerator,
    AnswerPipeline,
    ConsistencyCache,
    ContextWindowBuilder,
    PhraseAnswerClassifier,
    Retriever,
)
from guidebot.services.prompt_builder import load_template
from guidebot.storage import DocumentStore, build_document_store
from guidebot.telemetry import emit_app_startup_event
from guidebot.vectorstore import PassageIndex, build_passage_index

LOGGER = logging.getLogger(__name__)


class PipelineContext:
    """Settings plus the embedding model, LLM, passage index, store and prompt template.

    Both pipelines are built from the same context so they share one index and
    one store. ``startup()`` and ``shutdown()`` bracket the application lifetime.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: DocumentStore,
        index: PassageIndex,
        embedding_model: EmbeddingModel,
        llm: LLM,
        prompt_template: Optional[str] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.index = index
        self.embedding_model = embedding_model
        self.llm = llm
        self.prompt_template = prompt_template if prompt_template is not None else load_template()
        self.conversation_ledger = ConversationLedger(store, timeout=settings.step_timeout)
        self.ingestion_ledger = IngestionLedger(store, timeout=settings.step_timeout)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PipelineContext":
        settings = settings or Settings.from_env()
        return cls(
            settings,
            store=build_document_store(settings.document_store, database_path=settings.database_path),
            index=build_passage_index(
                settings.vector_store,
                collection_name=settings.collection_name,
                persist_dir=settings.chroma_persist_dir,
            ),
            embedding_model=EmbeddingModel(
                settings.embedding_model_path,
                install_heavy=settings.install_heavy,
            ),
            llm=build_llm(settings.llm_model_path),
        )

    async def startup(self) -> None:
        emit_app_startup_event()
        try:
            await call_external(self.store.open)
        except GuidebotError as error:
            # Requests are answered with the initializing text until the store opens.
            LOGGER.error("Document store failed to open: %s", error)

        if self.settings.install_heavy and self.settings.llm_model_path:
            try:
                await call_external(self.llm.preload)
            except Exception as error:
                LOGGER.warning("LLM preload failed; generation will retry lazily: %s", error)

    async def shutdown(self) -> None:
        await call_external(self.store.close)

    def build_answer_pipeline(self) -> AnswerPipeline:
        timeout = self.settings.step_timeout
        ledger = self.conversation_ledger
        return AnswerPipeline(
            ledger,
            Retriever(
                self.index,
                self.embedding_model,
                default_k=self.settings.retrieval_top_k,
                timeout=timeout,
            ),
            AnswerGenerator(
                self.llm,
                template=self.prompt_template,
                max_tokens=self.settings.llm_max_tokens,
                temperature=self.settings.llm_temperature,
                timeout=timeout,
            ),
            cache=ConsistencyCache(ledger),
            context_builder=ContextWindowBuilder(ledger, max_turns=self.settings.context_turns),
            classifier=PhraseAnswerClassifier(),
            top_k=self.settings.retrieval_top_k,
        )

    def build_ingestion_pipeline(self) -> IngestionPipeline:
        timeout = self.settings.step_timeout
        return IngestionPipeline(
            self.ingestion_ledger,
            ChunkEstimator(
                ChunkingConfig(
                    chunk_chars=self.settings.chunk_size,
                    overlap_chars=self.settings.chunk_overlap,
                )
            ),
            Indexer(self.index, self.embedding_model, timeout=timeout),
            timeout=timeout,
        )

    def document_source(self) -> DirectoryDocumentSource:
        return DirectoryDocumentSource(self.settings.documents_dir)


__all__ = ["PipelineContext"]
