"""Shared fakes and fixtures for the pipeline tests."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from guidebot.config import Settings
from guidebot.embeddings import EmbeddingModel
from guidebot.errors import PersistenceFailure
from guidebot.llm_provider import LLM
from guidebot.models import IngestionRecord, Segment, SourceDocument, Turn
from guidebot.runtime import PipelineContext
from guidebot.storage.memory import InMemoryDocumentStore
from guidebot.vectorstore.mock_store import InMemoryPassageIndex

POLICY_PARAGRAPHS = (
    "Hand hygiene must be performed before and after every patient contact. "
    "Staff use alcohol based hand rub unless hands are visibly soiled, in which "
    "case soap and water are required. Compliance is audited monthly by the "
    "infection control team and results are shared with every clinical unit. " * 6,
    "Patient identification uses two identifiers, the full name and the date of "
    "birth, before any medication, blood product or procedure. Room numbers are "
    "never used as identifiers. JCI surveyors review identification practice "
    "during tracer activities on each inpatient ward. " * 6,
)


class FakeLLM(LLM):
    """Return a canned answer and remember every prompt it received."""

    def __init__(self, response: str = "## Summary\n\nStaff must perform **hand hygiene** before patient contact.") -> None:
        self.response = response
        self.prompts: List[str] = []

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        self.prompts.append(prompt)
        return self.response

    @property
    def model_name(self) -> str:
        return "fake-llm"

    @property
    def model_loaded(self) -> bool:
        return True


class FailingLLM(FakeLLM):
    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        self.prompts.append(prompt)
        raise RuntimeError("model crashed")


class FailingPassageIndex:
    collection_name = "broken"

    def upsert(self, passages: Sequence[object]) -> List[str]:
        raise ConnectionError("index unreachable")

    def query(self, embedding: Sequence[float], k: int) -> list:
        raise ConnectionError("index unreachable")


class RecordingIndexer:
    """Indexer double counting calls; optionally failing the first *fail_times* calls."""

    def __init__(self, *, fail_times: int = 0) -> None:
        self.calls: List[tuple[str, int]] = []
        self.fail_times = fail_times

    async def index(self, document_name: str, segments: Sequence[Segment], *, byte_size: Optional[int] = None) -> int:
        from guidebot.errors import IndexUnavailable

        self.calls.append((document_name, len(segments)))
        if self.fail_times > 0:
            self.fail_times -= 1
            raise IndexUnavailable("index unreachable")
        return len(segments)


class FakeExtractor:
    """Serve extracted text from a mapping instead of parsing the bytes."""

    def __init__(self, texts: Dict[str, str]) -> None:
        self.texts = texts

    def extract_text(self, file_name: str, data: bytes) -> str:
        return self.texts[file_name]

    def count_pages(self, file_name: str, data: bytes) -> int:
        return self.texts[file_name].count("\f") + 1


class RecordFailingStore(InMemoryDocumentStore):
    def insert_ingestion_record(self, record: IngestionRecord) -> None:
        raise OSError("disk full")


class LookupFailingStore(InMemoryDocumentStore):
    """Fail ingestion-record lookups for the named documents only."""

    def __init__(self, *failing: str) -> None:
        super().__init__()
        self.failing = set(failing)

    def find_ingestion_record(self, document_name: str, byte_size: int) -> Optional[IngestionRecord]:
        if document_name in self.failing:
            raise PersistenceFailure("lookup failed")
        return super().find_ingestion_record(document_name, byte_size)


class TurnFailingStore(InMemoryDocumentStore):
    def insert_turn(self, turn: Turn) -> None:
        raise OSError("disk full")


def make_text_document(name: str, text: str, *, page_count: Optional[int] = None) -> SourceDocument:
    data = text.encode("utf-8")
    return SourceDocument(
        name=name,
        byte_size=len(data),
        raw_bytes=data,
        page_count=page_count if page_count is not None else text.count("\f") + 1,
    )


def make_settings(tmp_path: Path, **overrides: object) -> Settings:
    values: Dict[str, object] = {
        "documents_dir": tmp_path / "pdfs",
        "document_store": "memory",
        "database_path": tmp_path / "guidebot.sqlite3",
        "vector_store": "mock",
        "ingest_on_startup": False,
        "log_dir": tmp_path / "logs",
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def passage_index() -> InMemoryPassageIndex:
    return InMemoryPassageIndex()


@pytest.fixture
def embedding_model() -> EmbeddingModel:
    return EmbeddingModel(install_heavy=False)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def pipeline_context(
    tmp_path: Path,
    store: InMemoryDocumentStore,
    passage_index: InMemoryPassageIndex,
    embedding_model: EmbeddingModel,
    fake_llm: FakeLLM,
) -> PipelineContext:
    return PipelineContext(
        make_settings(tmp_path),
        store=store,
        index=passage_index,
        embedding_model=embedding_model,
        llm=fake_llm,
    )
