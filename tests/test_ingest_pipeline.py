"""Tests for the ingestion pipeline using in-memory backends."""
from __future__ import annotations

import asyncio
import threading
from pathlib import Path

from guidebot.ingest import ChunkEstimator, DirectoryDocumentSource, Indexer, IngestionPipeline, IngestionReport
from guidebot.ledgers import IngestionLedger
from guidebot.models import Document
from guidebot.storage.memory import InMemoryDocumentStore

from conftest import (
    POLICY_PARAGRAPHS,
    FakeExtractor,
    LookupFailingStore,
    RecordFailingStore,
    RecordingIndexer,
    make_text_document,
)


def _policy_document():
    text = "\n\n".join(POLICY_PARAGRAPHS)
    document = make_text_document("policy.pdf", text, page_count=2)
    document.byte_size = 10 * 1024
    return document, FakeExtractor({"policy.pdf": text})


def test_two_page_policy_is_indexed_and_recorded(store, passage_index, embedding_model) -> None:
    document, extractor = _policy_document()
    pipeline = IngestionPipeline(
        IngestionLedger(store),
        ChunkEstimator(),
        Indexer(passage_index, embedding_model),
        extractor=extractor,
    )

    report = asyncio.run(pipeline.run([document]))

    assert report.processed == ["policy.pdf"]
    assert report.segment_count > 0
    records = store.list_ingestion_records()
    assert len(records) == 1
    assert records[0].document_name == "policy.pdf"
    assert records[0].byte_size == 10 * 1024
    assert records[0].segment_count == report.segment_count

    matches = passage_index.query(embedding_model.embed_query("patient identification"), k=len(passage_index))
    assert {match.passage.estimated_page for match in matches} <= {1, 2}


def test_double_ingestion_indexes_once(store) -> None:
    document, extractor = _policy_document()
    indexer = RecordingIndexer()
    pipeline = IngestionPipeline(IngestionLedger(store), ChunkEstimator(), indexer, extractor=extractor)

    first = asyncio.run(pipeline.run([document]))
    second = asyncio.run(pipeline.run([document]))

    assert first.processed == ["policy.pdf"]
    assert second.processed == []
    assert second.skipped == ["policy.pdf"]
    assert len(indexer.calls) == 1
    assert len(store.list_ingestion_records()) == 1


def test_changed_size_is_reprocessed(store) -> None:
    indexer = RecordingIndexer()
    pipeline = IngestionPipeline(IngestionLedger(store), ChunkEstimator(), indexer)

    asyncio.run(pipeline.run([make_text_document("notes.txt", "Short guideline.")]))
    asyncio.run(pipeline.run([make_text_document("notes.txt", "Short guideline, now revised.")]))

    assert [name for name, _ in indexer.calls] == ["notes.txt", "notes.txt"]
    assert len(store.list_ingestion_records()) == 2


def test_index_failure_skips_record_and_retries_later(store) -> None:
    indexer = RecordingIndexer(fail_times=1)
    pipeline = IngestionPipeline(IngestionLedger(store), ChunkEstimator(), indexer)
    documents = [
        make_text_document("a.txt", "First guideline."),
        make_text_document("b.txt", "Second guideline."),
    ]

    first = asyncio.run(pipeline.run(documents))

    assert "a.txt" in first.failed
    assert first.processed == ["b.txt"]
    assert [record.document_name for record in store.list_ingestion_records()] == ["b.txt"]

    second = asyncio.run(pipeline.run(documents))
    assert second.processed == ["a.txt"]
    assert second.skipped == ["b.txt"]


def test_record_failure_is_reported_but_not_reindexed_in_process() -> None:
    store = RecordFailingStore()
    indexer = RecordingIndexer()
    pipeline = IngestionPipeline(IngestionLedger(store), ChunkEstimator(), indexer)
    document = make_text_document("a.txt", "Guideline text.")

    first = asyncio.run(pipeline.run([document]))
    second = asyncio.run(pipeline.run([document]))

    assert first.failed["a.txt"].startswith("ledger")
    assert second.skipped == ["a.txt"]
    assert len(indexer.calls) == 1
    assert store.list_ingestion_records() == []


def test_ledger_lookup_failure_skips_only_that_document() -> None:
    store = LookupFailingStore("bad.txt")
    indexer = RecordingIndexer()
    pipeline = IngestionPipeline(IngestionLedger(store), ChunkEstimator(), indexer)
    documents = [make_text_document("bad.txt", "Broken entry."), make_text_document("good.txt", "Guideline text.")]

    report = asyncio.run(pipeline.run(documents))

    assert report.failed == {"bad.txt": "ledger: lookup failed"}
    assert report.processed == ["good.txt"]
    assert [name for name, _ in indexer.calls] == ["good.txt"]
    assert [record.document_name for record in store.list_ingestion_records()] == ["good.txt"]


def test_document_without_text_is_reported_empty_and_not_recorded(store) -> None:
    indexer = RecordingIndexer()
    pipeline = IngestionPipeline(IngestionLedger(store), ChunkEstimator(), indexer)

    report = asyncio.run(pipeline.run([make_text_document("blank.txt", "  \n\n ")]))

    assert report.empty == ["blank.txt"]
    assert indexer.calls == []
    assert store.list_ingestion_records() == []


def test_unready_store_still_processes_documents() -> None:
    store = InMemoryDocumentStore(auto_open=False)
    indexer = RecordingIndexer()
    pipeline = IngestionPipeline(IngestionLedger(store), ChunkEstimator(), indexer)

    report = asyncio.run(pipeline.run([make_text_document("a.txt", "Guideline text.")]))

    assert len(indexer.calls) == 1
    assert "a.txt" in report.failed


def test_directory_source_yields_supported_files(tmp_path: Path) -> None:
    (tmp_path / "b.txt").write_text("Page one.\fPage two.", encoding="utf-8")
    (tmp_path / "a.txt").write_text("Only page.", encoding="utf-8")
    (tmp_path / "notes.docx").write_bytes(b"ignored")

    documents = list(DirectoryDocumentSource(tmp_path))

    assert [document.name for document in documents] == ["a.txt", "b.txt"]
    assert documents[0].page_count == 1
    assert documents[1].page_count == 2
    assert documents[0].byte_size == len("Only page.".encode("utf-8"))


def test_directory_source_creates_missing_directory(tmp_path: Path) -> None:
    directory = tmp_path / "pdfs"

    assert list(DirectoryDocumentSource(directory)) == []
    assert directory.is_dir()


def test_source_is_iterated_off_the_event_loop(store) -> None:
    iterating_threads: list[int] = []

    class ThreadRecordingSource:
        def __iter__(self):
            iterating_threads.append(threading.get_ident())
            yield make_text_document("a.txt", "Guideline text.")

    async def runner() -> tuple[int, IngestionReport]:
        pipeline = IngestionPipeline(IngestionLedger(store), ChunkEstimator(), RecordingIndexer())
        return threading.get_ident(), await pipeline.run(ThreadRecordingSource())

    loop_thread, report = asyncio.run(runner())

    assert report.processed == ["a.txt"]
    assert iterating_threads and loop_thread not in iterating_threads


def test_source_document_identity_is_name_and_size() -> None:
    document = make_text_document("policy.pdf", "abc")

    assert document.identity == Document(name="policy.pdf", byte_size=3)
    assert {document.identity, make_text_document("policy.pdf", "xyz").identity} == {document.identity}
