"""Document ingestion: extraction, chunking, indexing and ledger bookkeeping."""
from .chunking import ChunkEstimator, ChunkingConfig, RecursiveTextSplitter
from .extractors import (
    DocumentKind,
    DocumentTextExtractor,
    UnsupportedDocumentError,
    document_kind,
    is_supported_document,
)
from .indexer import Indexer, passage_id
from .pipeline import IngestionPipeline, IngestionReport
from .sources import DirectoryDocumentSource

__all__ = [
    "ChunkEstimator",
    "ChunkingConfig",
    "DirectoryDocumentSource",
    "DocumentKind",
    "DocumentTextExtractor",
    "Indexer",
    "IngestionPipeline",
    "IngestionReport",
    "RecursiveTextSplitter",
    "UnsupportedDocumentError",
    "document_kind",
    "is_supported_document",
    "passage_id",
]
