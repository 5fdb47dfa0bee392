"""Text and page-count extraction for supported document types."""
from __future__ import annotations

import io
from enum import Enum
from pathlib import PurePath

from pdfminer.high_level import extract_text as pdf_extract_text
from pdfminer.pdfpage import PDFPage


class DocumentKind(str, Enum):
    PDF = "pdf"
    TEXT = "text"


# Only the file suffix decides; documents are read from a local directory.
_KIND_BY_SUFFIX = {".pdf": DocumentKind.PDF, ".txt": DocumentKind.TEXT}


class UnsupportedDocumentError(ValueError):
    """The file suffix is not one the extractor can read."""


def document_kind(file_name: str) -> DocumentKind:
    suffix = PurePath(file_name).suffix.lower()
    kind = _KIND_BY_SUFFIX.get(suffix)
    if kind is None:
        raise UnsupportedDocumentError(f"Unsupported document type {suffix or '(none)'!r}: {file_name}")
    return kind


def is_supported_document(file_name: str) -> bool:
    return PurePath(file_name).suffix.lower() in _KIND_BY_SUFFIX


def _decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


class DocumentTextExtractor:
    """Extract plain text and page counts from PDF and plain-text documents.

    Plain-text documents count form feeds as page breaks.
    """

    def extract_text(self, file_name: str, data: bytes) -> str:
        if document_kind(file_name) is DocumentKind.PDF:
            return pdf_extract_text(io.BytesIO(data)) or ""
        return _decode_text(data)

    def count_pages(self, file_name: str, data: bytes) -> int:
        if document_kind(file_name) is DocumentKind.PDF:
            pages = sum(1 for _ in PDFPage.get_pages(io.BytesIO(data)))
            return max(pages, 1)
        return _decode_text(data).count("\f") + 1


__all__ = [
    "DocumentKind",
    "DocumentTextExtractor",
    "UnsupportedDocumentError",
    "document_kind",
    "is_supported_document",
]
