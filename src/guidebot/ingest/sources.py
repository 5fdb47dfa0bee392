"""Document sources feeding the ingestion pipeline."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional

from guidebot.models import SourceDocument

from .extractors import DocumentTextExtractor, is_supported_document

LOGGER = logging.getLogger(__name__)


class DirectoryDocumentSource:
    """Yield every supported document found directly inside *directory*.

    The directory is created when missing so a fresh deployment starts with an
    empty corpus instead of failing.
    """

    def __init__(self, directory: str | Path, *, extractor: Optional[DocumentTextExtractor] = None) -> None:
        self.directory = Path(directory)
        self.extractor = extractor or DocumentTextExtractor()

    def __iter__(self) -> Iterator[SourceDocument]:
        if not self.directory.exists():
            self.directory.mkdir(parents=True, exist_ok=True)
            LOGGER.info("Created documents directory %s", self.directory)
            return

        for path in sorted(self.directory.iterdir()):
            if not path.is_file() or not is_supported_document(path.name):
                continue
            try:
                data = path.read_bytes()
                page_count = self.extractor.count_pages(path.name, data)
            except Exception:
                LOGGER.exception("Skipping unreadable document %s", path)
                continue
            yield SourceDocument(
                name=path.name,
                byte_size=len(data),
                raw_bytes=data,
                page_count=page_count,
            )


__all__ = ["DirectoryDocumentSource"]
