"""Chunking utilities for breaking document text into indexable segments."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from guidebot.models import Segment

LOGGER = logging.getLogger(__name__)

DEFAULT_SEPARATORS: Tuple[str, ...] = ("\n\n", "\n", ". ", " ")


@dataclass(slots=True)
class ChunkingConfig:
    chunk_chars: int = 1000
    overlap_chars: int = 200
    separators: Tuple[str, ...] = DEFAULT_SEPARATORS


class RecursiveTextSplitter:
    """Split text on the first separator that occurs in it, recursing on oversized pieces.

    Separators are tried in preference order (paragraph, line, sentence,
    space); when none of them is present the text is cut character by
    character. Adjacent pieces are merged back up to ``chunk_chars`` with
    ``overlap_chars`` carried over between consecutive chunks.
    """

    def __init__(self, config: ChunkingConfig) -> None:
        if config.chunk_chars <= 0:
            raise ValueError("chunk_chars must be a positive integer")
        if config.overlap_chars < 0:
            raise ValueError("overlap_chars must be a non-negative integer")
        if config.overlap_chars >= config.chunk_chars:
            raise ValueError("overlap_chars must be smaller than chunk_chars")
        self.config = config

    def split_text(self, text: str) -> List[str]:
        if not text:
            return []
        return self._split(text, list(self.config.separators) + [""])

    def _split(self, text: str, separators: Sequence[str]) -> List[str]:
        separator = separators[-1]
        remaining: Sequence[str] = ()
        for index, candidate in enumerate(separators):
            if candidate == "":
                separator = ""
                break
            if candidate in text:
                separator = candidate
                remaining = separators[index + 1 :]
                break

        pieces = text.split(separator) if separator else list(text)
        pieces = [piece for piece in pieces if piece]

        chunks: List[str] = []
        pending: List[str] = []
        for piece in pieces:
            if len(piece) < self.config.chunk_chars:
                pending.append(piece)
                continue
            if pending:
                chunks.extend(self._merge(pending, separator))
                pending = []
            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                chunks.append(piece)
        if pending:
            chunks.extend(self._merge(pending, separator))
        return chunks

    def _merge(self, pieces: Sequence[str], separator: str) -> List[str]:
        chunk_chars = self.config.chunk_chars
        overlap_chars = self.config.overlap_chars
        separator_len = len(separator)

        merged: List[str] = []
        current: List[str] = []
        total = 0
        for piece in pieces:
            length = len(piece)
            if total + length + (separator_len if current else 0) > chunk_chars:
                if current:
                    chunk = separator.join(current).strip()
                    if chunk:
                        merged.append(chunk)
                    while total > overlap_chars or (
                        total + length + (separator_len if current else 0) > chunk_chars and total > 0
                    ):
                        total -= len(current[0]) + (separator_len if len(current) > 1 else 0)
                        current.pop(0)
            current.append(piece)
            total += length + (separator_len if len(current) > 1 else 0)

        chunk = separator.join(current).strip()
        if chunk:
            merged.append(chunk)
        return merged


class ChunkEstimator:
    """Split document text into segments and attribute each to a source page.

    Page attribution assumes text is spread evenly across pages:
    ``floor(ordinal * chunk_chars / (len(text) / total_pages)) + 1`` clamped to
    ``[1, total_pages]``. Documents with uneven text density per page will be
    misattributed, so ``estimated_page`` is advisory only.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        self.splitter = RecursiveTextSplitter(self.config)

    def split(self, text: str, total_pages: int, *, source_document: str = "") -> List[Segment]:
        if not text or not text.strip():
            return []

        pieces = self.splitter.split_text(text)
        segments = [
            Segment(
                text=piece,
                source_document=source_document,
                ordinal_index=ordinal,
                estimated_page=self.estimate_page(ordinal, len(text), total_pages),
            )
            for ordinal, piece in enumerate(pieces)
        ]
        LOGGER.debug("Split %s into %d segments over %d pages", source_document, len(segments), total_pages)
        return segments

    def estimate_page(self, ordinal_index: int, text_length: int, total_pages: int) -> int:
        pages = max(int(total_pages), 1)
        if text_length <= 0:
            return 1
        average_chars_per_page = text_length / pages
        estimated = math.floor(ordinal_index * self.config.chunk_chars / average_chars_per_page) + 1
        return min(max(estimated, 1), pages)


__all__ = ["ChunkEstimator", "ChunkingConfig", "DEFAULT_SEPARATORS", "RecursiveTextSplitter"]
