"""Exception taxonomy shared by the answer and ingestion pipelines."""
from __future__ import annotations


class GuidebotError(RuntimeError):
    """Base class for errors raised by guidebot components."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class ConfigurationNotReady(GuidebotError):
    """Raised when the document store schema or connection is not available yet."""


class IndexUnavailable(GuidebotError):
    """Raised when the vector index cannot be reached or rejects an upsert."""


class RetrievalUnavailable(IndexUnavailable):
    """Raised when a similarity query against the vector index fails."""


class GenerationFailure(GuidebotError):
    """Raised when the generation model cannot produce a completion."""


class PersistenceFailure(GuidebotError):
    """Raised when a ledger write or read against the document store fails."""


class StepTimeout(GuidebotError):
    """Raised when an external call exceeds the configured step timeout."""


__all__ = [
    "ConfigurationNotReady",
    "GenerationFailure",
    "GuidebotError",
    "IndexUnavailable",
    "PersistenceFailure",
    "RetrievalUnavailable",
    "StepTimeout",
]
