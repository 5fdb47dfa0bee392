"""Runtime configuration resolved from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _optional_float_from_env(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        parsed = float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; ignoring", name, value)
        return None
    return parsed if parsed > 0 else None


@dataclass(slots=True)
class Settings:
    """Settings shared by every component of the pipeline context."""

    documents_dir: Path = Path("pdfs")
    document_store: str = "sqlite"
    database_path: Path = Path("data/guidebot.sqlite3")
    vector_store: str = "mock"
    chroma_persist_dir: Path = Path("chroma_db")
    collection_name: str = "guideline_passages"
    embedding_model_path: str = DEFAULT_EMBEDDING_MODEL
    install_heavy: bool = False
    llm_model_path: Optional[str] = None
    llm_max_tokens: int = 1200
    llm_temperature: float = 0.0
    chunk_size: int = 1000
    chunk_overlap: int = 200
    retrieval_top_k: int = 5
    context_turns: int = 3
    step_timeout: Optional[float] = None
    ingest_on_startup: bool = True
    log_dir: Path = Path("logs")

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables (and ``.env`` when present)."""

        if dotenv:
            load_dotenv()

        model_path = os.getenv("LLM_MODEL_PATH")
        return cls(
            documents_dir=Path(os.getenv("DOCUMENTS_DIR", "pdfs")),
            document_store=os.getenv("DOCUMENT_STORE", "sqlite").strip().lower(),
            database_path=Path(os.getenv("DATABASE_PATH", "data/guidebot.sqlite3")),
            vector_store=os.getenv("VECTOR_STORE", "mock").strip().lower(),
            chroma_persist_dir=Path(os.getenv("CHROMA_PERSIST_DIR", "chroma_db")),
            collection_name=os.getenv("COLLECTION_NAME", "guideline_passages"),
            embedding_model_path=os.getenv("EMBEDDING_MODEL_PATH", DEFAULT_EMBEDDING_MODEL),
            install_heavy=_env_flag("INSTALL_HEAVY"),
            llm_model_path=model_path.strip() if model_path and model_path.strip() else None,
            llm_max_tokens=_int_from_env("LLM_MAX_TOKENS", 1200),
            llm_temperature=_float_from_env("LLM_TEMPERATURE", 0.0),
            chunk_size=_int_from_env("CHUNK_SIZE", 1000),
            chunk_overlap=_int_from_env("CHUNK_OVERLAP", 200),
            retrieval_top_k=_int_from_env("RETRIEVAL_TOP_K", 5),
            context_turns=_int_from_env("CONTEXT_TURNS", 3),
            step_timeout=_optional_float_from_env("GUIDEBOT_STEP_TIMEOUT"),
            ingest_on_startup=_env_flag("INGEST_ON_STARTUP", True),
            log_dir=Path(os.getenv("LOG_DIR", "logs")),
        )


__all__ = ["DEFAULT_EMBEDDING_MODEL", "Settings"]
