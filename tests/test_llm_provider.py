"""Tests for LLM backend selection."""

from __future__ import annotations

import pytest

from guidebot import llm_provider
from guidebot.errors import GenerationFailure


def test_build_llm_without_path_returns_stub() -> None:
    llm = llm_provider.build_llm(None)

    assert isinstance(llm, llm_provider.LLMStub)
    status = llm.status()
    assert status.model_loaded is False
    assert status.error == "LLM_MODEL_PATH is not configured."


def test_stub_generation_raises_not_ready() -> None:
    with pytest.raises(llm_provider.LLMNotReadyError) as excinfo:
        llm_provider.LLMStub(reason="offline").generate("prompt", 16, 0.0)

    assert isinstance(excinfo.value, GenerationFailure)
    assert str(excinfo.value) == "offline"


def test_transformers_llm_loads_lazily() -> None:
    llm = llm_provider.build_llm("/models/guidelines-7b")

    assert isinstance(llm, llm_provider.TransformersLLM)
    assert llm.model_loaded is False
    assert llm.model_name == "/models/guidelines-7b"
    assert llm.last_error is None
