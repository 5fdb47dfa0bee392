"""Answer-side services composed by :class:`~guidebot.services.pipeline.AnswerPipeline`."""
from .cache import ConsistencyCache
from .classifier import AnswerClassifier, PhraseAnswerClassifier
from .context import ContextWindowBuilder
from .generator import AnswerGenerator, GenerationOutcome, GenerationStatus
from .pipeline import AnswerPipeline, AnswerResponse
from .retriever import Retriever

__all__ = [
    "AnswerClassifier",
    "AnswerGenerator",
    "AnswerPipeline",
    "AnswerResponse",
    "ConsistencyCache",
    "ContextWindowBuilder",
    "GenerationOutcome",
    "GenerationStatus",
    "PhraseAnswerClassifier",
    "Retriever",
]
