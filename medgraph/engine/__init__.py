"""
Graph-grounded retrieval engine.
"""

from .retrieval_engine import GraphRetrievalEngine
from .relevance import RelevanceScorer
from .traversal import TraversalEngine
from .composer import ResponseComposer
from .hallucination import HallucinationDetector
from .evaluation import EvaluationScorer
from .traversal_cache import TraversalCache
from .models import (
    EmptyQueryError,
    QueryResult,
    TraversalResult,
    TraversalStep,
    TraversalPathEntry,
    HallucinationReport,
    GenerationResult,
    ComposedResponse,
)

__all__ = [
    "GraphRetrievalEngine",
    "RelevanceScorer",
    "TraversalEngine",
    "ResponseComposer",
    "HallucinationDetector",
    "EvaluationScorer",
    "TraversalCache",
    "EmptyQueryError",
    "QueryResult",
    "TraversalResult",
    "TraversalStep",
    "TraversalPathEntry",
    "HallucinationReport",
    "GenerationResult",
    "ComposedResponse",
]
