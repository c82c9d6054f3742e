"""
Data models for the retrieval engine.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Optional


class EmptyQueryError(ValueError):
    """Raised when a query is empty or whitespace-only."""


@dataclass
class TraversalStep:
    """One node visitation with its confidence score and rationale."""
    node_id: str
    node_label: str
    node_type: str
    score: float
    timestamp_ms: int
    reason: str
    depth: int = 0


@dataclass
class TraversalPathEntry:
    """Lightweight audit record of a visitation."""
    node_id: str
    score: float
    timestamp_ms: int
    depth: int = 0


@dataclass
class TraversalResult:
    """Output of a weighted traversal."""
    visited_nodes: List[str] = field(default_factory=list)
    traversal_path: List[TraversalPathEntry] = field(default_factory=list)
    steps: List[TraversalStep] = field(default_factory=list)


@dataclass
class HallucinationReport:
    """Result of cross-checking generated text against traversed facts."""
    is_hallucinated: bool
    confidence: float
    violations: List[str] = field(default_factory=list)


@dataclass
class GenerationResult:
    """Outcome of the external generation call: text or a failure reason."""
    text: Optional[str] = None
    failure_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.text is not None

    @classmethod
    def success(cls, text: str) -> "GenerationResult":
        return cls(text=text)

    @classmethod
    def failed(cls, reason: str) -> "GenerationResult":
        return cls(failure_reason=reason)


@dataclass
class ComposedResponse:
    """Response text and how it was produced."""
    text: str
    source: str  # "llm", "template" or "no_results"
    fallback_reason: Optional[str] = None


@dataclass
class QueryResult:
    """Complete result bundle of a processed query."""
    request_id: str
    query: str
    response: str
    nodes_visited: List[str]
    traversal_path: List[TraversalPathEntry]
    retrieval_latency_ms: int
    evaluation_score: float
    hallucination_detected: bool
    hallucination_confidence: float
    hallucination_violations: List[str]
    steps: List[TraversalStep]
    response_source: str = "template"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
