"""
Data models for the audit module.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional


@dataclass
class QueryRecord:
    """A persisted, auditable record of one processed query."""
    id: str
    created_at: str
    query: str
    response: str
    nodes_visited: List[str]
    traversal_path: List[Dict[str, Any]]
    retrieval_latency_ms: int
    evaluation_score: float
    hallucination_detected: bool
    hallucination_confidence: float
    hallucination_violations: List[str] = field(default_factory=list)


@dataclass
class FeedbackRecord:
    """User feedback on the answer to a recorded query."""
    id: str
    query_id: str
    created_at: str
    rating: Optional[int] = None  # 1-5 stars
    thumbs: Optional[str] = None  # "up" or "down"
    correctness: Optional[str] = None  # "correct", "partially_correct" or "incorrect"
    comment: Optional[str] = None

    def is_positive(self) -> bool:
        return self.thumbs == "up" or (self.rating is not None and self.rating >= 4)

    def is_negative(self) -> bool:
        return (
            self.thumbs == "down"
            or (self.rating is not None and self.rating < 3)
            or self.correctness in ("incorrect", "partially_correct")
        )
