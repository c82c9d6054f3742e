"""
Lexical relevance scoring of graph nodes against a query.
"""

import logging
from typing import Dict, List

from ..kg.models import Node, NodeType

logger = logging.getLogger(__name__)


class RelevanceScorer:
    """
    Heuristic keyword scorer used to pick traversal seeds.

    Scores are additive and clamped to 1.0:
    - each query term (longer than 2 characters) found in the node's
      label or content adds TERM_WEIGHT
    - the node label appearing verbatim in the query adds LABEL_WEIGHT
    - device nodes get DEVICE_ERROR_WEIGHT when the query mentions "error"
    - symptom nodes always get SYMPTOM_WEIGHT

    The type bonuses only apply once the query overlaps at least one node
    lexically; a query sharing no term with the graph scores nothing.
    """

    TERM_WEIGHT = 0.3
    LABEL_WEIGHT = 0.5
    DEVICE_ERROR_WEIGHT = 0.2
    SYMPTOM_WEIGHT = 0.15
    MIN_TERM_LENGTH = 3
    MAX_SCORE = 1.0

    def score(self, query: str, nodes: List[Node]) -> Dict[str, float]:
        """Score every node against the query; zero-score nodes are omitted."""
        query_lower = query.lower()
        query_terms = [term for term in query_lower.split() if len(term) >= self.MIN_TERM_LENGTH]
        mentions_error = "error" in query_lower

        raw_scores = []
        overlap = False
        for node in nodes:
            score = 0.0
            node_text = f"{node.label} {node.content}".lower()

            for term in query_terms:
                if term in node_text:
                    score += self.TERM_WEIGHT

            if node.label and node.label.lower() in query_lower:
                score += self.LABEL_WEIGHT

            overlap = overlap or score > 0

            if node.type == NodeType.DEVICE and mentions_error:
                score += self.DEVICE_ERROR_WEIGHT

            if node.type == NodeType.SYMPTOM:
                score += self.SYMPTOM_WEIGHT

            raw_scores.append((node.id, score))

        if not overlap:
            logger.debug("Query shares no terms with any node")
            return {}

        scores = {node_id: min(score, self.MAX_SCORE) for node_id, score in raw_scores if score > 0}
        logger.debug(f"Scored {len(scores)} of {len(nodes)} nodes as relevant")
        return scores

    @staticmethod
    def rank(scores: Dict[str, float]) -> List[str]:
        """Node ids by descending score; ties keep node enumeration order."""
        return [node_id for node_id, _ in sorted(scores.items(), key=lambda item: item[1], reverse=True)]
