"""
Composite quality score for a retrieval.
"""

from typing import List

from ..kg.models import Node, NodeType


class EvaluationScorer:
    """Weighted blend of traversal depth, solution presence and compliance coverage."""

    DEPTH_WEIGHT = 0.3
    SOLUTION_WEIGHT = 0.5
    COMPLIANCE_WEIGHT = 0.2
    FULL_DEPTH_NODES = 8

    def score(self, visited_count: int, has_solution: bool, has_compliance_info: bool) -> float:
        depth_score = min(visited_count / self.FULL_DEPTH_NODES, 1.0)
        solution_score = 1.0 if has_solution else 0.6
        compliance_score = 1.0 if has_compliance_info else 0.8

        return (
            self.DEPTH_WEIGHT * depth_score
            + self.SOLUTION_WEIGHT * solution_score
            + self.COMPLIANCE_WEIGHT * compliance_score
        )

    def score_nodes(self, nodes: List[Node]) -> float:
        """Score a set of visited nodes, deriving the solution and compliance flags."""
        types = {node.type for node in nodes}
        return self.score(
            visited_count=len(nodes),
            has_solution=NodeType.SOLUTION in types,
            has_compliance_info=bool(types & {NodeType.REGULATION, NodeType.PROCEDURE}),
        )
