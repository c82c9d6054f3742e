"""
Weighted, depth-limited traversal that records an explainable decision path.
"""

import logging
import time
from typing import Dict, Any, List, Optional, Tuple

import networkx as nx

from ..kg.graph_store import GraphStoreAdapter
from ..kg.models import Node, NodeType
from .models import TraversalResult, TraversalStep, TraversalPathEntry

logger = logging.getLogger(__name__)


STEP_REASONS = {
    NodeType.SOLUTION: "Solution node - provides troubleshooting steps",
    NodeType.SYMPTOM: "Symptom node - describes issue characteristics",
    NodeType.REGULATION: "Regulatory node - compliance requirements",
    NodeType.PROCEDURE: "Procedure node - required maintenance protocols",
}
START_REASON = "Starting node - matched query keywords"
DEFAULT_REASON = "Related node in knowledge graph"


def step_reason(node: Node, depth: int) -> str:
    """Plain-language rationale for visiting a node."""
    if depth == 0:
        return START_REASON
    return STEP_REASONS.get(node.type, DEFAULT_REASON)


class TraversalEngine:
    """
    Depth-first expansion from the top relevance seeds.

    Each node expands into at most ``max_branching`` outgoing edges, heaviest
    first, and the score of a frame is the product of edge weights from its
    seed. A node is visited once per traversal; a branch stops when it
    exceeds ``max_depth`` or reaches an already visited node.
    """

    def __init__(self, graph_store: GraphStoreAdapter, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.graph_store = graph_store
        self.max_depth = config.get("max_depth", 3)
        self.max_seeds = config.get("max_seeds", 3)
        self.max_branching = config.get("max_branching", 2)

    def build_index(self) -> nx.MultiDiGraph:
        """Snapshot the store's edges into an adjacency index."""
        graph = nx.MultiDiGraph()
        for order, edge in enumerate(self.graph_store.get_all_edges()):
            graph.add_edge(
                edge.source_id,
                edge.target_id,
                key=edge.id,
                weight=edge.weight,
                relationship_type=edge.relationship_type,
                order=order,
            )
        return graph

    def _ranked_targets(self, graph: nx.MultiDiGraph, node_id: str) -> List[Tuple[str, float]]:
        if node_id not in graph:
            return []
        out_edges = sorted(
            graph.out_edges(node_id, data=True),
            key=lambda edge: (-edge[2]["weight"], edge[2]["order"]),
        )
        return [(target, data["weight"]) for _, target, data in out_edges[:self.max_branching]]

    def traverse(self, seed_ids: List[str], max_depth: Optional[int] = None) -> TraversalResult:
        """
        Traverse from seed ids, which must already be ranked by relevance.

        Returns visited node ids in first-visit order along with the path
        entries and the annotated steps.
        """
        max_depth = self.max_depth if max_depth is None else max_depth
        graph = self.build_index()
        result = TraversalResult()
        visited = set()
        start = time.monotonic()

        for seed_id in seed_ids[:self.max_seeds]:
            # (node_id, depth, score) frames, children pushed in reverse so the
            # heaviest edge is expanded first
            stack: List[Tuple[str, int, float]] = [(seed_id, 0, 1.0)]

            while stack:
                node_id, depth, score = stack.pop()
                if depth > max_depth or node_id in visited:
                    continue

                node = self.graph_store.get_node(node_id)
                if node is None:
                    logger.debug(f"Skipping missing node {node_id}")
                    continue

                visited.add(node_id)
                elapsed_ms = int((time.monotonic() - start) * 1000)

                result.visited_nodes.append(node_id)
                result.traversal_path.append(
                    TraversalPathEntry(node_id=node_id, score=score, timestamp_ms=elapsed_ms, depth=depth)
                )
                result.steps.append(
                    TraversalStep(
                        node_id=node.id,
                        node_label=node.label,
                        node_type=node.type.value,
                        score=score,
                        timestamp_ms=elapsed_ms,
                        reason=step_reason(node, depth),
                        depth=depth,
                    )
                )

                for target_id, weight in reversed(self._ranked_targets(graph, node_id)):
                    stack.append((target_id, depth + 1, score * weight))

        logger.info(f"Traversal visited {len(result.visited_nodes)} nodes from {min(len(seed_ids), self.max_seeds)} seeds")
        return result
