"""
Graph-grounded retrieval engine: scoring, traversal, composition, checking.
"""

import logging
import time
import uuid
from typing import Dict, Any, List, Optional, Tuple

from ..kg.graph_store import GraphStoreAdapter
from ..kg.models import Node, Edge
from ..models.llm_manager import LLMManager
from .composer import ResponseComposer, build_graph_context
from .evaluation import EvaluationScorer
from .hallucination import HallucinationDetector
from .models import EmptyQueryError, QueryResult, TraversalResult, TraversalStep
from .relevance import RelevanceScorer
from .traversal import TraversalEngine
from .traversal_cache import TraversalCache

logger = logging.getLogger(__name__)


class GraphRetrievalEngine:
    """Answers support questions from facts retrieved by graph traversal."""

    def __init__(
        self,
        config: Dict[str, Any],
        graph_store: GraphStoreAdapter,
        llm_manager: Optional[LLMManager] = None,
    ):
        self.config = config
        self.graph_store = graph_store
        self.llm_manager = llm_manager

        engine_config = config.get("engine", {})
        self.scorer = RelevanceScorer()
        self.traversal = TraversalEngine(graph_store, engine_config)
        self.composer = ResponseComposer(llm_manager, engine_config)
        self.detector = HallucinationDetector(config.get("hallucination", {}))
        self.evaluator = EvaluationScorer()
        self.traversal_cache = TraversalCache(engine_config.get("traversal_cache_size", 100))

    async def process_query(self, query: str, request_id: Optional[str] = None, debug: bool = False) -> QueryResult:
        """
        Process a support query end to end.

        Args:
            query: The user's natural language question
            request_id: Optional identifier; generated when omitted
            debug: Whether to log intermediate results

        Returns:
            QueryResult with the response, traversal audit trail and scores

        Raises:
            EmptyQueryError: If the query is empty or whitespace-only
        """
        if query is None or not query.strip():
            raise EmptyQueryError("Query cannot be empty")

        request_id = request_id or str(uuid.uuid4())
        start = time.monotonic()
        logger.info(f"Processing query {request_id}: {query}")

        # Step 1: Score nodes and traverse from the best seeds
        traversal = self._retrieve(query, debug)
        try:
            visited = self._resolve_nodes(traversal.visited_nodes)
        except Exception as e:
            logger.error(f"Node resolution failed, continuing with no results: {e}")
            traversal, visited = TraversalResult(), []
        retrieval_latency_ms = int((time.monotonic() - start) * 1000)

        # Step 2: Compose a grounded response
        try:
            edges = self._edges_among(visited)
        except Exception as e:
            logger.warning(f"Could not collect relationships among traversed nodes: {e}")
            edges = []
        graph_context = build_graph_context(visited, edges)
        composed = await self.composer.compose(
            query,
            visited,
            graph_context,
            hop_count=len(traversal.traversal_path),
            latency_ms=retrieval_latency_ms,
        )

        # Step 3: Check the response against the traversed facts and score it
        report = self.detector.detect(composed.text, visited)
        evaluation_score = self.evaluator.score_nodes(visited)

        self.traversal_cache.put(request_id, traversal.steps)

        if debug:
            logger.info(f"Response source: {composed.source} ({composed.fallback_reason or 'ok'})")
            logger.info(f"Hallucination check: {report}")
            logger.info(f"Evaluation score: {evaluation_score:.3f}")

        return QueryResult(
            request_id=request_id,
            query=query,
            response=composed.text,
            nodes_visited=traversal.visited_nodes,
            traversal_path=traversal.traversal_path,
            retrieval_latency_ms=retrieval_latency_ms,
            evaluation_score=evaluation_score,
            hallucination_detected=report.is_hallucinated,
            hallucination_confidence=report.confidence,
            hallucination_violations=report.violations,
            steps=traversal.steps,
            response_source=composed.source,
        )

    def _retrieve(self, query: str, debug: bool) -> TraversalResult:
        try:
            scores = self.scorer.score(query, self.graph_store.get_all_nodes())
            seeds = self.scorer.rank(scores)
            if debug:
                logger.info(f"Relevance scores: {scores}")
            return self.traversal.traverse(seeds)
        except Exception as e:
            logger.error(f"Graph retrieval failed, continuing with no results: {e}")
            return TraversalResult()

    def _resolve_nodes(self, node_ids: List[str]) -> List[Node]:
        nodes = []
        for node_id in node_ids:
            node = self.graph_store.get_node(node_id)
            if node is not None:
                nodes.append(node)
        return nodes

    def _edges_among(self, nodes: List[Node]) -> List[Edge]:
        node_ids = {node.id for node in nodes}
        return [
            edge
            for node in nodes
            for edge in self.graph_store.get_edges_from_node(node.id)
            if edge.target_id in node_ids
        ]

    def latest_traversal(self) -> Optional[Tuple[str, List[TraversalStep]]]:
        """Most recent (request_id, steps) pair, or None."""
        return self.traversal_cache.latest()
