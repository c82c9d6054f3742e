"""
Grounded response composition over traversed nodes.
"""

import asyncio
import logging
from typing import Dict, Any, List, Optional

from ..kg.models import Node, Edge, NodeType
from ..models.llm_manager import LLMManager, LLMProviderError
from .models import ComposedResponse, GenerationResult

logger = logging.getLogger(__name__)


NO_RESULTS_RESPONSE = (
    "No relevant information found in the knowledge graph for this query. "
    "Try naming the device, its fault code or the observed symptom."
)

ADVANTAGES_FOOTER = (
    "This response was generated using graph-based retrieval (not vector embeddings) "
    "ensuring full explainability and auditability of the reasoning process."
)

SYSTEM_PROMPT_TEMPLATE = """You are an expert medical device support assistant with access to a verified knowledge graph.

CRITICAL CONSTRAINTS:
1. You MUST ONLY use information from the provided knowledge base below
2. DO NOT add any information not present in the knowledge base
3. DO NOT make assumptions or inferences beyond what's explicitly stated
4. If the knowledge base doesn't contain enough information, say so clearly
5. Always cite which knowledge graph nodes you're referencing

KNOWLEDGE BASE (from graph traversal):
{knowledge_base}

GRAPH CONTEXT:
{graph_context}

Your task is to answer the user's medical device support query using ONLY the information above. Structure your response as follows:

**Device Identified:** [Name from knowledge base]
[Device description from knowledge base]

**Issue Analysis:**
[Analysis based on symptoms found in knowledge base]

**Recommended Solution:**
[Solution steps from knowledge base]

**Compliance & Procedures:**
[Regulations and procedures from knowledge base]

**Retrieval Advantages:**
- **Explainability**: Every step in the knowledge graph traversal is logged and auditable
- **Structured Reasoning**: Followed {hop_count} relationship-based hops (vs. similarity-only vector search)
- **Domain Compliance**: Graph enforces regulatory relationships and procedural requirements
- **Provenance**: All information comes from verified nodes in the knowledge graph
- **Latency**: {latency_ms}ms graph traversal with guaranteed provenance"""


def build_knowledge_base(nodes: List[Node]) -> str:
    return "\n\n".join(f"[{node.type.value.upper()}: {node.label}]\n{node.content}" for node in nodes)


def build_graph_context(nodes: List[Node], edges: List[Edge]) -> str:
    """Render the relationships among traversed nodes, one per line."""
    labels = {node.id: node.label for node in nodes}
    lines = [
        f"{labels[edge.source_id]} --[{edge.relationship_type}]--> {labels[edge.target_id]} ({edge.weight:.2f})"
        for edge in edges
        if edge.source_id in labels and edge.target_id in labels
    ]
    return "\n".join(lines) if lines else "No relationships among traversed nodes."


class ResponseComposer:
    """Turns traversed nodes into a grounded answer."""

    def __init__(self, llm_manager: Optional[LLMManager], config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.llm_manager = llm_manager
        self.generation_timeout = config.get("generation_timeout", 30.0)
        self.temperature = config.get("temperature", 0.3)
        self.max_tokens = config.get("max_tokens", 1000)

    async def compose(
        self,
        query: str,
        visited_nodes: List[Node],
        graph_context: str,
        hop_count: Optional[int] = None,
        latency_ms: int = 0,
    ) -> ComposedResponse:
        """
        Compose an answer grounded in the visited nodes.

        Falls back to the deterministic template when generation fails,
        times out or is cancelled. Never raises for provider problems.
        """
        if not visited_nodes:
            return ComposedResponse(text=NO_RESULTS_RESPONSE, source="no_results")

        hop_count = len(visited_nodes) if hop_count is None else hop_count
        system_prompt = SYSTEM_PROMPT_TEMPLATE.format(
            knowledge_base=build_knowledge_base(visited_nodes),
            graph_context=graph_context,
            hop_count=hop_count,
            latency_ms=latency_ms,
        )

        generation = await self._generate(query, system_prompt)
        if generation.ok:
            return ComposedResponse(text=generation.text, source="llm")

        logger.warning(f"Generation unavailable, using template response: {generation.failure_reason}")
        return ComposedResponse(
            text=self.render_template(visited_nodes, hop_count, latency_ms),
            source="template",
            fallback_reason=generation.failure_reason,
        )

    async def _generate(self, query: str, system_prompt: str) -> GenerationResult:
        if self.llm_manager is None:
            return GenerationResult.failed("no LLM manager configured")

        try:
            text = await asyncio.wait_for(
                self.llm_manager.generate(
                    query,
                    system_prompt=system_prompt,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.generation_timeout,
            )
        except asyncio.TimeoutError:
            return GenerationResult.failed(f"generation timed out after {self.generation_timeout}s")
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return GenerationResult.failed("generation cancelled")
        except LLMProviderError as e:
            return GenerationResult.failed(str(e))
        except Exception as e:
            logger.error(f"Unexpected generation failure: {e}")
            return GenerationResult.failed(f"unexpected provider error: {e}")

        if not text or not text.strip():
            return GenerationResult.failed("empty response from provider")
        return GenerationResult.success(text)

    @staticmethod
    def render_template(visited_nodes: List[Node], hop_count: int, latency_ms: int) -> str:
        """Deterministic answer that only restates visited node content."""
        groups: Dict[NodeType, List[Node]] = {node_type: [] for node_type in NodeType}
        for node in visited_nodes:
            groups[node.type].append(node)

        sections = []
        if groups[NodeType.DEVICE]:
            lines = ["**Device Identified:**"]
            lines.extend(f"- {node.label}: {node.content}" for node in groups[NodeType.DEVICE])
            sections.append("\n".join(lines))

        if groups[NodeType.SYMPTOM]:
            lines = ["**Issue Analysis:**"]
            lines.extend(f"- {node.label}: {node.content}" for node in groups[NodeType.SYMPTOM])
            sections.append("\n".join(lines))

        if groups[NodeType.SOLUTION]:
            lines = ["**Recommended Solution:**"]
            lines.extend(f"- {node.label}: {node.content}" for node in groups[NodeType.SOLUTION])
            sections.append("\n".join(lines))

        compliance = groups[NodeType.REGULATION] + groups[NodeType.PROCEDURE]
        if compliance:
            lines = ["**Compliance & Procedures:**"]
            lines.extend(f"- {node.label}: {node.content}" for node in compliance)
            sections.append("\n".join(lines))

        sections.append(
            f"**Knowledge Graph Path:** Traversed {hop_count} nodes across {latency_ms}ms "
            f"to retrieve this information."
        )
        sections.append(ADVANTAGES_FOOTER)
        return "\n\n".join(sections)
