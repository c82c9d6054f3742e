"""
Post-generation hallucination detection against the traversed fact set.

The check is a coarse lexical overlap heuristic, not semantic entailment.
A response token is only checked when it is one of the domain vocabulary
terms, and it counts as grounded when any traversed node's label or content
contains it as a substring. Paraphrased claims are therefore not recognised:
a grounded statement using a synonym passes unchecked, and an invented claim
built from words outside the vocabulary is never flagged. The vocabulary and
thresholds were tuned for the medical device graph and are configurable.
"""

import logging
import string
from typing import Dict, Any, List, Optional

from ..kg.models import Node
from .models import HallucinationReport

logger = logging.getLogger(__name__)


DEFAULT_VOCABULARY = [
    "ventilator", "monitor", "pump", "sensor", "alarm", "calibration",
    "pressure", "flow", "display", "error", "infusion", "oxygen",
]


class HallucinationDetector:
    """Flags generated text whose domain terms are absent from traversed nodes."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.vocabulary = {term.lower() for term in config.get("vocabulary", DEFAULT_VOCABULARY)}
        self.confidence_threshold = config.get("confidence_threshold", 0.7)
        self.max_violations = config.get("max_violations", 3)

    def detect(self, response_text: str, traversed_nodes: List[Node]) -> HallucinationReport:
        facts = set()
        for node in traversed_nodes:
            facts.add(node.label.lower())
            facts.add(node.content.lower())

        violations: List[str] = []
        grounded = 0
        checks = 0

        for raw_token in response_text.lower().split():
            token = raw_token.strip(string.punctuation)
            if token not in self.vocabulary:
                continue

            checks += 1
            if any(token in fact for fact in facts):
                grounded += 1
            else:
                violations.append(f'Term "{token}" not found in traversed knowledge graph nodes')

        # No vocabulary terms means no claims to verify
        confidence = grounded / checks if checks > 0 else 1.0
        is_hallucinated = confidence < self.confidence_threshold or len(violations) > self.max_violations

        if is_hallucinated:
            logger.warning(
                f"Possible hallucination: confidence {confidence:.2f}, {len(violations)} ungrounded terms"
            )

        return HallucinationReport(
            is_hallucinated=is_hallucinated,
            confidence=confidence,
            violations=violations,
        )
