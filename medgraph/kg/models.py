"""
Data models for the Knowledge Graph module.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any


class NodeType(Enum):
    """Types of facts stored in the medical device knowledge graph."""
    DEVICE = "device"
    SYMPTOM = "symptom"
    SOLUTION = "solution"
    REGULATION = "regulation"
    PROCEDURE = "procedure"


@dataclass
class Node:
    """A typed fact unit in the knowledge graph."""
    id: str
    type: NodeType
    label: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Accept raw strings coming from JSON or the CLI
        if not isinstance(self.type, NodeType):
            self.type = NodeType(self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "content": self.content,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            id=data["id"],
            type=data["type"],
            label=data["label"],
            content=data["content"],
            metadata=data.get("metadata") or {},
        )


@dataclass
class Edge:
    """A directed, weighted relationship between two nodes."""
    id: str
    source_id: str
    target_id: str
    relationship_type: str
    weight: float = 1.0

    def __post_init__(self):
        self.weight = float(self.weight)
        if not 0.0 <= self.weight <= 1.0:
            raise ValueError(f"Edge {self.id} weight must be in [0, 1], got {self.weight}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "relationship_type": self.relationship_type,
            "weight": self.weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Edge":
        return cls(
            id=data["id"],
            source_id=data["source_id"],
            target_id=data["target_id"],
            relationship_type=data["relationship_type"],
            weight=data.get("weight", 1.0),
        )
