"""
Graph Store for managing and persisting knowledge graph nodes and edges.
"""

import json
import logging
from typing import List, Dict, Any, Optional, Protocol
from pathlib import Path

from .models import Node, Edge, NodeType

logger = logging.getLogger(__name__)


class GraphStoreAdapter(Protocol):
    """Read contract the retrieval engine consumes."""

    def get_all_nodes(self) -> List[Node]:
        ...

    def get_all_edges(self) -> List[Edge]:
        ...

    def get_node(self, node_id: str) -> Optional[Node]:
        ...

    def get_edges_from_node(self, node_id: str) -> List[Edge]:
        ...


def edge_id_for(source_id: str, target_id: str) -> str:
    """Default edge identifier for a source/target pair."""
    return f"{source_id}-{target_id}"


class GraphStore:
    """Persistent storage for graph nodes and edges."""

    def __init__(self, storage_path: Path):
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

        self.nodes_file = self.storage_path / "nodes.json"
        self.edges_file = self.storage_path / "edges.json"

        self.nodes: List[Node] = []
        self.edges: List[Edge] = []
        self.node_index: Dict[str, int] = {}  # id -> index mapping
        self.edge_index: Dict[str, int] = {}  # id -> index mapping

        self._load_data()

    def _load_data(self):
        """Load nodes and edges from persistent storage."""
        try:
            if self.nodes_file.exists():
                with open(self.nodes_file, 'r') as f:
                    nodes_data = json.load(f)

                self.nodes = [Node.from_dict(node_data) for node_data in nodes_data]
                self._reindex_nodes()
                logger.info(f"Loaded {len(self.nodes)} nodes from storage")
            else:
                logger.info("No existing nodes found")

            if self.edges_file.exists():
                with open(self.edges_file, 'r') as f:
                    edges_data = json.load(f)

                self.edges = [Edge.from_dict(edge_data) for edge_data in edges_data]
                self._reindex_edges()
                logger.info(f"Loaded {len(self.edges)} edges from storage")
            else:
                logger.info("No existing edges found")

        except Exception as e:
            logger.error(f"Failed to load graph data: {e}")
            self.nodes = []
            self.edges = []
            self.node_index = {}
            self.edge_index = {}

    def _reindex_nodes(self):
        self.node_index = {node.id: i for i, node in enumerate(self.nodes)}

    def _reindex_edges(self):
        self.edge_index = {edge.id: i for i, edge in enumerate(self.edges)}

    def _save_nodes(self):
        """Save nodes to persistent storage."""
        try:
            with open(self.nodes_file, 'w') as f:
                json.dump([node.to_dict() for node in self.nodes], f, indent=2)

            logger.debug(f"Saved {len(self.nodes)} nodes to storage")

        except OSError as e:
            logger.error(f"Failed to save nodes: {e}")

    def _save_edges(self):
        """Save edges to persistent storage."""
        try:
            with open(self.edges_file, 'w') as f:
                json.dump([edge.to_dict() for edge in self.edges], f, indent=2)

            logger.debug(f"Saved {len(self.edges)} edges to storage")

        except OSError as e:
            logger.error(f"Failed to save edges: {e}")

    def add_node(self, node: Node, save: bool = True):
        """Add a new node to the store."""
        if node.id in self.node_index:
            logger.warning(f"Node with id {node.id} already exists, updating")
            self.nodes[self.node_index[node.id]] = node
        else:
            self.nodes.append(node)
            self.node_index[node.id] = len(self.nodes) - 1

        if save:
            self._save_nodes()

    def add_edge(self, edge: Edge, save: bool = True):
        """Add a new edge to the store."""
        if edge.id in self.edge_index:
            logger.warning(f"Edge with id {edge.id} already exists, updating")
            self.edges[self.edge_index[edge.id]] = edge
        else:
            self.edges.append(edge)
            self.edge_index[edge.id] = len(self.edges) - 1

        if save:
            self._save_edges()

    def save(self):
        """Flush nodes and edges to disk."""
        self._save_nodes()
        self._save_edges()

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID."""
        if node_id in self.node_index:
            return self.nodes[self.node_index[node_id]]
        return None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID."""
        if edge_id in self.edge_index:
            return self.edges[self.edge_index[edge_id]]
        return None

    def get_all_nodes(self) -> List[Node]:
        """Get all nodes in the store."""
        return self.nodes.copy()

    def get_all_edges(self) -> List[Edge]:
        """Get all edges in the store."""
        return self.edges.copy()

    def get_nodes_by_type(self, node_type: NodeType) -> List[Node]:
        """Get all nodes of a specific type."""
        node_type = NodeType(node_type)
        return [node for node in self.nodes if node.type == node_type]

    def get_edges_from_node(self, node_id: str) -> List[Edge]:
        """Get all outgoing edges of a node."""
        return [edge for edge in self.edges if edge.source_id == node_id]

    def delete_node(self, node_id: str) -> bool:
        """Delete a node by ID and all edges touching it."""
        if node_id not in self.node_index:
            return False

        self.edges = [
            edge for edge in self.edges
            if edge.source_id != node_id and edge.target_id != node_id
        ]
        self._reindex_edges()

        del self.nodes[self.node_index[node_id]]
        self._reindex_nodes()

        self.save()
        return True

    def delete_edge(self, edge_id: str) -> bool:
        """Delete an edge by ID."""
        if edge_id in self.edge_index:
            del self.edges[self.edge_index[edge_id]]
            self._reindex_edges()
            self._save_edges()
            return True
        return False

    def update_node(self, node_id: str, **kwargs) -> Optional[Node]:
        """Update a node by ID with new values."""
        node = self.get_node(node_id)
        if node is None:
            return None

        for key, value in kwargs.items():
            if key == "id":
                continue
            if key == "type":
                value = NodeType(value)
            if hasattr(node, key):
                setattr(node, key, value)

        self._save_nodes()
        return node

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the graph store."""
        type_counts: Dict[str, int] = {}
        for node in self.nodes:
            type_counts[node.type.value] = type_counts.get(node.type.value, 0) + 1
        relationship_types = sorted(set(edge.relationship_type for edge in self.edges))

        return {
            "total_nodes": len(self.nodes),
            "total_edges": len(self.edges),
            "node_types": type_counts,
            "relationship_types": relationship_types,
        }

    def clear(self):
        """Clear all nodes and edges from the store."""
        self.nodes = []
        self.edges = []
        self.node_index = {}
        self.edge_index = {}
        self.save()
        logger.info("Cleared all nodes and edges from store")

    def export_graph(self, filepath: str):
        """Export graph data to a JSON file."""
        graph_data = {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
        with open(filepath, 'w') as f:
            json.dump(graph_data, f, indent=2)

        logger.info(f"Exported graph with {len(self.nodes)} nodes and {len(self.edges)} edges to {filepath}")

    def import_graph(self, filepath: str):
        """Import graph data from a JSON file."""
        with open(filepath, 'r') as f:
            graph_data = json.load(f)

        for node_data in graph_data.get("nodes", []):
            self.add_node(Node.from_dict(node_data), save=False)
        for edge_data in graph_data.get("edges", []):
            self.add_edge(Edge.from_dict(edge_data), save=False)
        self.save()

        logger.info(f"Imported graph from {filepath}")
