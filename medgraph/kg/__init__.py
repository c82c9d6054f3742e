"""
Typed medical device knowledge graph: nodes, weighted edges and their store.
"""

from .models import Node, Edge, NodeType
from .graph_store import GraphStore, GraphStoreAdapter, edge_id_for
from .seed_data import seed_graph

__all__ = ["Node", "Edge", "NodeType", "GraphStore", "GraphStoreAdapter", "edge_id_for", "seed_graph"]
