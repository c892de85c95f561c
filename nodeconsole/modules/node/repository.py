"""
Node persistence interface.

Durable storage belongs to the host application; the gateway only needs
this narrow read/write surface. InMemoryNodeRepository serves tests and
single-process embedding.
"""

import threading
from typing import Dict, List, Optional, Protocol

from .models import Node


class NodeRepository(Protocol):
    """Protocol for node stores."""

    def get(self, node_id: str) -> Optional[Node]:
        """Get a node by id."""
        ...

    def find_by_alias(self, alias: str) -> Optional[Node]:
        """Get a node by alias."""
        ...

    def list_all(self) -> List[Node]:
        """List every node."""
        ...

    def save(self, node: Node) -> Node:
        """Insert or replace a node."""
        ...

    def delete(self, node_id: str) -> bool:
        """Delete a node. Returns False if it did not exist."""
        ...


class InMemoryNodeRepository:
    """Thread-safe dictionary-backed node store."""

    def __init__(self):
        self._nodes: Dict[str, Node] = {}
        self._lock = threading.RLock()

    def get(self, node_id: str) -> Optional[Node]:
        with self._lock:
            return self._nodes.get(node_id)

    def find_by_alias(self, alias: str) -> Optional[Node]:
        with self._lock:
            for node in self._nodes.values():
                if node.alias == alias:
                    return node
        return None

    def list_all(self) -> List[Node]:
        with self._lock:
            return sorted(self._nodes.values(), key=lambda n: n.alias)

    def save(self, node: Node) -> Node:
        with self._lock:
            self._nodes[node.id] = node
        return node

    def delete(self, node_id: str) -> bool:
        with self._lock:
            return self._nodes.pop(node_id, None) is not None
