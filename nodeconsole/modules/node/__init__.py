"""
Node Module - Black Box Interface

Purpose: Describe, validate and store execution targets
Interface: Node, NodeValidator, NodeRepository, InMemoryNodeRepository
Hidden: Loopback detection, storage locking

Durable storage can be supplied by any object satisfying NodeRepository.
"""

from .models import AuthType, ConnectorType, Node, SafetyPolicy
from .repository import InMemoryNodeRepository, NodeRepository
from .validator import NodeValidator, is_loopback_host

__all__ = [
    "AuthType",
    "ConnectorType",
    "InMemoryNodeRepository",
    "Node",
    "NodeRepository",
    "NodeValidator",
    "SafetyPolicy",
    "is_loopback_host",
]
