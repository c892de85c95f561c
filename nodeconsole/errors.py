"""Exception hierarchy shared by all NodeConsole modules."""

from typing import List, Optional


class NodeConsoleError(Exception):
    """Base class for NodeConsole errors."""


class ConfigurationError(NodeConsoleError, RuntimeError):
    """Unrecoverable startup misconfiguration. The process must not start."""


class CredentialDecryptionError(NodeConsoleError):
    """A stored credential could not be authenticated or decrypted."""


class NodeValidationError(NodeConsoleError, ValueError):
    """One or more node registration rules were violated."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Node validation failed: " + "; ".join(self.errors))


class NodeNotFoundError(NodeConsoleError, LookupError):
    """No node is registered under the given id."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class DuplicateNodeError(NodeConsoleError, ValueError):
    """A node with the same alias is already registered."""

    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(f"Node alias already exists: {alias}")


class UnknownConnectorError(NodeConsoleError, ValueError):
    """No connector is registered for the requested type."""

    def __init__(self, connector_type: Optional[str], available: Optional[List[str]] = None):
        self.connector_type = connector_type
        message = f"Unknown connector type: {connector_type}"
        if available:
            message += f" (available: {', '.join(available)})"
        super().__init__(message)
