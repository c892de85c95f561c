"""
Gateway Module - Black Box Interface

Purpose: Caller-facing API for remote command execution and node management
Interface: NodeConsoleService.execute()/test_connection()/register()/..., GatewayFactory.build(), check_health()
Hidden: Classification, policy, credential decryption, connector dispatch, auditing

The agent tool layer talks only to NodeConsoleService.
"""

from .factory import GatewayFactory
from .health import check_health
from .service import NodeConsoleService

__all__ = ["GatewayFactory", "NodeConsoleService", "check_health"]
