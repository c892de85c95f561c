"""
Gateway Factory following Black Box Design principles.

This factory:
- Constructs the gateway stack based on configuration
- Wires dependencies together
- Returns only the service facade
"""

import logging
from typing import Optional

from ...config.provider import ConfigProvider
from ..audit import AuditStore
from ..crypto import CredentialCipher
from ..executor import ConnectorFactory
from ..node import NodeRepository, NodeValidator
from ..safety import RemoteCommandClassifier, SafetyPolicyGuard
from .service import NodeConsoleService

logger = logging.getLogger("nodeconsole.gateway-factory")


class GatewayFactory:
    """
    Composition root for the gateway.

    Fails fast: a missing or malformed encryption key, or two connectors
    sharing a type, stops construction with ConfigurationError.
    """

    @staticmethod
    def build(
        config_provider: ConfigProvider,
        repository: Optional[NodeRepository] = None,
    ) -> NodeConsoleService:
        """
        Build the complete gateway stack.

        Args:
            config_provider: Configuration provider
            repository: Node store; in-memory when omitted

        Returns:
            NodeConsoleService facade
        """
        config = config_provider.get_node_console_config()

        cipher = CredentialCipher.from_config(config)
        factory = ConnectorFactory.build(config)

        guard = SafetyPolicyGuard(config.default_safety_policy)
        classifier = RemoteCommandClassifier(guard, config.dangerous_keywords)

        logger.info(
            f"Building gateway (default policy {guard.default_policy.value}, "
            f"connectors {', '.join(factory.types)})"
        )

        return NodeConsoleService(
            cipher=cipher,
            factory=factory,
            config=config,
            repository=repository,
            classifier=classifier,
            validator=NodeValidator(),
            audit=AuditStore(config.audit_db_path),
        )
