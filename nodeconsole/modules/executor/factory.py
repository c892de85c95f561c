"""
Connector registry.

Built once at startup from every available connector. Two connectors
claiming the same type is a fatal configuration error.
"""

import logging
from typing import Dict, Iterable, List

from ...errors import ConfigurationError, UnknownConnectorError
from .base import Connector
from .k8s import K8sConnector
from .kubectl_policy import KubectlPolicy
from .ssh import SshConnector

logger = logging.getLogger("nodeconsole.connector-factory")


class ConnectorFactory:
    """Resolves a node's connector type to its Connector."""

    def __init__(self, connectors: Iterable[Connector]):
        self._connectors: List[Connector] = list(connectors)
        self._registry: Dict[str, Connector] = {}

    def init(self) -> "ConnectorFactory":
        """
        Build the type map.

        Raises:
            ConfigurationError: If two connectors declare the same type
        """
        registry: Dict[str, Connector] = {}
        for connector in self._connectors:
            key = (connector.connector_type or "").lower()
            if not key:
                raise ConfigurationError(
                    f"Connector {type(connector).__name__} does not declare a connector type."
                )
            existing = registry.get(key)
            if existing is not None:
                raise ConfigurationError(
                    f"Duplicate connector type '{key}': {type(existing).__name__} and "
                    f"{type(connector).__name__}. Each connector must have a unique type identifier."
                )
            registry[key] = connector

        self._registry = registry
        logger.info(f"Registered connectors: {', '.join(sorted(registry)) or 'none'}")
        return self

    def get(self, connector_type: str) -> Connector:
        """
        Look up a connector.

        Raises:
            UnknownConnectorError: If no connector is registered for the type
        """
        connector = self._registry.get((connector_type or "").lower())
        if connector is None:
            raise UnknownConnectorError(connector_type, self.types)
        return connector

    def supports(self, connector_type: str) -> bool:
        return (connector_type or "").lower() in self._registry

    @property
    def types(self) -> List[str]:
        return sorted(self._registry)

    @classmethod
    def build(cls, config) -> "ConnectorFactory":
        """Register the built-in SSH and Kubernetes connectors."""
        connectors = [
            SshConnector(
                connect_timeout_seconds=config.ssh_timeout_seconds,
                strict_host_keys=config.ssh_strict_host_keys,
                known_hosts_path=config.ssh_known_hosts,
            ),
            K8sConnector(
                kubectl_path=config.kubectl_path,
                policy=KubectlPolicy(config.kubectl_policy_file),
                connect_timeout_seconds=config.ssh_timeout_seconds,
            ),
        ]
        return cls(connectors).init()
