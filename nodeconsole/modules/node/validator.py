"""
Node registration validation.

All rules are evaluated and reported together so a caller can fix every
problem in one round trip.
"""

import ipaddress
import socket
from typing import List, Optional

from ...errors import NodeValidationError

PORT_MIN = 1
PORT_MAX = 65535

_LOOPBACK_NAMES = {"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"}
_NUMERIC_HOST_CHARS = set("0123456789abcdefx.")


def _parse_address(name: str):
    """Parse an address literal, including inet_aton shorthand such as 127.1."""
    try:
        address = ipaddress.ip_address(name)
    except ValueError:
        if not name or not set(name) <= _NUMERIC_HOST_CHARS:
            return None
        try:
            address = ipaddress.IPv4Address(socket.inet_aton(name))
        except OSError:
            return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        return address.ipv4_mapped
    return address


def is_loopback_host(host: str) -> bool:
    """True if host names the machine running the gateway."""
    name = host.strip().strip("[]").lower().rstrip(".")
    if name in _LOOPBACK_NAMES or name.endswith(".localhost"):
        return True
    address = _parse_address(name)
    if address is None:
        return False
    return address.is_loopback or address.is_unspecified


class NodeValidator:
    """Validates host, port and username before a node is stored or used."""

    def validate(
        self,
        connector_type: Optional[str],
        host: Optional[str],
        port: Optional[int],
        username: Optional[str],
    ) -> None:
        """
        Validate node parameters.

        Args:
            connector_type: "ssh", "k8s" or a custom type
            host: Target host (optional for K8s nodes)
            port: Target port (required for SSH nodes)
            username: Login user (required for SSH nodes)

        Raises:
            NodeValidationError: Listing every violated rule
        """
        errors: List[str] = []
        kind = (connector_type or "").strip().lower()

        if not kind:
            errors.append("connectorType is required")

        is_ssh = kind == "ssh"
        has_host = bool(host and host.strip())

        if is_ssh and not has_host:
            errors.append("host is required for SSH nodes")
        if has_host and is_loopback_host(host):
            if kind == "k8s":
                errors.append("host cannot be localhost for K8s nodes")
            else:
                errors.append(
                    "host cannot be localhost or 127.0.0.1 "
                    "(security risk: commands would run on gateway itself)"
                )

        if port is None:
            if is_ssh:
                errors.append("port is required for SSH nodes")
        elif not isinstance(port, int) or isinstance(port, bool):
            errors.append("port must be an integer")
        elif not PORT_MIN <= port <= PORT_MAX:
            errors.append(f"port must be between {PORT_MIN} and {PORT_MAX}")

        has_username = bool(username and username.strip())
        if is_ssh and not has_username:
            errors.append("username is required for SSH nodes")
        if has_username and username.strip().lower() == "root":
            errors.append("username cannot be 'root' (security best practice: use sudo instead)")

        if errors:
            raise NodeValidationError(errors)

    def validate_node(self, node) -> None:
        """Validate a stored Node."""
        self.validate(node.connector_type, node.host, node.port, node.username)
