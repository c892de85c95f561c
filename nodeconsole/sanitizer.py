"""
Log redaction helpers.

Every log call that touches a command, a host or an exception goes through
one of these functions. They are pure and never raise.
"""

import hashlib
import ipaddress
from typing import Optional

INTERNAL_HOST = "[internal]"
UNKNOWN_HOST = "[unknown]"
EMPTY_COMMAND = "[empty]"

# Hosts longer than this are cut to this many characters plus an ellipsis
HOST_MASK_LENGTH = 10

_INTERNAL_NETWORKS = [
    ipaddress.ip_network(cidr)
    for cidr in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
]

_INTERNAL_NAMES = {"localhost", "localhost.localdomain", "ip6-localhost"}


def command_summary(command: Optional[str]) -> str:
    """
    Summarize a command without revealing any of its content.

    Args:
        command: Raw command text

    Returns:
        ``len=N hash=H`` where H is a truncated SHA-256, or ``[empty]``
    """
    if not command:
        return EMPTY_COMMAND
    digest = hashlib.sha256(command.encode("utf-8")).hexdigest()[:8]
    return f"len={len(command)} hash={digest}"


def sanitize_exception(exc: Optional[BaseException]) -> str:
    """Return only the exception's type name; messages may embed secrets."""
    if exc is None:
        return "None"
    return type(exc).__name__


def _is_internal(host: str) -> bool:
    name = host.strip().strip("[]").lower()
    if name in _INTERNAL_NAMES or name.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(name)
    except ValueError:
        return False
    return any(address in network for network in _INTERNAL_NETWORKS)


def sanitize_host(host: Optional[str]) -> str:
    """
    Mask a host for logging.

    Private and loopback addresses collapse to ``[internal]``. Public hosts
    keep a short prefix followed by ``...`` once they exceed the mask length.
    """
    if not host:
        return UNKNOWN_HOST
    if _is_internal(host):
        return INTERNAL_HOST
    if len(host) > HOST_MASK_LENGTH:
        return host[:HOST_MASK_LENGTH] + "..."
    return host
