"""
Gateway health check.
"""

import logging
from typing import Any, Dict

from ...errors import NodeConsoleError
from ...sanitizer import sanitize_exception

logger = logging.getLogger("nodeconsole.health")

_PROBE = "nodeconsole-health-probe"


def check_health(cipher, factory) -> Dict[str, Any]:
    """
    Report whether the gateway can encrypt credentials and dispatch commands.

    Never raises; a failing component turns the status DOWN.
    """
    details: Dict[str, Any] = {"connectors": factory.types}
    status = "UP"

    try:
        encrypted = cipher.encrypt(_PROBE)
        if cipher.decrypt(encrypted.ciphertext, encrypted.iv) != _PROBE:
            raise NodeConsoleError("Encryption round trip mismatch")
        details["encryption"] = cipher.ALGORITHM
    except Exception as e:
        logger.error(f"Encryption health check failed: {sanitize_exception(e)}")
        details["encryption"] = "FAILED"
        details["error"] = sanitize_exception(e)
        status = "DOWN"

    if not details["connectors"]:
        status = "DOWN"

    return {"status": status, "details": details}
