"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, field
from typing import List, Optional, Protocol


@dataclass
class NodeConsoleConfig:
    """Gateway configuration."""
    encryption_key: Optional[str]
    default_safety_policy: str = "strict"
    ssh_timeout_seconds: int = 30
    exec_timeout_seconds: int = 60
    max_output_bytes: int = 32000
    max_exec_timeout_seconds: int = 600
    max_output_limit: int = 1048576
    ssh_strict_host_keys: bool = False
    ssh_known_hosts: Optional[str] = None
    kubectl_path: str = "kubectl"
    kubectl_policy_file: Optional[str] = None
    audit_db_path: str = ":memory:"
    dangerous_keywords: List[str] = field(default_factory=list)

    def __repr__(self) -> str:
        # The encryption key must never end up in a log line or traceback
        key_state = "set" if self.encryption_key else "unset"
        return (
            f"NodeConsoleConfig(encryption_key=<{key_state}>, "
            f"default_safety_policy={self.default_safety_policy!r}, "
            f"ssh_timeout_seconds={self.ssh_timeout_seconds}, "
            f"exec_timeout_seconds={self.exec_timeout_seconds}, "
            f"max_output_bytes={self.max_output_bytes})"
        )


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_node_console_config(self) -> NodeConsoleConfig:
        """Get gateway configuration."""
        ...


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"{name} must be an integer (got {raw!r}). "
            f"Unset it to use the default of {default}."
        )
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer (got {value}).")
    return value


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_node_console_config(self) -> NodeConsoleConfig:
        """Get gateway configuration from environment variables."""
        keywords = os.getenv("NODE_CONSOLE_DANGEROUS_KEYWORDS", "")

        return NodeConsoleConfig(
            encryption_key=os.getenv("NODE_CONSOLE_ENCRYPTION_KEY"),
            default_safety_policy=os.getenv("NODE_CONSOLE_DEFAULT_SAFETY_POLICY", "strict").lower(),
            ssh_timeout_seconds=_int_env("NODE_CONSOLE_SSH_TIMEOUT_SECONDS", 30),
            exec_timeout_seconds=_int_env("NODE_CONSOLE_EXEC_TIMEOUT_SECONDS", 60),
            max_output_bytes=_int_env("NODE_CONSOLE_MAX_OUTPUT_BYTES", 32000),
            max_exec_timeout_seconds=_int_env("NODE_CONSOLE_MAX_EXEC_TIMEOUT_SECONDS", 600),
            max_output_limit=_int_env("NODE_CONSOLE_MAX_OUTPUT_LIMIT", 1048576),
            ssh_strict_host_keys=os.getenv("NODE_CONSOLE_SSH_STRICT_HOST_KEYS", "false").lower() == "true",
            ssh_known_hosts=os.getenv("NODE_CONSOLE_SSH_KNOWN_HOSTS"),
            kubectl_path=os.getenv("NODE_CONSOLE_KUBECTL_PATH", "kubectl"),
            kubectl_policy_file=os.getenv("NODE_CONSOLE_KUBECTL_POLICY_FILE"),
            audit_db_path=os.getenv("NODE_CONSOLE_AUDIT_DB", ":memory:"),
            dangerous_keywords=[k.strip() for k in keywords.split(",") if k.strip()],
        )
