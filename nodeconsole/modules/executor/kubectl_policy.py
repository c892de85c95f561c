#!/usr/bin/env python3
"""
Kubectl argument policy for the Kubernetes connector.

Read-only verbs are allowed by default. A YAML file can add read verbs,
change restricted resources and extra forbidden patterns, but can never
allow a mutating verb or an authentication override flag.
"""

import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import yaml

logger = logging.getLogger("nodeconsole.kubectl-policy")


class KubectlPolicyConfig:
    """Container for kubectl policy configuration."""

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize from configuration dictionary."""
        commands = config_dict.get("commands", {})
        self.allowed_verbs = {v.lower() for v in commands.get("allowedVerbs", [])}
        self.restricted_resources = {r.lower() for r in commands.get("restrictedResources", [])}
        self.forbidden_patterns = {p.lower() for p in commands.get("forbiddenPatterns", [])}

        limits = config_dict.get("limits", {})
        self.max_arguments = limits.get("maxArguments", 20)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "commands": {
                "allowedVerbs": sorted(self.allowed_verbs),
                "restrictedResources": sorted(self.restricted_resources),
                "forbiddenPatterns": sorted(self.forbidden_patterns),
            },
            "limits": {"maxArguments": self.max_arguments},
        }


class KubectlPolicy:
    """Validates kubectl arguments before any process is started."""

    DEFAULT_ALLOWED_VERBS = {
        "get",
        "describe",
        "logs",
        "top",
        "explain",
        "api-resources",
        "api-versions",
        "events",
        "version",
        "cluster-info",
    }

    # Never allowed, whatever the configuration says
    MUTATING_VERBS = {
        "apply",
        "create",
        "delete",
        "edit",
        "patch",
        "replace",
        "scale",
        "label",
        "annotate",
        "set",
        "expose",
        "autoscale",
        "rollout",
        "drain",
        "cordon",
        "uncordon",
        "taint",
        "exec",
        "cp",
        "run",
        "attach",
        "port-forward",
        "proxy",
        "debug",
        "certificate",
        "config",
        "kustomize",
        "plugin",
    }

    # Flags that would replace the node's own credentials or target
    IMMUTABLE_FORBIDDEN_FLAGS = {
        "--kubeconfig",
        "--token",
        "--server",
        "-s",
        "--insecure-skip-tls-verify",
        "--username",
        "--password",
        "--client-key",
        "--client-certificate",
        "--certificate-authority",
        "--as",
        "--as-group",
        "--as-uid",
        "--raw",
    }

    DEFAULT_RESTRICTED_RESOURCES = {"secrets"}
    DEFAULT_MAX_ARGUMENTS = 20

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize kubectl policy.

        Args:
            config_path: Optional YAML file; defaults apply when absent or invalid
        """
        self.config_path = Path(config_path) if config_path else None
        self.config_hash: Optional[str] = None
        self.current_config = self._defaults()
        if self.config_path is not None:
            self._load_config()

    def _defaults(self) -> KubectlPolicyConfig:
        return KubectlPolicyConfig(
            {
                "commands": {
                    "allowedVerbs": list(self.DEFAULT_ALLOWED_VERBS),
                    "restrictedResources": list(self.DEFAULT_RESTRICTED_RESOURCES),
                    "forbiddenPatterns": [],
                },
                "limits": {"maxArguments": self.DEFAULT_MAX_ARGUMENTS},
            }
        )

    def _load_config(self) -> None:
        """Load configuration from file, keeping defaults on any problem."""
        if not self.config_path.exists():
            logger.warning(f"Kubectl policy file not found: {self.config_path}, using defaults")
            return

        try:
            raw = self.config_path.read_bytes()
            config_data = yaml.safe_load(raw) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load kubectl policy: {type(e).__name__}")
            return

        if not self._validate_config(config_data):
            logger.error("Invalid kubectl policy, using defaults")
            return

        self.current_config = KubectlPolicyConfig(self._merge_with_defaults(config_data))
        self.config_hash = hashlib.sha256(raw).hexdigest()
        logger.info(
            f"Kubectl policy loaded ({len(self.current_config.allowed_verbs)} verbs allowed)"
        )

    def _merge_with_defaults(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Merge user configuration with defaults."""
        merged = self._defaults().to_dict()
        commands = config_data.get("commands", {})

        if "allowedVerbs" in commands:
            merged["commands"]["allowedVerbs"] = sorted(
                set(merged["commands"]["allowedVerbs"]) | {v.lower() for v in commands["allowedVerbs"]}
            )
        if "forbiddenPatterns" in commands:
            merged["commands"]["forbiddenPatterns"] = list(commands["forbiddenPatterns"])
        if "restrictedResources" in commands:
            merged["commands"]["restrictedResources"] = list(commands["restrictedResources"])

        if "limits" in config_data:
            merged["limits"].update(config_data["limits"])

        return merged

    def _validate_config(self, config: Any) -> bool:
        """
        Validate configuration against the immutable baseline.

        Returns:
            True if configuration is valid
        """
        if not isinstance(config, dict):
            logger.error("Kubectl policy must be a mapping")
            return False

        commands = config.get("commands", {}) or {}
        if not isinstance(commands, dict):
            logger.error("'commands' must be a mapping")
            return False

        for key in ("allowedVerbs", "restrictedResources", "forbiddenPatterns"):
            value = commands.get(key, [])
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                logger.error(f"'{key}' must be a list of strings")
                return False

        allowed_verbs = {v.lower() for v in commands.get("allowedVerbs", [])}
        if allowed_verbs & self.MUTATING_VERBS:
            logger.error(f"Mutating verbs found in allowedVerbs: {sorted(allowed_verbs & self.MUTATING_VERBS)}")
            return False

        limits = config.get("limits", {}) or {}
        max_args = limits.get("maxArguments", self.DEFAULT_MAX_ARGUMENTS)
        if not isinstance(max_args, int) or isinstance(max_args, bool) or max_args < 1 or max_args > 100:
            logger.error(f"Invalid maxArguments: {max_args}")
            return False

        return True

    @property
    def allowed_verbs(self) -> Set[str]:
        return set(self.current_config.allowed_verbs)

    def check(self, args: List[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate kubectl arguments.

        Args:
            args: kubectl arguments, verb first

        Returns:
            Tuple of (is_valid, rejection_reason)
        """
        config = self.current_config

        if not args:
            return False, "Empty kubectl command"

        if len(args) > config.max_arguments:
            return False, f"Too many arguments (max: {config.max_arguments})"

        verb = args[0].lower()
        if verb not in config.allowed_verbs or verb in self.MUTATING_VERBS:
            allowed = ", ".join(sorted(config.allowed_verbs))
            return False, f"Kubectl verb '{verb}' is not allowed. Allowed verbs: {allowed}"

        for arg in args[1:]:
            flag = arg.split("=", 1)[0].lower()
            if flag in self.IMMUTABLE_FORBIDDEN_FLAGS:
                return False, f"Flag '{flag}' is not allowed"

        for arg in args:
            arg_lower = arg.lower()
            for pattern in config.forbidden_patterns:
                if pattern in arg_lower:
                    return False, f"Forbidden pattern '{pattern}' detected"

        restricted = _resource_forms(config.restricted_resources)
        for arg in args[1:]:
            if arg.startswith("-"):
                continue
            for name in _resource_names(arg):
                if name in restricted:
                    return False, f"Access to resource '{name}' is restricted"

        return True, None

    def get_config_summary(self) -> Dict[str, Any]:
        """Get current configuration summary."""
        return {
            "allowed_verbs": sorted(self.current_config.allowed_verbs),
            "restricted_resources": sorted(self.current_config.restricted_resources),
            "max_arguments": self.current_config.max_arguments,
            "config_path": str(self.config_path) if self.config_path else None,
            "config_hash": self.config_hash,
        }


def _resource_forms(resources: Iterable[str]) -> Set[str]:
    """Plural and singular spellings of each resource."""
    forms = set()
    for resource in resources:
        forms.add(resource)
        if resource.endswith("s"):
            forms.add(resource[:-1])
    return forms


def _resource_names(arg: str) -> List[str]:
    """Resource type names mentioned in an argument such as ``secret/foo,pods``."""
    names = []
    if arg.startswith("/"):
        # API path: every segment may name a resource
        return [segment for segment in arg.lower().split("/") if segment]
    for part in arg.lower().split(","):
        name = part.split("/", 1)[0].split(".", 1)[0]
        if name:
            names.append(name)
    return names
