"""
Safety policy resolution.

Maps (safety level, node policy) to an execution decision. DESTRUCTIVE is
blocked under every policy; policies only relax the two lower tiers.
"""

import logging
from enum import Enum, IntEnum
from typing import Dict, Optional, Union

logger = logging.getLogger("nodeconsole.policy-guard")


class SafetyLevel(IntEnum):
    """Ordered risk tier of a command."""

    READ_ONLY = 0
    SIDE_EFFECT = 1
    DESTRUCTIVE = 2


class SafetyPolicy(str, Enum):
    """Per-node strictness controlling which tiers require confirmation."""

    STRICT = "strict"
    STANDARD = "standard"
    RELAXED = "relaxed"


class Decision(Enum):
    """What the gateway may do with a classified command."""

    AUTO_EXECUTE = "auto_execute"
    REQUIRE_HITL = "require_hitl"
    BLOCK = "block"


_DECISION_TABLE: Dict[SafetyPolicy, Dict[SafetyLevel, Decision]] = {
    SafetyPolicy.STRICT: {
        SafetyLevel.READ_ONLY: Decision.REQUIRE_HITL,
        SafetyLevel.SIDE_EFFECT: Decision.REQUIRE_HITL,
    },
    SafetyPolicy.STANDARD: {
        SafetyLevel.READ_ONLY: Decision.AUTO_EXECUTE,
        SafetyLevel.SIDE_EFFECT: Decision.REQUIRE_HITL,
    },
    SafetyPolicy.RELAXED: {
        SafetyLevel.READ_ONLY: Decision.AUTO_EXECUTE,
        SafetyLevel.SIDE_EFFECT: Decision.AUTO_EXECUTE,
    },
}


class SafetyPolicyGuard:
    """Pure decision function over the policy table. Performs no I/O."""

    def __init__(self, default_policy: Union[SafetyPolicy, str, None] = SafetyPolicy.STRICT):
        self.default_policy = self._parse(default_policy) or SafetyPolicy.STRICT

    @staticmethod
    def _parse(value: Union[SafetyPolicy, str, None]) -> Optional[SafetyPolicy]:
        if value is None:
            return None
        if isinstance(value, SafetyPolicy):
            return value
        try:
            return SafetyPolicy(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown safety policy '{value}', falling back to strict")
            return SafetyPolicy.STRICT

    def resolve_policy(self, value: Union[SafetyPolicy, str, None]) -> SafetyPolicy:
        """Parse a policy; None resolves to the default, unknown strings to strict."""
        return self._parse(value) or self.default_policy

    def decide(self, level: SafetyLevel, policy: Union[SafetyPolicy, str, None] = None) -> Decision:
        """
        Decide how a command of the given level may proceed.

        Args:
            level: Classified safety level
            policy: Node policy mode (default policy when None)

        Returns:
            AUTO_EXECUTE, REQUIRE_HITL or BLOCK
        """
        if level >= SafetyLevel.DESTRUCTIVE:
            return Decision.BLOCK
        return _DECISION_TABLE[self.resolve_policy(policy)][SafetyLevel(level)]

    def requires_hitl(self, level: SafetyLevel, policy: Union[SafetyPolicy, str, None] = None) -> bool:
        """True unless the command may run without confirmation."""
        return self.decide(level, policy) is not Decision.AUTO_EXECUTE

    def is_allowed(self, level: SafetyLevel, policy: Union[SafetyPolicy, str, None] = None) -> bool:
        """True unless the command is blocked outright."""
        return self.decide(level, policy) is not Decision.BLOCK
