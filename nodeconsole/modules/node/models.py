"""
Node data models for NodeConsole.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..crypto import EncryptedCredential
from ..safety.policy import SafetyPolicy


class ConnectorType(str, Enum):
    """Built-in connector types. Other strings are accepted for custom connectors."""

    SSH = "ssh"
    K8S = "k8s"


class AuthType(str, Enum):
    """How the stored credential authenticates against the target."""

    PASSWORD = "password"
    KEY = "key"
    KUBECONFIG = "kubeconfig"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Node(BaseModel):
    """A registered execution target."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    alias: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
    display_name: Optional[str] = None
    connector_type: str
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    auth_type: AuthType
    encrypted_credential: EncryptedCredential = Field(..., repr=False)
    safety_policy: SafetyPolicy = SafetyPolicy.STRICT
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    last_tested_at: Optional[datetime] = None
    last_test_success: Optional[bool] = None

    @field_validator("connector_type")
    @classmethod
    def normalize_connector_type(cls, v: str) -> str:
        """Connector types are matched case-insensitively."""
        return v.strip().lower()

    def to_public_dict(self) -> Dict[str, Any]:
        """Node view safe to hand to an agent. Never includes the credential."""
        return {
            "id": self.id,
            "alias": self.alias,
            "display_name": self.display_name or self.alias,
            "connector_type": self.connector_type,
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "auth_type": self.auth_type.value,
            "safety_policy": self.safety_policy.value,
            "tags": list(self.tags),
            "last_tested_at": self.last_tested_at.isoformat() if self.last_tested_at else None,
            "last_test_success": self.last_test_success,
        }
