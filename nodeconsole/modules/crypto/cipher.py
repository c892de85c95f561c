"""
Credential encryption at rest.

Node credentials (SSH passwords, private keys, kubeconfigs) are stored as
AES-256-GCM ciphertext. The key is a 64 character hex string supplied once
at process start; a missing or malformed key stops the process.
"""

import base64
import logging
import os
import string
from typing import Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel, ConfigDict

from ...errors import ConfigurationError, CredentialDecryptionError

logger = logging.getLogger("nodeconsole.cipher")

KEY_ENV_VAR = "NODE_CONSOLE_ENCRYPTION_KEY"
KEY_HINT = "Generate a valid key with: openssl rand -hex 32"


class EncryptedCredential(BaseModel):
    """Ciphertext and IV of one encrypted credential."""

    model_config = ConfigDict(frozen=True)

    ciphertext: bytes
    iv: bytes

    def __repr__(self) -> str:
        return f"EncryptedCredential(ciphertext=<{len(self.ciphertext)} bytes>, iv=<{len(self.iv)} bytes>)"

    __str__ = __repr__

    def to_storage(self) -> Dict[str, str]:
        """Base64 form for an external persistence layer."""
        return {
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
            "iv": base64.b64encode(self.iv).decode("ascii"),
        }

    @classmethod
    def from_storage(cls, data: Dict[str, str]) -> "EncryptedCredential":
        """Rebuild from the base64 form produced by ``to_storage``."""
        return cls(
            ciphertext=base64.b64decode(data["ciphertext"]),
            iv=base64.b64decode(data["iv"]),
        )


class CredentialCipher:
    """AES-256-GCM cipher for node credentials."""

    ALGORITHM = "AES-256-GCM"
    KEY_HEX_LENGTH = 64
    IV_LENGTH = 12

    def __init__(self, encryption_key: Optional[str] = None):
        """
        Create an uninitialized cipher.

        Args:
            encryption_key: 64 hex characters; read from the environment when omitted
        """
        self._raw_key = encryption_key
        self._aead: Optional[AESGCM] = None

    @classmethod
    def from_config(cls, config) -> "CredentialCipher":
        """Build and initialize a cipher from a NodeConsoleConfig."""
        cipher = cls(config.encryption_key)
        cipher.init()
        return cipher

    def init(self) -> None:
        """
        Validate the key and prepare the cipher.

        Raises:
            ConfigurationError: If the key is missing, of the wrong length or not hex
        """
        key = self._raw_key if self._raw_key is not None else os.getenv(KEY_ENV_VAR)
        if key is None or not key.strip():
            raise ConfigurationError(
                f"{KEY_ENV_VAR} environment variable is required. "
                "Generate a key with: openssl rand -hex 32"
            )

        key = key.strip()
        if len(key) != self.KEY_HEX_LENGTH:
            raise ConfigurationError(
                f"Encryption key must be {self.KEY_HEX_LENGTH} hex characters "
                f"(32 bytes for AES-256). Current length: {len(key)}. {KEY_HINT}"
            )

        if any(c not in string.hexdigits for c in key):
            raise ConfigurationError(
                "Failed to initialize encryption key: key contains non-hex characters. "
                f"Ensure the key is valid hex format ({self.KEY_HEX_LENGTH} characters). {KEY_HINT}"
            )

        self._aead = AESGCM(bytes.fromhex(key))
        self._raw_key = None
        logger.info(f"Credential cipher initialized ({self.ALGORITHM})")

    @property
    def initialized(self) -> bool:
        return self._aead is not None

    def _require_aead(self) -> AESGCM:
        if self._aead is None:
            raise ConfigurationError("Encryption key not configured.")
        return self._aead

    def encrypt(self, plaintext: str) -> EncryptedCredential:
        """
        Encrypt a credential under a fresh random IV.

        Args:
            plaintext: Credential text

        Returns:
            EncryptedCredential holding ciphertext (with GCM tag) and IV
        """
        aead = self._require_aead()
        if plaintext is None:
            raise ValueError("Cannot encrypt a missing credential")
        iv = os.urandom(self.IV_LENGTH)
        ciphertext = aead.encrypt(iv, plaintext.encode("utf-8"), None)
        return EncryptedCredential(ciphertext=ciphertext, iv=iv)

    def decrypt(self, ciphertext: bytes, iv: bytes) -> str:
        """
        Decrypt and authenticate a credential.

        Raises:
            CredentialDecryptionError: If the data was tampered with or the key is wrong
        """
        aead = self._require_aead()
        if len(iv) != self.IV_LENGTH:
            raise CredentialDecryptionError(f"Invalid IV length: {len(iv)}")
        try:
            plaintext = aead.decrypt(iv, ciphertext, None)
        except InvalidTag:
            raise CredentialDecryptionError(
                "Credential authentication failed (tampered data or wrong key)"
            ) from None
        return plaintext.decode("utf-8")

    def decrypt_credential(self, credential: EncryptedCredential) -> str:
        """Decrypt an EncryptedCredential."""
        return self.decrypt(credential.ciphertext, credential.iv)
