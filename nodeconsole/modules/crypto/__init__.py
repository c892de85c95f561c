"""
Crypto Module - Black Box Interface

Purpose: Encrypt node credentials at rest
Interface: CredentialCipher.init/encrypt/decrypt, EncryptedCredential
Hidden: AEAD construction, IV generation, key parsing

Can be replaced with a KMS-backed implementation without touching callers.
"""

from .cipher import CredentialCipher, EncryptedCredential

__all__ = ["CredentialCipher", "EncryptedCredential"]
