"""
Token vault.

Encrypts OAuth tokens for storage with AES-256-GCM.

Stored format: base64(iv[12] || tag[16] || ciphertext). The key is a
64-character hex string (32 bytes) from INTEGRATION_ENCRYPTION_KEY.
Generate one with:

    fitsync generate-key
"""

import base64
import binascii
import os
import re
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from fitsync.config import settings


IV_LENGTH = 12
AUTH_TAG_LENGTH = 16
KEY_LENGTH = 32

_HEX_KEY = re.compile(r"^[a-fA-F0-9]{64}$")


class EncryptionNotConfiguredError(Exception):
    """Encryption key missing or malformed."""
    pass


class TokenDecryptionError(Exception):
    """Ciphertext is corrupt or was encrypted with another key."""
    pass


def _parse_key(key_hex: Optional[str]) -> bytes:
    if not key_hex:
        raise EncryptionNotConfiguredError(
            "INTEGRATION_ENCRYPTION_KEY is not set. "
            "Generate a 32-byte hex key with: fitsync generate-key"
        )
    if not _HEX_KEY.match(key_hex):
        raise EncryptionNotConfiguredError(
            "INTEGRATION_ENCRYPTION_KEY must be a 64-character hex string (32 bytes)"
        )
    return bytes.fromhex(key_hex)


def _encrypt(key: bytes, plaintext: str) -> str:
    iv = os.urandom(IV_LENGTH)
    # AESGCM appends the tag to the ciphertext; stored layout puts it first
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
    return base64.b64encode(iv + tag + ciphertext).decode("ascii")


def _decrypt(key: bytes, encrypted: str) -> str:
    try:
        combined = base64.b64decode(encrypted, validate=True)
    except (binascii.Error, ValueError) as e:
        raise TokenDecryptionError("Invalid encrypted data: not base64") from e

    if len(combined) < IV_LENGTH + AUTH_TAG_LENGTH + 1:
        raise TokenDecryptionError("Invalid encrypted data: too short")

    iv = combined[:IV_LENGTH]
    tag = combined[IV_LENGTH:IV_LENGTH + AUTH_TAG_LENGTH]
    ciphertext = combined[IV_LENGTH + AUTH_TAG_LENGTH:]

    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        raise TokenDecryptionError("Decryption failed: invalid data or key") from e
    return plaintext.decode("utf-8")


class TokenVault:
    """
    Symmetric encryption for bearer tokens at rest.

    Usage:
        vault = TokenVault(settings.integration_encryption_key)
        stored = vault.encrypt_token(access_token)
        access_token = vault.decrypt_token(stored)
    """

    def __init__(self, key_hex: Optional[str]):
        self._key = _parse_key(key_hex)

    @classmethod
    def from_settings(cls) -> "TokenVault":
        return cls(settings.integration_encryption_key)

    def encrypt_token(self, plaintext: str) -> str:
        """
        Encrypt a token.

        Raises:
            ValueError: If plaintext is empty
        """
        if not plaintext:
            raise ValueError("Cannot encrypt empty string")
        return _encrypt(self._key, plaintext)

    def decrypt_token(self, encrypted: str) -> str:
        """
        Decrypt a stored token.

        Raises:
            TokenDecryptionError: If the data is malformed or the key is wrong
        """
        if not encrypted:
            raise TokenDecryptionError("Cannot decrypt empty string")
        return _decrypt(self._key, encrypted)


def generate_key() -> str:
    """New random key as 64 hex characters."""
    return os.urandom(KEY_LENGTH).hex()


def is_configured(key_hex: Optional[str] = None) -> bool:
    """Check that a usable key is set (defaults to settings)."""
    try:
        _parse_key(key_hex if key_hex is not None else settings.integration_encryption_key)
    except EncryptionNotConfiguredError:
        return False
    return True


def rotate(encrypted: str, old_key_hex: str, new_key_hex: str) -> str:
    """Re-encrypt stored data under a new key."""
    plaintext = _decrypt(_parse_key(old_key_hex), encrypted)
    return _encrypt(_parse_key(new_key_hex), plaintext)
