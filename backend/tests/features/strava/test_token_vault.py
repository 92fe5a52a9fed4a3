"""
Tests for the token vault (AES-256-GCM).
"""

import base64

import pytest

from fitsync.features.strava.encryption import (
    AUTH_TAG_LENGTH,
    IV_LENGTH,
    EncryptionNotConfiguredError,
    TokenDecryptionError,
    TokenVault,
    generate_key,
    is_configured,
    rotate,
)


KEY = "0123456789abcdef" * 4
OTHER_KEY = "fedcba9876543210" * 4


class TestTokenVault:
    """Tests for TokenVault."""

    def test_decrypts_what_it_encrypts(self):
        vault = TokenVault(KEY)
        assert vault.decrypt_token(vault.encrypt_token("a1b2c3")) == "a1b2c3"

    def test_stored_layout(self):
        """base64(iv || tag || ciphertext); GCM ciphertext length equals plaintext."""
        stored = TokenVault(KEY).encrypt_token("token")
        raw = base64.b64decode(stored)
        assert len(raw) == IV_LENGTH + AUTH_TAG_LENGTH + len("token")

    def test_random_iv(self):
        vault = TokenVault(KEY)
        assert vault.encrypt_token("same") != vault.encrypt_token("same")

    def test_unicode(self):
        vault = TokenVault(KEY)
        assert vault.decrypt_token(vault.encrypt_token("токен✓")) == "токен✓"

    def test_wrong_key(self):
        stored = TokenVault(KEY).encrypt_token("secret")
        with pytest.raises(TokenDecryptionError):
            TokenVault(OTHER_KEY).decrypt_token(stored)

    def test_tampered_ciphertext(self):
        raw = bytearray(base64.b64decode(TokenVault(KEY).encrypt_token("secret")))
        raw[-1] ^= 0x01
        with pytest.raises(TokenDecryptionError):
            TokenVault(KEY).decrypt_token(base64.b64encode(bytes(raw)).decode())

    def test_too_short(self):
        short = base64.b64encode(b"x" * (IV_LENGTH + AUTH_TAG_LENGTH)).decode()
        with pytest.raises(TokenDecryptionError, match="too short"):
            TokenVault(KEY).decrypt_token(short)

    def test_not_base64(self):
        with pytest.raises(TokenDecryptionError):
            TokenVault(KEY).decrypt_token("not base64 !!")

    def test_empty_values(self):
        vault = TokenVault(KEY)
        with pytest.raises(ValueError):
            vault.encrypt_token("")
        with pytest.raises(TokenDecryptionError):
            vault.decrypt_token("")

    @pytest.mark.parametrize("key", [None, "", "abc", "g" * 64, KEY[:-2]])
    def test_invalid_key(self, key):
        with pytest.raises(EncryptionNotConfiguredError):
            TokenVault(key)


class TestKeyHelpers:
    """Tests for key generation, validation and rotation."""

    def test_generate_key(self):
        key = generate_key()
        assert len(key) == 64
        assert is_configured(key)
        assert generate_key() != key

    def test_is_configured(self):
        assert is_configured(KEY) is True
        assert is_configured("short") is False

    def test_is_configured_reads_settings(self, monkeypatch):
        from fitsync.config import settings
        monkeypatch.setattr(settings, "integration_encryption_key", None)
        assert is_configured() is False
        monkeypatch.setattr(settings, "integration_encryption_key", KEY)
        assert is_configured() is True

    def test_rotate(self):
        stored = TokenVault(KEY).encrypt_token("secret")
        rotated = rotate(stored, KEY, OTHER_KEY)
        assert TokenVault(OTHER_KEY).decrypt_token(rotated) == "secret"
        with pytest.raises(TokenDecryptionError):
            TokenVault(KEY).decrypt_token(rotated)
