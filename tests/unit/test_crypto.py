"""
Unit tests for token encryption at rest.
"""

from __future__ import annotations

import pytest

from sync_beds24.crypto import decrypt_token, encrypt_token, generate_key
from sync_beds24.errors import ConfigurationError


@pytest.mark.unit
@pytest.mark.parametrize(
    "token",
    ["", "a", "refresh-token-123", "ünïcødé-tøkén", "x" * 4096],
)
def test_encrypt_decrypt_round_trip(token: str) -> None:
    """Test that decrypt(encrypt(token)) returns the original token."""
    key = generate_key()

    ciphertext = encrypt_token(token, key)

    assert ciphertext != token
    assert decrypt_token(ciphertext, key) == token


@pytest.mark.unit
def test_encrypt_uses_configured_key() -> None:
    """Test that the configured CREDENTIALS_ENCRYPTION_KEY is used by default."""
    assert decrypt_token(encrypt_token("secret")) == "secret"


@pytest.mark.unit
def test_decrypt_with_wrong_key_raises_configuration_error() -> None:
    """Test that a ciphertext sealed with another key is rejected."""
    ciphertext = encrypt_token("secret", generate_key())

    with pytest.raises(ConfigurationError, match="cannot be decrypted"):
        decrypt_token(ciphertext, generate_key())


@pytest.mark.unit
def test_missing_key_raises_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that encryption without any key configured fails loudly."""
    monkeypatch.setattr("sync_beds24.crypto.CREDENTIALS_ENCRYPTION_KEY", None)

    with pytest.raises(ConfigurationError, match="must be set"):
        encrypt_token("secret")


@pytest.mark.unit
def test_invalid_key_raises_configuration_error() -> None:
    """Test that a malformed key is reported as a configuration problem."""
    with pytest.raises(ConfigurationError, match="not a valid Fernet key"):
        encrypt_token("secret", "not-a-key")
