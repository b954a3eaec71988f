"""
Encryption at rest for Beds24 access and refresh tokens.

Tokens are sealed with Fernet (AES-128-CBC + HMAC) using the key in
CREDENTIALS_ENCRYPTION_KEY. Ciphertext is stored as text in the connections table.
"""

from __future__ import annotations

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from sync_beds24.config import CREDENTIALS_ENCRYPTION_KEY
from sync_beds24.errors import ConfigurationError


def generate_key() -> str:
    """
    Generate a new Fernet key suitable for CREDENTIALS_ENCRYPTION_KEY.

    Returns:
        str: URL-safe base64 encoded key
    """
    return Fernet.generate_key().decode("utf-8")


def _cipher(key: Optional[str]) -> Fernet:
    key = key or CREDENTIALS_ENCRYPTION_KEY
    if not key:
        raise ConfigurationError("CREDENTIALS_ENCRYPTION_KEY must be set to store Beds24 tokens")
    try:
        return Fernet(key.encode("utf-8"))
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"CREDENTIALS_ENCRYPTION_KEY is not a valid Fernet key: {e}")


def encrypt_token(token: str, key: Optional[str] = None) -> str:
    """
    Encrypt a token for storage.

    Args:
        token (str): Plaintext bearer or refresh token.
        key (Optional[str]): Fernet key override. Defaults to CREDENTIALS_ENCRYPTION_KEY.

    Returns:
        str: Fernet ciphertext.
    """
    return _cipher(key).encrypt(token.encode("utf-8")).decode("utf-8")


def decrypt_token(ciphertext: str, key: Optional[str] = None) -> str:
    """
    Decrypt a stored token.

    Args:
        ciphertext (str): Value previously returned by encrypt_token.
        key (Optional[str]): Fernet key override. Defaults to CREDENTIALS_ENCRYPTION_KEY.

    Returns:
        str: Plaintext token.

    Raises:
        ConfigurationError: If the key is missing or does not match the ciphertext.
    """
    try:
        return _cipher(key).decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        raise ConfigurationError(
            "Stored Beds24 credentials cannot be decrypted with the configured key"
        )
