"""Secret handling for credentials stored at rest.

This module provides utilities for:
- Encrypting and decrypting GitHub tokens with Fernet
- An opaque `Secret` wrapper that never prints its value
- Masking secrets for logs and API previews
"""

import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from src.config import get_settings

logger = logging.getLogger(__name__)


class SecretDecryptionError(Exception):
    """Stored ciphertext could not be decrypted with the configured key."""

    pass


class Secret:
    """Opaque wrapper around a plaintext credential.

    The wrapped value is only reachable through `reveal()`, so a token that
    ends up in an f-string or a log call is rendered masked.

    Usage:
        token = Secret("ghp_abc123...")
        client = GitHubClient(token=token.reveal())
        logger.info(f"Using {token}")  # Using ghp_...c123
    """

    __slots__ = ("_value",)

    def __init__(self, value: str):
        self._value = value

    def reveal(self) -> str:
        """Return the plaintext value."""
        return self._value

    def __str__(self) -> str:
        return mask_secret(self._value)

    def __repr__(self) -> str:
        return f"Secret({mask_secret(self._value)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Secret):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)


@lru_cache
def get_fernet(key: str | None = None) -> Fernet:
    """Get cached Fernet instance for the configured key."""
    return Fernet((key or get_settings().token_encryption_key).encode("utf-8"))


def generate_encryption_key() -> str:
    """Generate a new Fernet key suitable for TOKEN_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode("utf-8")


def encrypt_secret(plaintext: str) -> str:
    """Encrypt a plaintext secret.

    Args:
        plaintext: Secret to encrypt

    Returns:
        URL-safe base64 Fernet token
    """
    return get_fernet().encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_secret(ciphertext: str) -> Secret:
    """Decrypt a stored secret.

    Args:
        ciphertext: Fernet token as stored in the database

    Returns:
        The plaintext wrapped in a `Secret`

    Raises:
        SecretDecryptionError: If the key does not match the ciphertext
    """
    try:
        plaintext = get_fernet().decrypt(ciphertext.encode("utf-8"))
    except InvalidToken as e:
        logger.error("Failed to decrypt stored secret (wrong TOKEN_ENCRYPTION_KEY?)")
        raise SecretDecryptionError("Stored secret could not be decrypted") from e
    return Secret(plaintext.decode("utf-8"))


def mask_secret(secret: str, visible_chars: int = 4) -> str:
    """Mask a secret for logging purposes.

    Args:
        secret: Secret to mask
        visible_chars: Number of characters to show at start and end

    Returns:
        Masked secret like "abc...xyz"
    """
    if len(secret) <= visible_chars * 2:
        return "*" * len(secret)
    return f"{secret[:visible_chars]}...{secret[-visible_chars:]}"
