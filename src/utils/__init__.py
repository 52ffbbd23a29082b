"""Utility modules for the IssueLens application."""

from src.utils.github_url import RepositoryRef, parse_repository_url
from src.utils.logging import get_logger, LogContext, setup_logging
from src.utils.retry import retry_async, RetryConfig
from src.utils.secrets import (
    decrypt_secret,
    encrypt_secret,
    mask_secret,
    Secret,
    SecretDecryptionError,
)
from src.utils.staleness import freshness_in_words, is_stale, stale_cutoff

__all__ = [
    # GitHub URLs
    "RepositoryRef",
    "parse_repository_url",
    # Logging
    "get_logger",
    "LogContext",
    "setup_logging",
    # Retry
    "retry_async",
    "RetryConfig",
    # Secrets
    "decrypt_secret",
    "encrypt_secret",
    "mask_secret",
    "Secret",
    "SecretDecryptionError",
    # Staleness
    "freshness_in_words",
    "is_stale",
    "stale_cutoff",
]
