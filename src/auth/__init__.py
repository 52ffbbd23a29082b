"""Authentication module."""

from src.auth.dependencies import (
    get_current_user,
    get_optional_user,
    login_user,
    logout_user,
)

__all__ = [
    "get_current_user",
    "get_optional_user",
    "login_user",
    "logout_user",
]
