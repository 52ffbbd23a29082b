"""Custom column types."""

from sqlalchemy import Text
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator

from src.utils.secrets import Secret, decrypt_secret, encrypt_secret


class EncryptedString(TypeDecorator):
    """Text column that is Fernet-encrypted at rest.

    Python side values are `Secret` instances; plain strings are accepted on
    write and wrapped on read.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Secret | str | None, dialect: Dialect) -> str | None:
        if value is None:
            return None
        plaintext = value.reveal() if isinstance(value, Secret) else value
        return encrypt_secret(plaintext)

    def process_result_value(self, value: str | None, dialect: Dialect) -> Secret | None:
        if value is None:
            return None
        return decrypt_secret(value)
