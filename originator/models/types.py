import base64
import hashlib
import json
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import JSON, LargeBinary
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

from originator.core.settings import settings


# JSONB on PostgreSQL, plain JSON elsewhere (offline migrations, tooling).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _derive_key(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


def _get_fernet(secret: Optional[str] = None) -> Fernet:
    key_material = secret or settings.secret_key
    return Fernet(_derive_key(key_material))


class EncryptedString(TypeDecorator):
    """Fernet-encrypted text column for verified PII (CURP, RFC, names, documents)."""

    impl = LargeBinary
    cache_ok = True

    def __init__(self, *, secret: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self._secret = secret

    @property
    def _fernet(self) -> Fernet:
        return _get_fernet(self._secret)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, str):
            value = json.dumps(value, default=str)
        return bytes(self._fernet.encrypt(value.encode("utf-8")))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            return self._fernet.decrypt(value).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Unable to decrypt value") from exc


__all__ = ["EncryptedString", "JSONType"]
