"""Fernet encryption for sensitive account fields."""
import base64
import hashlib
import string
from typing import Optional

from cryptography.fernet import Fernet


def _fernet_key(key: Optional[str], fallback_secret: str) -> bytes:
    if key:
        if len(key) == 64 and all(ch in string.hexdigits for ch in key):
            # hex keys are 32 raw bytes
            return base64.urlsafe_b64encode(bytes.fromhex(key))
        return key.encode("utf-8")
    digest = hashlib.sha256(fallback_secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class FieldEncryptor:
    def __init__(self, key: Optional[str], fallback_secret: str):
        self.cipher = Fernet(_fernet_key(key, fallback_secret))

    def encrypt(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        return self.cipher.encrypt(value.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        return self.cipher.decrypt(token.encode("utf-8")).decode("utf-8")


def mask_identity_number(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    digits = "".join(ch for ch in value if ch.isdigit())
    if len(digits) <= 4:
        return "X" * len(digits)
    return "X" * (len(digits) - 4) + digits[-4:]
