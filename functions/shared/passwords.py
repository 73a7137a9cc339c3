"""Password hashing for the optional submitter password."""

from __future__ import annotations

import base64
import os

from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

SCRYPT_N: int = 2**14
SCRYPT_R: int = 8
SCRYPT_P: int = 1
SALT_BYTES: int = 16
KEY_BYTES: int = 32


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def hash_password(password: str) -> str:
    """Return ``scrypt$<n>$<r>$<p>$<salt>$<key>`` for storage."""
    salt = os.urandom(SALT_BYTES)
    kdf = Scrypt(salt=salt, length=KEY_BYTES, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    key = kdf.derive(password.encode("utf-8"))
    return f"scrypt${SCRYPT_N}${SCRYPT_R}${SCRYPT_P}${_b64(salt)}${_b64(key)}"
