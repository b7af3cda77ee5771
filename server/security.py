"""Password hashing and bearer tokens for demo-mode accounts (Supabase Auth handles the hosted case)."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 390000
SALT_BYTES = 16
TOKEN_BYTES = 32


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("utf-8")


def hash_password(password: str, *, iterations: int = ITERATIONS) -> str:
    salt = os.urandom(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=32)
    return "$".join([ALGORITHM, str(iterations), _b64(salt), _b64(digest)])


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iter_str, salt_b64, hash_b64 = encoded.split("$")
        if algorithm != ALGORITHM:
            return False
        iterations = int(iter_str)
        salt = base64.b64decode(salt_b64.encode("utf-8"))
        stored = base64.b64decode(hash_b64.encode("utf-8"))
    except ValueError:
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=len(stored))
    return hmac.compare_digest(candidate, stored)


def new_access_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def bearer_token(header_value: str) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header, or return ''."""
    if not header_value or not header_value.lower().startswith("bearer "):
        return ""
    parts = header_value.split(None, 1)
    return parts[1].strip() if len(parts) == 2 else ""
