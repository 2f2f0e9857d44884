"""Security helpers for admin token handling in the backend."""

from __future__ import annotations

import hashlib
import hmac
import secrets


TOKEN_BYTES = 24


def generate_token() -> str:
    """Generate a URL-safe admin token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str, server_salt: str) -> str:
    """Create deterministic token hash via sha256(token + server_salt)."""
    payload = f"{token}{server_salt}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def verify_token(raw_token: str, expected_hash: str | None, server_salt: str) -> bool:
    """Compare raw token against a stored hash. No stored hash never verifies."""
    if not expected_hash:
        return False
    return hmac.compare_digest(hash_token(raw_token, server_salt), expected_hash)
