"""
Security utilities for authentication and webhook verification.

Provides JWT helpers, handoff code generation and constant-time
shared-secret comparison for inbound webhooks.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from .config import settings


# =============================================================================
# JWT Token Management
# =============================================================================

ALGORITHM = "HS256"


def create_access_token(
    data: dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode in token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode.update({"exp": expire, "type": "access"})

    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """
    Decode and verify a JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded payload dict or None if invalid
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None


# =============================================================================
# Handoff Codes & Webhook Secrets
# =============================================================================

def generate_handoff_code() -> str:
    """Random URL-safe code for a single-use auth handoff."""
    return secrets.token_urlsafe(32)


def secrets_match(provided: Optional[str], expected: Optional[str]) -> bool:
    """
    Compare a presented secret with the configured one in constant time.

    Both sides are hashed first so the comparison does not leak the
    expected secret's length. An empty expected secret never matches.

    Args:
        provided: Secret presented by the caller (header or query param)
        expected: Configured secret

    Returns:
        True if the secrets are equal
    """
    if not expected or provided is None:
        return False
    provided_digest = hashlib.sha256(provided.encode("utf-8")).digest()
    expected_digest = hashlib.sha256(expected.encode("utf-8")).digest()
    return hmac.compare_digest(provided_digest, expected_digest)
