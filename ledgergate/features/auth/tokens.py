"""Token value helpers: signed access tokens, opaque refresh tokens, digests."""

import hashlib
import secrets
from datetime import datetime
from typing import Any

import jwt

from ledgergate.config.settings import settings

ACCESS_TOKEN_TYPE = "access"


def create_access_token(subject: str, issued_at: datetime, expires_at: datetime) -> str:
    """Create a signed JWT access token.

    Every token carries a random `jti`, so two tokens issued in the same second
    for the same user never collide.

    Args:
        subject: User id the token is issued for
        issued_at: Issue time
        expires_at: Expiry, matching the stored pair

    Returns:
        Encoded JWT token string

    """
    payload = {
        "sub": subject,
        "jti": secrets.token_urlsafe(16),
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify an access token.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired
        jwt.InvalidTokenError: If the token is malformed, badly signed or not an access token

    """
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["sub", "exp", "jti"]},
    )
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise jwt.InvalidTokenError("Invalid token type")
    return payload


def generate_refresh_token() -> str:
    """Generate an opaque, single-use refresh token."""
    return secrets.token_urlsafe(48)


def generate_client_secret() -> tuple[str, str]:
    """Generate an OAuth client uid and secret."""
    return secrets.token_urlsafe(24), secrets.token_urlsafe(32)


def token_digest(value: str) -> str:
    """SHA-256 hex digest under which token values are stored and looked up."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
