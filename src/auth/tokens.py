"""Bearer token issue and validation.

Tokens are HS256 JWTs signed with JWT_SECRET.

Required claims:
  - sub: string UUID - the user id (maps to users.id)
  - exp: int - expiration timestamp

Optional claims:
  - email: string
  - phone: string
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import structlog
from jwt.exceptions import InvalidTokenError

from src.config import Settings

log = structlog.get_logger(__name__)

ALGORITHM = "HS256"


class TokenValidationError(Exception):
    """Raised when a JWT cannot be validated."""


def _secret(settings: Settings) -> str:
    if settings.jwt_secret is None:
        raise TokenValidationError("JWT_SECRET is not configured")
    return settings.jwt_secret.get_secret_value()


def validate_token(token: str, settings: Settings) -> dict[str, Any]:
    """Validate a JWT and return its claims.

    Raises TokenValidationError if the token is malformed, expired, badly
    signed, or its subject is not a UUID.
    """
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            _secret(settings),
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp"], "verify_exp": True},
        )
    except InvalidTokenError as exc:
        raise TokenValidationError(f"Token validation failed: {exc}") from exc

    try:
        uuid.UUID(str(claims["sub"]))
    except ValueError as exc:
        raise TokenValidationError("Token subject is not a user id") from exc
    return claims


def create_access_token(
    user_id: uuid.UUID,
    settings: Settings,
    *,
    email: str | None = None,
    expires_in: timedelta | None = None,
) -> str:
    """Issue a signed access token for user_id."""
    now = datetime.now(UTC)
    expires_in = expires_in or timedelta(minutes=settings.jwt_access_token_expiry_minutes)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, _secret(settings), algorithm=ALGORITHM)
