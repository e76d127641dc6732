"""FastAPI dependencies for authentication.

Key dependencies:
- get_current_user: Resolve bearer JWT claims -> User ORM object

Design: JIT user provisioning
  A user whose token validates but who has no row yet is created on first
  use, keyed by the token subject, inside a SAVEPOINT. When two first
  requests race, the loser hits the primary key, rolls back its savepoint
  and loads the winner's row. Accounts that are suspended or erased
  (status other than active) are refused with 403.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.tokens import TokenValidationError, validate_token
from src.config import Settings, get_settings
from src.database import get_db_session
from src.models.user import User, UserStatus
from src.telemetry import bind_user_context

log = structlog.get_logger(__name__)


class AuthenticatedUser:
    """Lightweight container passed to route handlers.

    Combines the ORM User object with the raw JWT claims.
    """

    def __init__(self, user: User, claims: dict[str, Any]) -> None:
        self.user = user
        self.claims = claims

    @property
    def id(self) -> uuid.UUID:
        return self.user.id

    @property
    def email(self) -> str | None:
        return self.user.email


def _extract_and_validate_token(request: Request, settings: Settings) -> dict[str, Any]:
    """Extract the Bearer token and validate it. Raises HTTP 401 on any failure."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header.removeprefix("Bearer ").strip()
    try:
        return validate_token(token, settings)
    except TokenValidationError as exc:
        log.info("auth.token_rejected", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


async def _provision_user(db: AsyncSession, user_id: uuid.UUID, claims: dict[str, Any]) -> User:
    """Create the user row, or load it if a concurrent request created it first."""
    user = User(
        id=user_id,
        email=claims.get("email"),
        phone=claims.get("phone"),
        status=UserStatus.ACTIVE,
    )
    try:
        async with db.begin_nested():
            db.add(user)
            await db.flush()
    except IntegrityError:
        log.info("auth.user_provision_conflict", user_id=str(user_id))
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one()

    log.info("auth.user_provisioned", user_id=str(user_id))
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> AuthenticatedUser:
    """Resolve the bearer token to a User, provisioning it on first use.

    Raises HTTP 401 for a missing or invalid token.
    Raises HTTP 403 if the account is not active.
    """
    claims = _extract_and_validate_token(request, settings)
    user_id = uuid.UUID(str(claims["sub"]))

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        user = await _provision_user(db, user_id, claims)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is not active",
        )

    bind_user_context(user_id=user.id)
    return AuthenticatedUser(user=user, claims=claims)
