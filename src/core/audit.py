"""Audit logging service.

Every data-rights submission and state change is recorded in audit_logs.

Design:
- Audit writes never roll back or fail the business operation. Each entry is
  inserted inside a SAVEPOINT; a failed write rolls back only the savepoint,
  is logged (audit.write_failed) and log() returns None.
- The service only flushes; the caller owns the transaction boundary.
- ENABLE_AUDIT_LOGGING=false turns writes into no-ops (local tooling).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.audit import AuditLog, AuditStatus
from src.telemetry import current_request_id

log = structlog.get_logger(__name__)

_ERROR_MAX_CHARS = 1000
_USER_AGENT_MAX_CHARS = 512


def _truncate(text: str | None, max_chars: int = _ERROR_MAX_CHARS) -> str | None:
    """Truncate text to max_chars, appending '...' if truncated."""
    if text is None:
        return None
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


@dataclass(frozen=True)
class ClientInfo:
    """Network details of the caller, recorded on every entry of a request."""

    ip_address: str | None = None
    user_agent: str | None = None


class AuditService:
    """Write-only audit log service.

    Usage:
        audit = AuditService(db, client=ClientInfo(ip_address="10.0.0.1"))
        await audit.log(
            action="data_rights.access_request",
            user_id=user_id,
            resource="data_rights_request",
            resource_id=request_id,
        )

    Background jobs pass no client; their entries carry no IP or user agent.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        enabled: bool = True,
        client: ClientInfo | None = None,
    ) -> None:
        self._db = db
        self._enabled = enabled
        self._client = client or ClientInfo()

    async def log(
        self,
        *,
        action: str,
        resource: str,
        user_id: uuid.UUID | None = None,
        resource_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        request_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        status: AuditStatus = AuditStatus.SUCCESS,
        error_message: str | None = None,
    ) -> AuditLog | None:
        """Write an audit log entry and flush it to the DB.

        Returns None when audit logging is disabled or the write failed.
        """
        if not self._enabled:
            return None

        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id else None,
            ip_address=ip_address or self._client.ip_address,
            user_agent=(user_agent or self._client.user_agent or "")[:_USER_AGENT_MAX_CHARS] or None,
            request_id=request_id or current_request_id(),
            extra=metadata or {},
            status=status,
            error_message=_truncate(error_message),
        )
        # The savepoint keeps a failed audit insert from rolling back the
        # caller's transaction.
        try:
            async with self._db.begin_nested():
                self._db.add(entry)
                await self._db.flush()
        except Exception as exc:
            log.error("audit.write_failed", error=str(exc), action=action)
            return None
        return entry
