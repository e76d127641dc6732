"""AuditLog model - append-only record of data-rights activity.

Design principles:
- Append-only: never update or delete audit rows
- Rows survive erasure requests (statutory retention); they are reported
  as a retained category instead
- user_id is not a foreign key so anonymised or removed users keep history
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.database import Base


class AuditStatus(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)

    # Action identifier, e.g. "data_rights.access_request"
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="e.g. 'data_rights_request', 'consent'",
    )
    resource_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # "metadata" is reserved on declarative classes
    extra: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
        server_default="{}",
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=AuditStatus.SUCCESS,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        index=True,
    )

    __table_args__ = (Index("ix_audit_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<AuditLog id={self.id} action={self.action!r} status={self.status}>"
