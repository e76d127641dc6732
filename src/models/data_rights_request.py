"""SQLAlchemy ORM model for data subject rights requests.

Tracks the lifecycle of DPDP Act 2023 requests: access (Section 11),
correction and erasure (Section 12), portability, and grievance redressal
(Section 13), each with its statutory response deadline.
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


class RequestType(StrEnum):
    """Data subject request types."""

    ACCESS = "ACCESS"
    ERASURE = "ERASURE"
    CORRECTION = "CORRECTION"
    PORTABILITY = "PORTABILITY"
    GRIEVANCE = "GRIEVANCE"


class RequestStatus(StrEnum):
    """Lifecycle status of a data subject request."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class DataCategory(StrEnum):
    """Categories of personal data a request can target."""

    PROFILE = "profile"
    IDENTITY = "identity"
    VERIFICATIONS = "verifications"
    CREDENTIALS = "credentials"
    REPUTATION = "reputation"
    CONSENTS = "consents"
    STAKING = "staking"
    ACTIVITY = "activity"
    PII = "pii"


ALL_CATEGORIES: tuple[DataCategory, ...] = tuple(DataCategory)


class DataRightsRequest(Base):
    """Persistent record of a data subject rights request."""

    __tablename__ = "data_rights_requests"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="<TYPE>-<base36 timestamp>-<random>, e.g. ACCESS-LZ3K9P2A-4F7Q1X",
    )
    # No FK to users.id: the subject row is anonymised by erasure
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    request_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    categories: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default="[]",
        comment="Subset of DataCategory values",
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    response_deadline: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Statutory deadline: 30 days (15 for grievances) from submission",
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Set when the request reaches a terminal status",
    )
    response_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="Collected export data or erasure summary",
    )
    request_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
        comment="Scope, format, correction fields, grievance category, rejection reason",
    )

    __table_args__ = (
        Index("ix_data_rights_user_submitted", "user_id", "submitted_at"),
        Index("ix_data_rights_status_deadline", "status", "response_deadline"),
    )

    def __repr__(self) -> str:
        return (
            f"<DataRightsRequest id={self.id!r} user={self.user_id} "
            f"type={self.request_type!r} status={self.status!r}>"
        )
