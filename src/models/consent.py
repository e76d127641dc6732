"""Consent records - purpose-specific processing consent given by a user.

Only the fields the data-rights workflow touches are modelled: exports
include every consent (revoked and expired too), and erasure revokes the
active ones with a revocation reason.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base


class ConsentStatus(StrEnum):
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"
    PENDING = "pending"


class Consent(Base):
    __tablename__ = "consents"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    consent_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="e.g. 'pii.aadhaar.verification', 'processing.analytics'",
    )
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    data_elements: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default="[]"
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ConsentStatus.ACTIVE
    )
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revocation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    user: Mapped[User] = relationship("User", back_populates="consents")  # type: ignore[name-defined]

    __table_args__ = (Index("ix_consents_user_status", "user_id", "status"),)

    def __repr__(self) -> str:
        return f"<Consent id={self.id} type={self.consent_type!r} status={self.status!r}>"
