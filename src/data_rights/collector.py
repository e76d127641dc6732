"""Gather a user's personal data, category by category.

Queries run in a fixed order (profile, identities, verifications,
credentials, consents, activity, pii) and only for the categories asked
for. Identity rows are loaded once and feed the identity, reputation and
staking categories. Encrypted PII is reported by type only.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.audit import AuditLog
from src.models.consent import Consent
from src.models.data_rights_request import DataCategory
from src.models.identity import Credential, EncryptedPII, Identity, VerificationRecord
from src.models.user import User

log = structlog.get_logger(__name__)

ACTIVITY_MAX_ROWS = 1000

_IDENTITY_CATEGORIES = frozenset(
    {DataCategory.IDENTITY, DataCategory.REPUTATION, DataCategory.STAKING}
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class UserDataCollector:
    def __init__(self, db: AsyncSession, *, activity_lookback_days: int = 90) -> None:
        self._db = db
        self._activity_lookback_days = activity_lookback_days

    async def collect(
        self,
        user_id: uuid.UUID,
        categories: Iterable[str],
        *,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Return {category: data} for each requested category.

        Keys follow the DataCategory order regardless of request order.
        """
        wanted = {DataCategory(c) for c in categories}
        now = now or datetime.now(UTC)
        data: dict[str, Any] = {}

        if DataCategory.PROFILE in wanted:
            data[DataCategory.PROFILE] = await self._profile(user_id)

        if wanted & _IDENTITY_CATEGORIES:
            identities = await self._identities(user_id)
            if DataCategory.IDENTITY in wanted:
                data[DataCategory.IDENTITY] = [
                    {
                        "id": str(i.id),
                        "did": i.did,
                        "solana_public_key": i.solana_public_key,
                        "verification_bitmap": i.verification_bitmap,
                        "metadata_uri": i.metadata_uri,
                        "created_at": _iso(i.created_at),
                    }
                    for i in identities
                ]
            if DataCategory.REPUTATION in wanted:
                data[DataCategory.REPUTATION] = [
                    {"identity_id": str(i.id), "did": i.did, "reputation_score": i.reputation_score}
                    for i in identities
                ]
            if DataCategory.STAKING in wanted:
                data[DataCategory.STAKING] = [
                    {"identity_id": str(i.id), "did": i.did, "staked_amount": i.staked_amount}
                    for i in identities
                ]

        if DataCategory.VERIFICATIONS in wanted:
            data[DataCategory.VERIFICATIONS] = await self._verifications(user_id)
        if DataCategory.CREDENTIALS in wanted:
            data[DataCategory.CREDENTIALS] = await self._credentials(user_id)
        if DataCategory.CONSENTS in wanted:
            data[DataCategory.CONSENTS] = await self._consents(user_id)
        if DataCategory.ACTIVITY in wanted:
            data[DataCategory.ACTIVITY] = await self._activity(user_id, now)
        if DataCategory.PII in wanted:
            data[DataCategory.PII] = await self._pii(user_id)

        ordered = {str(c): data[c] for c in DataCategory if c in data}
        log.info(
            "data_rights.data_collected",
            user_id=str(user_id),
            categories=list(ordered),
        )
        return ordered

    # ------------------------------------------------------------------ #
    # Per-category queries
    # ------------------------------------------------------------------ #

    async def _profile(self, user_id: uuid.UUID) -> dict[str, Any] | None:
        result = await self._db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return {
            "id": str(user.id),
            "email": user.email,
            "phone": user.phone,
            "status": str(user.status),
            "created_at": _iso(user.created_at),
            "updated_at": _iso(user.updated_at),
        }

    async def _identities(self, user_id: uuid.UUID) -> list[Identity]:
        result = await self._db.execute(
            select(Identity).where(Identity.user_id == user_id).order_by(Identity.created_at)
        )
        return list(result.scalars().all())

    async def _verifications(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
        result = await self._db.execute(
            select(VerificationRecord)
            .join(Identity, VerificationRecord.identity_id == Identity.id)
            .where(Identity.user_id == user_id)
            .order_by(VerificationRecord.created_at.desc())
        )
        return [
            {
                "id": str(v.id),
                "verification_type": v.verification_type,
                "status": v.status,
                "created_at": _iso(v.created_at),
            }
            for v in result.scalars().all()
        ]

    async def _credentials(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
        result = await self._db.execute(
            select(Credential)
            .join(Identity, Credential.identity_id == Identity.id)
            .where(Identity.user_id == user_id)
            .order_by(Credential.issued_at.desc())
        )
        return [
            {
                "credential_id": c.credential_id,
                "credential_type": c.credential_type,
                "issued_at": _iso(c.issued_at),
                "revoked": c.revoked,
            }
            for c in result.scalars().all()
        ]

    async def _consents(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
        # Every consent, including revoked and expired ones
        result = await self._db.execute(
            select(Consent).where(Consent.user_id == user_id).order_by(Consent.granted_at.desc())
        )
        return [
            {
                "id": str(c.id),
                "consent_type": c.consent_type,
                "purpose": c.purpose,
                "data_elements": list(c.data_elements or []),
                "status": str(c.status),
                "granted_at": _iso(c.granted_at),
                "expires_at": _iso(c.expires_at),
                "revoked_at": _iso(c.revoked_at),
            }
            for c in result.scalars().all()
        ]

    async def _activity(self, user_id: uuid.UUID, now: datetime) -> list[dict[str, Any]]:
        since = now - timedelta(days=self._activity_lookback_days)
        result = await self._db.execute(
            select(AuditLog)
            .where(AuditLog.user_id == user_id, AuditLog.created_at >= since)
            .order_by(AuditLog.created_at.desc())
            .limit(ACTIVITY_MAX_ROWS)
        )
        return [
            {
                "action": entry.action,
                "resource": entry.resource,
                "resource_id": entry.resource_id,
                "status": str(entry.status),
                "ip_address": entry.ip_address,
                "created_at": _iso(entry.created_at),
            }
            for entry in result.scalars().all()
        ]

    async def _pii(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
        result = await self._db.execute(
            select(EncryptedPII.pii_type, EncryptedPII.created_at)
            .join(Identity, EncryptedPII.identity_id == Identity.id)
            .where(Identity.user_id == user_id)
            .order_by(EncryptedPII.created_at)
        )
        return [
            {"pii_type": pii_type, "stored_at": _iso(created_at)}
            for pii_type, created_at in result.all()
        ]
