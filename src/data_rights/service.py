"""Data subject rights service (DPDP Act 2023, Sections 11-13).

Rights handled:
- Access (Section 11): export of the user's personal data
- Correction and erasure (Section 12)
- Portability: export in JSON, CSV or XML
- Grievance redressal (Section 13)

Every request is persisted with a statutory response deadline (30 days,
15 for grievances) and moves through the lifecycle in
src.data_rights.lifecycle. Access and erasure requests are processed by the
background job (src.scripts.process_data_rights); portability exports are
generated on download.

Design:
- The service only flushes; the caller owns the transaction
- Requests are owner-scoped: another user's request id is reported as not
  found
- Erasure removes what can be removed and reports statutory retention for
  the rest (audit logs, verification records, on-chain identity data)
- Processing is resumable: a request left in 'processing' by a crashed run
  is picked up again
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings
from src.core.audit import AuditService, ClientInfo
from src.data_rights.collector import UserDataCollector
from src.data_rights.errors import (
    InvalidRequestError,
    InvalidStatusTransitionError,
    RequestNotFoundError,
    RequestTypeMismatchError,
)
from src.data_rights.exporters import (
    MEDIA_TYPES,
    ExportFormat,
    export_filename,
    render_export,
)
from src.data_rights.lifecycle import (
    OPEN_STATUSES,
    apply_transition,
    calculate_deadline,
    generate_request_id,
)
from src.data_rights.schemas import (
    AccessRequestCreate,
    CorrectionRequestCreate,
    ErasureRequestCreate,
    ErasureScope,
    GrievanceCreate,
    PortabilityRequestCreate,
)
from src.models.consent import Consent, ConsentStatus
from src.models.data_rights_request import (
    ALL_CATEGORIES,
    DataCategory,
    DataRightsRequest,
    RequestStatus,
    RequestType,
)
from src.models.identity import Credential, EncryptedPII, Identity
from src.models.user import User, UserStatus

log = structlog.get_logger(__name__)

_RESOURCE = "data_rights_request"

ERASURE_REVOCATION_REASON = "Erasure request"

RETENTION_REASONS: dict[DataCategory, str] = {
    DataCategory.ACTIVITY: "Audit logs retained for 5 years as per regulatory requirements",
    DataCategory.VERIFICATIONS: "Verification records retained for 5 years as per Aadhaar Act",
    DataCategory.IDENTITY: "Identity anchor is recorded on-chain and cannot be erased",
    DataCategory.REPUTATION: "Reputation score is recorded on-chain and cannot be erased",
    DataCategory.STAKING: "Staking records are recorded on-chain and cannot be erased",
}


@dataclass
class DataExportResult:
    """Result of an access request."""

    request_id: str
    data: dict[str, Any]
    format: ExportFormat
    filename: str
    generated_at: datetime


@dataclass
class ErasureResult:
    """Result of an erasure request."""

    request_id: str
    deleted_categories: list[str] = field(default_factory=list)
    retained_categories: list[dict[str, str]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "deleted_categories": list(self.deleted_categories),
            "retained_categories": [dict(r) for r in self.retained_categories],
        }


@dataclass
class PortableExport:
    """Rendered portability export ready to be sent as a download."""

    request_id: str
    content: str
    format: ExportFormat
    filename: str
    media_type: str


def normalise_categories(categories: Iterable[str] | None) -> list[str]:
    """Deduplicate categories in submission order; empty or None means all."""
    if not categories:
        return [c.value for c in ALL_CATEGORIES]
    seen: list[str] = []
    for raw in categories:
        try:
            category = DataCategory(raw)
        except ValueError as exc:
            raise InvalidRequestError(f"Unknown data category: {raw!r}") from exc
        if category.value not in seen:
            seen.append(category.value)
    return seen


class DataRightsService:
    """Submit, process and query data subject rights requests.

    Usage:
        service = DataRightsService(db, settings)
        request = await service.submit_access_request(user_id, body)

        # Background job
        result = await service.process_access_request(request.id)
    """

    def __init__(
        self, db: AsyncSession, settings: Settings, *, client: ClientInfo | None = None
    ) -> None:
        self._db = db
        self._settings = settings
        self._audit = AuditService(db, enabled=settings.enable_audit_logging, client=client)
        self._collector = UserDataCollector(
            db, activity_lookback_days=settings.activity_lookback_days
        )

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    async def submit_access_request(
        self, user_id: uuid.UUID, body: AccessRequestCreate
    ) -> DataRightsRequest:
        return await self._create(
            user_id,
            RequestType.ACCESS,
            categories=normalise_categories(body.categories),
            reason=body.reason,
        )

    async def submit_erasure_request(
        self, user_id: uuid.UUID, body: ErasureRequestCreate
    ) -> DataRightsRequest:
        if body.scope == ErasureScope.PARTIAL and not body.categories:
            raise InvalidRequestError("categories must be provided for partial erasure")
        categories = (
            normalise_categories(None)
            if body.scope == ErasureScope.FULL
            else normalise_categories(body.categories)
        )
        return await self._create(
            user_id,
            RequestType.ERASURE,
            categories=categories,
            reason=body.reason,
            metadata={"scope": str(body.scope)},
        )

    async def submit_correction_request(
        self, user_id: uuid.UUID, body: CorrectionRequestCreate
    ) -> DataRightsRequest:
        return await self._create(
            user_id,
            RequestType.CORRECTION,
            categories=[],
            reason=body.reason,
            metadata={
                "field": body.field,
                "current_value": body.current_value,
                "corrected_value": body.corrected_value,
                "evidence": body.evidence,
            },
        )

    async def submit_portability_request(
        self, user_id: uuid.UUID, body: PortabilityRequestCreate
    ) -> DataRightsRequest:
        return await self._create(
            user_id,
            RequestType.PORTABILITY,
            categories=normalise_categories(body.categories),
            metadata={"format": str(body.format)},
        )

    async def submit_grievance(
        self, user_id: uuid.UUID, body: GrievanceCreate
    ) -> DataRightsRequest:
        return await self._create(
            user_id,
            RequestType.GRIEVANCE,
            categories=[],
            reason=body.description,
            metadata={
                "category": str(body.category),
                "related_request_id": body.related_request_id,
            },
            deadline_days=self._settings.grievance_response_days,
        )

    async def _create(
        self,
        user_id: uuid.UUID,
        request_type: RequestType,
        *,
        categories: list[str],
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
        deadline_days: int | None = None,
    ) -> DataRightsRequest:
        submitted_at = datetime.now(UTC)
        days = deadline_days or self._settings.data_rights_response_days
        record = DataRightsRequest(
            id=generate_request_id(request_type, now=submitted_at),
            user_id=user_id,
            request_type=request_type,
            status=RequestStatus.PENDING,
            categories=categories,
            reason=reason,
            submitted_at=submitted_at,
            response_deadline=calculate_deadline(submitted_at, days),
            request_metadata=metadata,
        )
        self._db.add(record)
        await self._db.flush()

        await self._audit.log(
            action=f"data_rights.{request_type.value.lower()}_request",
            resource=_RESOURCE,
            user_id=user_id,
            resource_id=record.id,
            metadata={"categories": categories, **(metadata or {})},
        )
        log.info(
            "data_rights.request_submitted",
            request_id=record.id,
            request_type=str(request_type),
            user_id=str(user_id),
            deadline=record.response_deadline.isoformat(),
        )
        return record

    # ------------------------------------------------------------------ #
    # Processing
    # ------------------------------------------------------------------ #

    async def process_access_request(self, request_id: str) -> DataExportResult:
        """Collect the requested data and complete the request."""
        record = await self.get_request(request_id)
        self._expect_type(record, RequestType.ACCESS)
        await self._begin_processing(record)

        generated_at = datetime.now(UTC)
        data = await self._collector.collect(record.user_id, record.categories, now=generated_at)

        record.response_data = data
        apply_transition(record, RequestStatus.COMPLETED, now=generated_at)
        await self._db.flush()

        await self._audit.log(
            action="data_rights.access_completed",
            resource=_RESOURCE,
            user_id=record.user_id,
            resource_id=record.id,
            metadata={"categories": list(data)},
        )
        log.info("data_rights.access_completed", request_id=record.id)

        return DataExportResult(
            request_id=record.id,
            data=data,
            format=ExportFormat.JSON,
            filename=export_filename(record.user_id, ExportFormat.JSON, now=generated_at),
            generated_at=generated_at,
        )

    async def process_erasure_request(self, request_id: str) -> ErasureResult:
        """Erase the requested categories and record what had to be kept."""
        record = await self.get_request(request_id)
        self._expect_type(record, RequestType.ERASURE)
        await self._begin_processing(record)

        now = datetime.now(UTC)
        user_id = record.user_id
        wanted = {DataCategory(c) for c in record.categories}
        result = ErasureResult(request_id=record.id)

        identity_ids: list[uuid.UUID] = []
        if wanted & {DataCategory.PII, DataCategory.CREDENTIALS}:
            ids_result = await self._db.execute(
                select(Identity.id).where(Identity.user_id == user_id)
            )
            identity_ids = list(ids_result.scalars().all())

        if DataCategory.PII in wanted:
            if identity_ids:
                await self._db.execute(
                    delete(EncryptedPII).where(EncryptedPII.identity_id.in_(identity_ids))
                )
            result.deleted_categories.append(DataCategory.PII.value)

        if DataCategory.CREDENTIALS in wanted:
            if identity_ids:
                await self._db.execute(
                    delete(Credential).where(Credential.identity_id.in_(identity_ids))
                )
            result.deleted_categories.append(DataCategory.CREDENTIALS.value)

        if DataCategory.CONSENTS in wanted:
            await self._db.execute(
                update(Consent)
                .where(Consent.user_id == user_id, Consent.status == ConsentStatus.ACTIVE)
                .values(
                    status=ConsentStatus.REVOKED,
                    revoked_at=now,
                    revocation_reason=ERASURE_REVOCATION_REASON,
                )
            )
            result.deleted_categories.append(DataCategory.CONSENTS.value)

        if DataCategory.PROFILE in wanted:
            user_result = await self._db.execute(select(User).where(User.id == user_id))
            user = user_result.scalar_one_or_none()
            if user is not None:
                user.email = None
                user.phone = None
                user.status = UserStatus.DELETED
            result.deleted_categories.append(DataCategory.PROFILE.value)

        for category in DataCategory:
            if category in wanted and category in RETENTION_REASONS:
                result.retained_categories.append(
                    {"category": category.value, "reason": RETENTION_REASONS[category]}
                )

        record.response_data = result.as_dict()
        apply_transition(record, RequestStatus.COMPLETED, now=now)
        await self._db.flush()

        await self._audit.log(
            action="data_rights.erasure_completed",
            resource=_RESOURCE,
            user_id=user_id,
            resource_id=record.id,
            metadata=result.as_dict(),
        )
        log.info(
            "data_rights.erasure_completed",
            request_id=record.id,
            deleted=result.deleted_categories,
            retained=[r["category"] for r in result.retained_categories],
        )
        return result

    async def generate_portable_export(
        self, request_id: str, user_id: uuid.UUID | None = None
    ) -> PortableExport:
        """Render a portability export in the format chosen at submission.

        A completed request can be downloaded again; the data is collected
        afresh each time.
        """
        record = await self.get_request(request_id, user_id)
        self._expect_type(record, RequestType.PORTABILITY)

        already_completed = record.status == RequestStatus.COMPLETED
        if not already_completed:
            await self._begin_processing(record)

        now = datetime.now(UTC)
        fmt = ExportFormat((record.request_metadata or {}).get("format", ExportFormat.JSON))
        data = await self._collector.collect(record.user_id, record.categories, now=now)
        content = render_export(data, fmt)

        if not already_completed:
            record.response_data = {"format": str(fmt), "categories": list(data)}
            apply_transition(record, RequestStatus.COMPLETED, now=now)
            await self._db.flush()

        await self._audit.log(
            action="data_rights.portability_export",
            resource=_RESOURCE,
            user_id=record.user_id,
            resource_id=record.id,
            metadata={"format": str(fmt), "size_bytes": len(content.encode())},
        )
        log.info("data_rights.portability_export", request_id=record.id, format=str(fmt))

        return PortableExport(
            request_id=record.id,
            content=content,
            format=fmt,
            filename=export_filename(record.user_id, fmt, now=now),
            media_type=MEDIA_TYPES[fmt],
        )

    # ------------------------------------------------------------------ #
    # Queries and state changes
    # ------------------------------------------------------------------ #

    async def list_user_requests(self, user_id: uuid.UUID) -> Sequence[DataRightsRequest]:
        result = await self._db.execute(
            select(DataRightsRequest)
            .where(DataRightsRequest.user_id == user_id)
            .order_by(DataRightsRequest.submitted_at.desc())
        )
        return result.scalars().all()

    async def get_request(
        self, request_id: str, user_id: uuid.UUID | None = None
    ) -> DataRightsRequest:
        """Load a request; with user_id, only the owner's request is found."""
        result = await self._db.execute(
            select(DataRightsRequest).where(DataRightsRequest.id == request_id)
        )
        record = result.scalar_one_or_none()
        if record is None or (user_id is not None and record.user_id != user_id):
            raise RequestNotFoundError(request_id)
        return record

    async def cancel_request(self, request_id: str, user_id: uuid.UUID) -> DataRightsRequest:
        record = await self.get_request(request_id, user_id)
        apply_transition(record, RequestStatus.CANCELLED)
        await self._db.flush()

        await self._audit.log(
            action="data_rights.request_cancelled",
            resource=_RESOURCE,
            user_id=user_id,
            resource_id=record.id,
        )
        log.info("data_rights.request_cancelled", request_id=record.id)
        return record

    async def reject_request(self, request_id: str, reason: str) -> DataRightsRequest:
        record = await self.get_request(request_id)
        apply_transition(record, RequestStatus.REJECTED)
        # Reassign so the JSONB change is tracked
        record.request_metadata = {**(record.request_metadata or {}), "rejection_reason": reason}
        await self._db.flush()

        await self._audit.log(
            action="data_rights.request_rejected",
            resource=_RESOURCE,
            user_id=record.user_id,
            resource_id=record.id,
            metadata={"reason": reason},
        )
        log.info("data_rights.request_rejected", request_id=record.id, reason=reason)
        return record

    async def list_overdue_requests(
        self, now: datetime | None = None
    ) -> Sequence[DataRightsRequest]:
        """Open requests past their deadline, most overdue first."""
        now = now or datetime.now(UTC)
        result = await self._db.execute(
            select(DataRightsRequest)
            .where(
                DataRightsRequest.status.in_([str(s) for s in OPEN_STATUSES]),
                DataRightsRequest.response_deadline < now,
            )
            .order_by(DataRightsRequest.response_deadline.asc())
        )
        return result.scalars().all()

    async def list_pending_requests(
        self,
        request_types: Iterable[RequestType],
        *,
        limit: int | None = None,
    ) -> Sequence[DataRightsRequest]:
        """Requests of the given types awaiting processing, oldest first.

        Requests stuck in 'processing' are included so an interrupted run
        can be resumed.
        """
        stmt = (
            select(DataRightsRequest)
            .where(
                DataRightsRequest.request_type.in_([str(t) for t in request_types]),
                DataRightsRequest.status.in_(
                    [str(RequestStatus.PENDING), str(RequestStatus.PROCESSING)]
                ),
            )
            .order_by(DataRightsRequest.submitted_at.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._db.execute(stmt)
        return result.scalars().all()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _expect_type(record: DataRightsRequest, expected: RequestType) -> None:
        if record.request_type != expected:
            raise RequestTypeMismatchError(record.id, str(expected), str(record.request_type))

    async def _begin_processing(self, record: DataRightsRequest) -> None:
        if record.status == RequestStatus.PROCESSING:
            log.info("data_rights.processing_resumed", request_id=record.id)
            return
        if record.status != RequestStatus.PENDING:
            raise InvalidStatusTransitionError(
                record.id, str(record.status), str(RequestStatus.PROCESSING)
            )
        apply_transition(record, RequestStatus.PROCESSING)
        await self._db.flush()
