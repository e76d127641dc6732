"""Data subject rights API endpoints (DPDP Act 2023).

POST /api/v1/data-rights/access                  - Right to access (Section 11)
POST /api/v1/data-rights/erasure                 - Right to erasure (Section 12)
POST /api/v1/data-rights/correction              - Right to correction (Section 12)
POST /api/v1/data-rights/portability             - Right to data portability
POST /api/v1/data-rights/grievance               - Grievance redressal (Section 13)
GET  /api/v1/data-rights/requests                - List own requests
GET  /api/v1/data-rights/requests/{id}           - Get own request
POST /api/v1/data-rights/requests/{id}/cancel    - Cancel own pending request
GET  /api/v1/data-rights/export/{id}             - Download portability export

All endpoints require a bearer token. Requests are scoped to the caller:
another user's request id answers 404.
"""

from __future__ import annotations

from typing import NoReturn

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import AuthenticatedUser, get_current_user
from src.config import Settings, get_settings
from src.core.audit import ClientInfo
from src.data_rights.errors import (
    DataRightsError,
    InvalidRequestError,
    InvalidStatusTransitionError,
    RequestNotFoundError,
    RequestTypeMismatchError,
)
from src.data_rights.schemas import (
    AccessRequestCreate,
    CorrectionRequestCreate,
    DataRightsRequestDetail,
    DataRightsRequestResponse,
    ErasureRequestCreate,
    GrievanceCreate,
    GrievanceResponse,
    PortabilityRequestCreate,
    SubmissionResponse,
)
from src.data_rights.service import DataRightsService
from src.database import get_db_session
from src.models.data_rights_request import DataRightsRequest

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/data-rights", tags=["data-rights"])


def client_info(request: Request) -> ClientInfo:
    """IP address and User-Agent of the caller, for audit entries."""
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_data_rights_service(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> DataRightsService:
    return DataRightsService(db, settings, client=client_info(request))


def _raise_http(exc: DataRightsError) -> NoReturn:
    if isinstance(exc, RequestNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, (InvalidStatusTransitionError, RequestTypeMismatchError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, InvalidRequestError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    raise exc


def _submission(record: DataRightsRequest) -> SubmissionResponse:
    return SubmissionResponse(
        request_id=record.id,
        request_type=record.request_type,
        status=record.status,
        response_deadline=record.response_deadline,
    )


def _summary(record: DataRightsRequest) -> DataRightsRequestResponse:
    return DataRightsRequestResponse(
        id=record.id,
        request_type=record.request_type,
        status=record.status,
        categories=list(record.categories or []),
        reason=record.reason,
        submitted_at=record.submitted_at,
        response_deadline=record.response_deadline,
        completed_at=record.completed_at,
        metadata=record.request_metadata,
    )


# ------------------------------------------------------------------ #
# Submission
# ------------------------------------------------------------------ #


@router.post(
    "/access",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit data access request",
)
async def submit_access_request(
    body: AccessRequestCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: DataRightsService = Depends(get_data_rights_service),
) -> SubmissionResponse:
    """Request a copy of your personal data (Right to Access, Section 11)."""
    try:
        record = await service.submit_access_request(current_user.id, body)
    except DataRightsError as exc:
        _raise_http(exc)
    return _submission(record)


@router.post(
    "/erasure",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit erasure request",
)
async def submit_erasure_request(
    body: ErasureRequestCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: DataRightsService = Depends(get_data_rights_service),
) -> SubmissionResponse:
    """Request deletion of your personal data (Right to Erasure, Section 12).

    Audit logs and verification records are retained for their statutory
    period; the completed request lists what was kept and why.
    """
    try:
        record = await service.submit_erasure_request(current_user.id, body)
    except DataRightsError as exc:
        _raise_http(exc)
    return _submission(record)


@router.post(
    "/correction",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit correction request",
)
async def submit_correction_request(
    body: CorrectionRequestCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: DataRightsService = Depends(get_data_rights_service),
) -> SubmissionResponse:
    try:
        record = await service.submit_correction_request(current_user.id, body)
    except DataRightsError as exc:
        _raise_http(exc)
    return _submission(record)


@router.post(
    "/portability",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit data portability request",
)
async def submit_portability_request(
    body: PortabilityRequestCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: DataRightsService = Depends(get_data_rights_service),
) -> SubmissionResponse:
    """Request a machine-readable export; download it from /export/{id}."""
    try:
        record = await service.submit_portability_request(current_user.id, body)
    except DataRightsError as exc:
        _raise_http(exc)
    return _submission(record)


@router.post(
    "/grievance",
    response_model=GrievanceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="File a grievance",
)
async def submit_grievance(
    body: GrievanceCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: DataRightsService = Depends(get_data_rights_service),
) -> GrievanceResponse:
    """File a grievance (Section 13); resolution is due within 15 days."""
    try:
        record = await service.submit_grievance(current_user.id, body)
    except DataRightsError as exc:
        _raise_http(exc)
    return GrievanceResponse(
        grievance_id=record.id,
        status=record.status,
        expected_resolution_date=record.response_deadline,
    )


# ------------------------------------------------------------------ #
# Queries
# ------------------------------------------------------------------ #


@router.get(
    "/requests",
    response_model=list[DataRightsRequestResponse],
    summary="List your data rights requests",
)
async def list_requests(
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: DataRightsService = Depends(get_data_rights_service),
) -> list[DataRightsRequestResponse]:
    records = await service.list_user_requests(current_user.id)
    return [_summary(r) for r in records]


@router.get(
    "/requests/{request_id}",
    response_model=DataRightsRequestDetail,
    summary="Get a data rights request",
)
async def get_request(
    request_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: DataRightsService = Depends(get_data_rights_service),
) -> DataRightsRequestDetail:
    try:
        record = await service.get_request(request_id, current_user.id)
    except DataRightsError as exc:
        _raise_http(exc)
    return DataRightsRequestDetail(
        **_summary(record).model_dump(),
        response_data=record.response_data,
    )


@router.post(
    "/requests/{request_id}/cancel",
    response_model=DataRightsRequestResponse,
    summary="Cancel a pending request",
)
async def cancel_request(
    request_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: DataRightsService = Depends(get_data_rights_service),
) -> DataRightsRequestResponse:
    """Only pending requests can be cancelled (409 otherwise)."""
    try:
        record = await service.cancel_request(request_id, current_user.id)
    except DataRightsError as exc:
        _raise_http(exc)
    return _summary(record)


@router.get(
    "/export/{request_id}",
    summary="Download a portability export",
    responses={200: {"content": {"application/json": {}, "text/csv": {}, "application/xml": {}}}},
)
async def download_export(
    request_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: DataRightsService = Depends(get_data_rights_service),
) -> Response:
    """Render the export in the format chosen at submission."""
    try:
        export = await service.generate_portable_export(request_id, current_user.id)
    except DataRightsError as exc:
        _raise_http(exc)

    log.info(
        "data_rights.export_downloaded",
        request_id=request_id,
        format=str(export.format),
        size_bytes=len(export.content.encode()),
    )
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
