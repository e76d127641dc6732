"""Request and response models for the data-rights API.

Input models accept snake_case field names and the camelCase names used by
existing clients (currentValue, correctedValue, relatedRequestId).
Leading/trailing whitespace is stripped before length checks, so a blank
required field is rejected.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.data_rights.exporters import ExportFormat
from src.models.data_rights_request import DataCategory

REASON_MAX_LENGTH = 500
EVIDENCE_MAX_LENGTH = 1000
DESCRIPTION_MAX_LENGTH = 2000


class ErasureScope(StrEnum):
    FULL = "full"
    PARTIAL = "partial"


class GrievanceCategory(StrEnum):
    CONSENT = "consent"
    ACCESS = "access"
    ERASURE = "erasure"
    CORRECTION = "correction"
    OTHER = "other"


class _RequestBody(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


# ------------------------------------------------------------------ #
# Request bodies
# ------------------------------------------------------------------ #


class AccessRequestCreate(_RequestBody):
    """Right to access (DPDP Act Section 11)."""

    categories: list[DataCategory] | None = Field(
        default=None,
        description="Categories to include; omit for all",
    )
    reason: str | None = Field(default=None, max_length=REASON_MAX_LENGTH)


class ErasureRequestCreate(_RequestBody):
    """Right to erasure (DPDP Act Section 12)."""

    scope: ErasureScope
    categories: list[DataCategory] | None = Field(
        default=None,
        description="Required when scope is 'partial'",
    )
    reason: str = Field(..., min_length=1, max_length=REASON_MAX_LENGTH)

    @model_validator(mode="after")
    def _partial_scope_needs_categories(self) -> ErasureRequestCreate:
        if self.scope == ErasureScope.PARTIAL and not self.categories:
            raise ValueError("categories must be provided for partial erasure")
        return self


class CorrectionRequestCreate(_RequestBody):
    """Right to correction (DPDP Act Section 12)."""

    field: str = Field(..., min_length=1, max_length=64)
    current_value: str = Field(
        ..., alias="currentValue", min_length=1, max_length=REASON_MAX_LENGTH
    )
    corrected_value: str = Field(
        ..., alias="correctedValue", min_length=1, max_length=REASON_MAX_LENGTH
    )
    reason: str = Field(..., min_length=1, max_length=REASON_MAX_LENGTH)
    evidence: str | None = Field(
        default=None,
        max_length=EVIDENCE_MAX_LENGTH,
        description="Supporting evidence (URL or description)",
    )


class PortabilityRequestCreate(_RequestBody):
    """Right to data portability."""

    format: ExportFormat
    categories: list[DataCategory] | None = None


class GrievanceCreate(_RequestBody):
    """Grievance redressal (DPDP Act Section 13)."""

    category: GrievanceCategory
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    related_request_id: str | None = Field(
        default=None,
        alias="relatedRequestId",
        max_length=64,
    )


# ------------------------------------------------------------------ #
# Response models
# ------------------------------------------------------------------ #


class SubmissionResponse(BaseModel):
    request_id: str
    request_type: str
    status: str
    response_deadline: datetime


class GrievanceResponse(BaseModel):
    grievance_id: str
    status: str
    expected_resolution_date: datetime


class DataRightsRequestResponse(BaseModel):
    id: str
    request_type: str
    status: str
    categories: list[str]
    reason: str | None
    submitted_at: datetime
    response_deadline: datetime
    completed_at: datetime | None
    metadata: dict[str, Any] | None = None


class DataRightsRequestDetail(DataRightsRequestResponse):
    response_data: dict[str, Any] | None = None
