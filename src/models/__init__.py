"""ORM models package.

Import all models here so that SQLAlchemy's metadata is fully populated
when Alembic runs autogenerate and relationship strings resolve.
"""

from src.models.audit import AuditLog, AuditStatus
from src.models.consent import Consent, ConsentStatus
from src.models.data_rights_request import (
    ALL_CATEGORIES,
    DataCategory,
    DataRightsRequest,
    RequestStatus,
    RequestType,
)
from src.models.identity import Credential, EncryptedPII, Identity, VerificationRecord
from src.models.user import User, UserStatus

__all__ = [
    "User",
    "UserStatus",
    "Identity",
    "VerificationRecord",
    "Credential",
    "EncryptedPII",
    "Consent",
    "ConsentStatus",
    "AuditLog",
    "AuditStatus",
    "DataRightsRequest",
    "DataCategory",
    "RequestType",
    "RequestStatus",
    "ALL_CATEGORIES",
]
