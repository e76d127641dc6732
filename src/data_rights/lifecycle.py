"""Request identifiers, statutory deadlines and the status state machine.

    pending    -> processing | rejected | cancelled
    processing -> completed  | rejected

completed, rejected and cancelled are terminal. Entering a terminal status
stamps completed_at.
"""

from __future__ import annotations

import secrets
import string
from datetime import UTC, datetime, timedelta

from src.data_rights.errors import InvalidStatusTransitionError
from src.models.data_rights_request import DataRightsRequest, RequestStatus, RequestType

_BASE36_ALPHABET = string.digits + string.ascii_uppercase
_RANDOM_SUFFIX_LENGTH = 6

_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset(
        {RequestStatus.PROCESSING, RequestStatus.REJECTED, RequestStatus.CANCELLED}
    ),
    RequestStatus.PROCESSING: frozenset({RequestStatus.COMPLETED, RequestStatus.REJECTED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: frozenset[RequestStatus] = frozenset(
    status for status, targets in _TRANSITIONS.items() if not targets
)
OPEN_STATUSES: frozenset[RequestStatus] = frozenset(RequestStatus) - TERMINAL_STATUSES


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_request_id(request_type: RequestType, *, now: datetime | None = None) -> str:
    """Build an id like ``ACCESS-LZ3K9P2A-4F7Q1X``.

    The middle part is the submission time in epoch milliseconds (base36),
    so ids of one type sort roughly by submission time.
    """
    now = now or datetime.now(UTC)
    millis = int(now.timestamp() * 1000)
    suffix = "".join(
        secrets.choice(_BASE36_ALPHABET) for _ in range(_RANDOM_SUFFIX_LENGTH)
    )
    return f"{RequestType(request_type).value}-{_to_base36(millis)}-{suffix}"


def calculate_deadline(submitted_at: datetime, days: int) -> datetime:
    return submitted_at + timedelta(days=days)


def can_transition(current: str, target: str) -> bool:
    return RequestStatus(target) in _TRANSITIONS[RequestStatus(current)]


def apply_transition(
    record: DataRightsRequest,
    target: RequestStatus,
    *,
    now: datetime | None = None,
) -> None:
    """Move record to target status or raise InvalidStatusTransitionError."""
    if not can_transition(record.status, target):
        raise InvalidStatusTransitionError(record.id, str(record.status), str(target))
    record.status = target
    if target in TERMINAL_STATUSES:
        record.completed_at = now or datetime.now(UTC)
