"""Tests for request ids, deadlines and the status state machine."""

import re
from datetime import datetime, timedelta, timezone

import pytest

from src.data_rights.errors import InvalidStatusTransitionError
from src.data_rights.lifecycle import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    apply_transition,
    calculate_deadline,
    can_transition,
    generate_request_id,
)
from src.models.data_rights_request import RequestStatus, RequestType

_ID_PATTERN = re.compile(r"^(ACCESS|ERASURE|CORRECTION|PORTABILITY|GRIEVANCE)-[0-9A-Z]+-[0-9A-Z]{6}$")


class TestRequestId:
    @pytest.mark.parametrize("request_type", list(RequestType))
    def test_format(self, request_type):
        request_id = generate_request_id(request_type)
        assert _ID_PATTERN.match(request_id)
        assert request_id.startswith(f"{request_type.value}-")

    def test_timestamp_part_is_base36_millis(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        request_id = generate_request_id(RequestType.ACCESS, now=now)

        middle = request_id.split("-")[1]
        assert int(middle, 36) == int(now.timestamp() * 1000)

    def test_ids_are_unique(self):
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        ids = {generate_request_id(RequestType.ERASURE, now=now) for _ in range(200)}
        assert len(ids) == 200


class TestDeadlines:
    def test_thirty_day_deadline(self):
        submitted = datetime(2026, 1, 31, 10, 0, tzinfo=timezone.utc)
        assert calculate_deadline(submitted, 30) == datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)

    def test_fifteen_day_grievance_deadline(self):
        submitted = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert calculate_deadline(submitted, 15) - submitted == timedelta(days=15)


class TestTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (RequestStatus.PENDING, RequestStatus.PROCESSING),
            (RequestStatus.PENDING, RequestStatus.REJECTED),
            (RequestStatus.PENDING, RequestStatus.CANCELLED),
            (RequestStatus.PROCESSING, RequestStatus.COMPLETED),
            (RequestStatus.PROCESSING, RequestStatus.REJECTED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target) is True

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (RequestStatus.PENDING, RequestStatus.COMPLETED),
            (RequestStatus.PROCESSING, RequestStatus.CANCELLED),
            (RequestStatus.PROCESSING, RequestStatus.PENDING),
            (RequestStatus.COMPLETED, RequestStatus.PROCESSING),
            (RequestStatus.CANCELLED, RequestStatus.PENDING),
            (RequestStatus.REJECTED, RequestStatus.PROCESSING),
        ],
    )
    def test_forbidden(self, current, target):
        assert can_transition(current, target) is False

    def test_terminal_and_open_partition_statuses(self):
        assert TERMINAL_STATUSES == {
            RequestStatus.COMPLETED,
            RequestStatus.REJECTED,
            RequestStatus.CANCELLED,
        }
        assert OPEN_STATUSES == {RequestStatus.PENDING, RequestStatus.PROCESSING}

    def test_apply_to_processing_leaves_completed_at_empty(self, make_request):
        record = make_request()
        apply_transition(record, RequestStatus.PROCESSING)

        assert record.status == RequestStatus.PROCESSING
        assert record.completed_at is None

    def test_terminal_status_stamps_completed_at(self, make_request):
        record = make_request(status=RequestStatus.PROCESSING)
        now = datetime(2026, 2, 2, tzinfo=timezone.utc)

        apply_transition(record, RequestStatus.COMPLETED, now=now)

        assert record.status == RequestStatus.COMPLETED
        assert record.completed_at == now

    def test_invalid_transition_raises_and_keeps_status(self, make_request):
        record = make_request(status=RequestStatus.COMPLETED)

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            apply_transition(record, RequestStatus.CANCELLED)

        assert record.status == RequestStatus.COMPLETED
        assert exc_info.value.current == "completed"
        assert exc_info.value.target == "cancelled"
