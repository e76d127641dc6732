"""Domain exceptions raised by the data-rights service.

Routes translate these into HTTP status codes:
- RequestNotFoundError -> 404
- InvalidStatusTransitionError -> 409
- RequestTypeMismatchError -> 409
- InvalidRequestError -> 422
"""

from __future__ import annotations


class DataRightsError(Exception):
    """Base class for data-rights failures."""


class RequestNotFoundError(DataRightsError):
    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Data rights request {request_id} not found")


class InvalidStatusTransitionError(DataRightsError):
    def __init__(self, request_id: str, current: str, target: str) -> None:
        self.request_id = request_id
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move request {request_id} from {current!r} to {target!r}"
        )


class RequestTypeMismatchError(DataRightsError):
    def __init__(self, request_id: str, expected: str, actual: str) -> None:
        self.request_id = request_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Request {request_id} is a {actual} request, expected {expected}"
        )


class InvalidRequestError(DataRightsError):
    """Submitted request is structurally valid but not acceptable."""
