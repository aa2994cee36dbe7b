"""
Error taxonomy for the storage activity.

Every failure the host should see is an ActivityError with a stable code.
The activity turns these into result values; the HTTP binding turns them
into status codes. Anything that is not an ActivityError is a defect and
is allowed to propagate.
"""

from typing import Any, Optional


class ActivityError(Exception):
    """Base class for errors reported back to the calling workflow step."""

    code = "activity_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class AuthenticationError(ActivityError):
    """Credentials are malformed or were rejected by the storage service."""

    code = "authentication_failed"


class ValidationError(ActivityError):
    """Invocation input is missing, mistyped or structurally invalid."""

    code = "validation_failed"


class UnsupportedOptionError(ValidationError):
    """Write option string is not one of NEW, OVERWRITE or APPEND."""

    code = "unsupported_write_option"


class AlreadyExistsError(ActivityError):
    """A NEW write found existing, non-empty content."""

    code = "already_exists"


class UnsupportedOperationError(ActivityError):
    """Operation selector is not READ, WRITE or DELETE."""

    code = "unsupported_operation"


class TransportError(ActivityError):
    """
    Failure surfaced by the storage service or the network.

    The SDK exception is chained as __cause__; status_code carries the
    HTTP status the service answered with, when there was one.
    """

    code = "transport_error"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


class ObjectNotFoundError(TransportError):
    """The bucket or object does not exist."""

    code = "not_found"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404)
