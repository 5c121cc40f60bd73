"""
Service error taxonomy and the tagged result type returned by services.

Services never raise for policy violations (bad input, rate limits, wrong
codes, duplicate votes). They return ``Ok(value)`` or ``Err(ServiceError)``
and the routers translate an ``Err`` into an HTTP error with a
machine-readable ``kind``.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

from fastapi import HTTPException, status

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    INVALID_INPUT = "INVALID_INPUT"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    INVALID_CODE = "INVALID_CODE"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    DUPLICATE_VOTE = "DUPLICATE_VOTE"
    DUPLICATE_CASE = "DUPLICATE_CASE"
    INVALID_TOKEN = "INVALID_TOKEN"
    VERIFICATION_REQUIRED = "VERIFICATION_REQUIRED"
    FORBIDDEN = "FORBIDDEN"
    UNAVAILABLE = "UNAVAILABLE"


HTTP_STATUS = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.EXPIRED: status.HTTP_410_GONE,
    ErrorKind.INVALID_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.TOO_MANY_ATTEMPTS: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DUPLICATE_VOTE: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_CASE: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.VERIFICATION_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str
    retry_after: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.retry_after is not None:
            detail["retryAfter"] = self.retry_after
        detail.update(self.extra)
        return detail


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: ServiceError

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


Result = Union[Ok[T], Err]


def err(kind: ErrorKind, message: str, retry_after: int | None = None, **extra: Any) -> Err:
    return Err(ServiceError(kind=kind, message=message, retry_after=retry_after, extra=extra))


def http_error(error: ServiceError) -> HTTPException:
    headers = None
    if error.retry_after is not None:
        headers = {"Retry-After": str(error.retry_after)}
    return HTTPException(
        status_code=HTTP_STATUS[error.kind],
        detail=error.to_detail(),
        headers=headers,
    )


def unwrap(result: "Result[T]") -> T:
    """Return the value of an ``Ok`` or raise the HTTP error for an ``Err``."""
    if isinstance(result, Err):
        raise http_error(result.error)
    return result.value
