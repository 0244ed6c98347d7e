"""Result values and the error taxonomy shared by every request path.

Expected failures (404s, timeouts, auth problems) never raise; they travel
as ``Result.fail(AppError(...))``. Exceptions are reserved for protocol
contract violations and programming errors.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class ErrorCode(Enum):
    """Error categories surfaced to callers."""

    NETWORK = "Network"
    TIMEOUT = "Timeout"
    CANCELLED = "Cancelled"
    API_ERROR = "ApiError"
    AUTH_REQUIRED = "AuthRequired"
    RATE_LIMIT = "RateLimit"
    PARSE_ERROR = "ParseError"
    NOT_FOUND = "NotFound"


class ResultUnwrapError(RuntimeError):
    """Raised by ``Result.unwrap`` on a failed result."""

    def __init__(self, error: "AppError"):
        super().__init__(f"Unwrap failed: {error.code.value}: {error.message}")
        self.error = error


class RegistrationContractError(ValueError):
    """A registration document is missing fields the protocol guarantees."""


@dataclass(frozen=True)
class AppError:
    """A classified failure.

    Only the fields relevant to ``code`` are populated: ``status_code`` for
    ApiError/AuthRequired, ``retry_after`` for RateLimit, ``resource`` for
    NotFound, ``timeout_ms`` for Timeout.
    """

    code: ErrorCode
    message: str
    status_code: Optional[int] = None
    hint: Optional[str] = None
    retry_after: Optional[int] = None
    resource: Optional[str] = None
    timeout_ms: Optional[int] = None
    cause: Optional[Any] = None

    @property
    def is_retryable(self) -> bool:
        """Network errors and 5xx API errors may succeed on a later attempt."""
        if self.code is ErrorCode.NETWORK:
            return True
        return self.code is ErrorCode.API_ERROR and (self.status_code or 0) >= 500

    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping for hosts that serialize errors."""
        data: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        optional = {
            "statusCode": self.status_code,
            "hint": self.hint,
            "retryAfter": self.retry_after,
            "resource": self.resource,
            "timeoutMs": self.timeout_ms,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def network(cls, message: str, cause: Any = None) -> "AppError":
        return cls(ErrorCode.NETWORK, message, cause=cause)

    @classmethod
    def timeout(cls, message: str, timeout_ms: Optional[int] = None) -> "AppError":
        return cls(ErrorCode.TIMEOUT, message, timeout_ms=timeout_ms)

    @classmethod
    def cancelled(cls, message: str = "Request was cancelled") -> "AppError":
        return cls(ErrorCode.CANCELLED, message)

    @classmethod
    def api(cls, message: str, status_code: int = 0) -> "AppError":
        return cls(ErrorCode.API_ERROR, message, status_code=status_code)

    @classmethod
    def auth_required(cls, message: str, status_code: Optional[int] = None,
                      hint: Optional[str] = None) -> "AppError":
        return cls(ErrorCode.AUTH_REQUIRED, message, status_code=status_code, hint=hint)

    @classmethod
    def rate_limit(cls, message: str, retry_after: Optional[int] = None) -> "AppError":
        return cls(ErrorCode.RATE_LIMIT, message, retry_after=retry_after)

    @classmethod
    def parse(cls, message: str, cause: Any = None) -> "AppError":
        return cls(ErrorCode.PARSE_ERROR, message, cause=cause)

    @classmethod
    def not_found(cls, message: str, resource: Optional[str] = None) -> "AppError":
        return cls(ErrorCode.NOT_FOUND, message, resource=resource)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a success carrying ``value`` or a failure carrying ``error``."""

    success: bool
    value: Optional[T] = None
    error: Optional[AppError] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(True, value=value)

    @classmethod
    def fail(cls, error: AppError) -> "Result[Any]":
        return cls(False, error=error)

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        """Transform the success value; failures pass through unchanged."""
        if self.success:
            return Result.ok(fn(self.value))  # type: ignore[arg-type]
        return self  # type: ignore[return-value]

    def flat_map(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        """Chain another result-producing step; failures pass through unchanged."""
        if self.success:
            return fn(self.value)  # type: ignore[arg-type]
        return self  # type: ignore[return-value]

    def unwrap_or(self, default: T) -> T:
        return self.value if self.success else default  # type: ignore[return-value]

    def unwrap(self) -> T:
        """Return the value or raise ``ResultUnwrapError``."""
        if self.success:
            return self.value  # type: ignore[return-value]
        assert self.error is not None
        raise ResultUnwrapError(self.error)


def ok(value: T) -> Result[T]:
    """Create a successful result."""
    return Result.ok(value)


def fail(error: AppError) -> Result[Any]:
    """Create a failed result."""
    return Result.fail(error)


def combine_results(results: Iterable[Result[T]]) -> Result[List[T]]:
    """Return the first failure, or a success holding every value in order."""
    values: List[T] = []
    for result in results:
        if not result.success:
            return result  # type: ignore[return-value]
        values.append(result.value)  # type: ignore[arg-type]
    return Result.ok(values)
