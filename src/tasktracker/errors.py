"""Error taxonomy and the Result type returned by services.

Learn: Services never raise for expected failures (duplicate email, wrong
password, foreign task id). They return a Result carrying either the value
or a tagged ServiceError. Route handlers call result.unwrap(); the
ResultError it raises on failure is turned into a status code and JSON
body by the HTTP boundary (api/errors.py).

Unexpected failures (store down, bugs) still propagate as exceptions and
are converted to a generic 500 by the outermost handler.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    SERVER_CONFIG = "server_config"
    SERVER = "server"


class ServerConfigError(Exception):
    """Raised when required process configuration (the JWT secret) is missing."""


class ResultError(Exception):
    """Raised by Result.unwrap() on failure; rendered by the HTTP error handlers."""

    def __init__(self, error: "ServiceError"):
        super().__init__(error.message)
        self.error = error


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str
    details: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a ServiceError, never both."""

    value: Optional[T] = None
    error: Optional[ServiceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        details: Optional[list[dict[str, Any]]] = None,
    ) -> "Result[T]":
        return cls(error=ServiceError(kind=kind, message=message, details=details or []))

    def unwrap(self) -> T:
        """Return the value, or raise ResultError carrying the ServiceError."""
        if self.error is not None:
            raise ResultError(self.error)
        return self.value
