"""Domain exceptions and error codes.

Every error raised by the entity and repository layers derives from
`DomainException`, so the API layer can map failures to responses in one place.

- `InputError`: missing or malformed caller input (empty id, bad id format,
  `None` entity, empty update map).
- `ValidationError`: an entity broke a domain rule; carries the offending field.
- `ConflictError`: a uniqueness invariant (username, email, slug) was violated.
- `NotFoundError`: a write matched no document. Reads return `None` instead.
- `BackendError`: any other MongoDB failure, with the driver error chained as
  `__cause__`.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable error codes for API clients."""

    # Input errors (400)
    INVALID_INPUT = "INVALID_INPUT"
    EMPTY_ID = "EMPTY_ID"
    INVALID_ID = "INVALID_ID"
    EMPTY_UPDATE = "EMPTY_UPDATE"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Not found (404)
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"

    # Conflicts (409)
    CONFLICT = "CONFLICT"
    USERNAME_EXISTS = "USERNAME_EXISTS"
    EMAIL_EXISTS = "EMAIL_EXISTS"
    SLUG_EXISTS = "SLUG_EXISTS"

    # Backend (500)
    BACKEND_ERROR = "BACKEND_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_HTTP_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.EMPTY_ID: 400,
    ErrorCode.INVALID_ID: 400,
    ErrorCode.EMPTY_UPDATE: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.ENTITY_NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.USERNAME_EXISTS: 409,
    ErrorCode.EMAIL_EXISTS: 409,
    ErrorCode.SLUG_EXISTS: 409,
    ErrorCode.BACKEND_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}

_CONFLICT_CODES = {
    "username": ErrorCode.USERNAME_EXISTS,
    "email": ErrorCode.EMAIL_EXISTS,
    "slug": ErrorCode.SLUG_EXISTS,
}


class DomainException(Exception):
    """Base exception for all domain-related errors.

    Attributes:
        message: Human-readable error message.
        code: Stable error code for programmatic handling.
        details: Optional additional context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    @property
    def http_status(self) -> int:
        return ERROR_HTTP_STATUS.get(self.code, 500)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code.value!r}, "
            f"details={self.details!r})"
        )


class InputError(DomainException):
    """Raised when caller input is missing or malformed."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_INPUT,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code, details)


class ValidationError(DomainException):
    """Raised when an entity violates a domain rule.

    Only the first violated rule is reported.
    """

    def __init__(self, field: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, {"field": field, **(details or {})})
        self.field = field


class ConflictError(DomainException):
    """Raised when a uniqueness invariant would be violated."""

    def __init__(self, field: str, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message or f"{field} already exists",
            _CONFLICT_CODES.get(field, ErrorCode.CONFLICT),
            {"field": field, **(details or {})},
        )
        self.field = field


class NotFoundError(DomainException):
    """Raised when a write targets a document that does not exist."""

    def __init__(
        self,
        message: str = "document not found",
        code: ErrorCode = ErrorCode.ENTITY_NOT_FOUND,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code, details)


class BackendError(DomainException):
    """Raised for unclassified storage failures."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.BACKEND_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code, details)
