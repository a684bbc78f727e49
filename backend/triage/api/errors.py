"""Mapping of core errors onto HTTP responses."""

from fastapi import HTTPException, status

from triage.core.errors import (
    AuthorizationError,
    DependencyError,
    InvalidStateError,
    NotFoundError,
    TriageError,
    ValidationError,
)

# Most specific first: OwnershipConflictError is an InvalidStateError
ERROR_STATUS: list[tuple[type[TriageError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (DependencyError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_exception(error: TriageError) -> HTTPException:
    """Convert a core error to an HTTPException with a structured detail."""
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            code = status_code
            break

    headers = {"Retry-After": "5"} if code == status.HTTP_503_SERVICE_UNAVAILABLE else None
    return HTTPException(
        status_code=code,
        detail={
            "error": type(error).__name__,
            "message": error.message,
            "details": error.details,
        },
        headers=headers,
    )
