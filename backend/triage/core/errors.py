"""Error taxonomy for the triage and review core.

Every error raised across a service boundary derives from TriageError so
that callers (API routers, workers) can map them in one place.
"""


class TriageError(Exception):
    """Base class for all triage core errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(TriageError):
    """Malformed or oversized caller input. Never retried automatically."""


class DependencyError(TriageError):
    """Reference data, session store or cache unreachable.

    Safe to retry with backoff at the caller.
    """


class AuthorizationError(TriageError):
    """The acting user does not hold the role a transition requires."""


class InvalidStateError(TriageError):
    """A transition guard failed on the current session state."""


class OwnershipConflictError(InvalidStateError):
    """Another clinician claimed or decided the session first."""


class NotFoundError(TriageError):
    """Unknown session, condition or symptom id."""
