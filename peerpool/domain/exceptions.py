"""
Domain-specific exception hierarchy for Peerpool.
"""


class PeerpoolError(Exception):
    """Base class for all application-level errors."""


class BackendError(PeerpoolError):
    """Raised when rows cannot be fetched from or written to the backend."""

    def __init__(self, message: str, *, table: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.table = table
        self.status_code = status_code


class AuthenticationError(PeerpoolError):
    """Raised when sign-in, session refresh or session lookup fails."""


class VisibilityError(PeerpoolError):
    """Raised when a participation action is not allowed for the user."""
