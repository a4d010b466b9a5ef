"""
Portal exceptions.
"""

from typing import Dict, Optional


class PortalError(Exception):
    """Raised by services when a backend call fails. Carries the failing component name."""

    def __init__(self, message: str, component: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.component = component

    def __str__(self) -> str:
        if self.component:
            return f"[{self.component}] {self.message}"
        return self.message


class NotFoundError(PortalError):
    """Requested record does not exist."""


class SubmissionRejected(PortalError):
    """Submitted form data or documents failed validation."""


class BackendError(PortalError):
    """A portal API call failed (network error, non-2xx response or malformed body)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, "PortalClient")
        self.status_code = status_code


class FormValidationError(PortalError):
    """Form input failed validation before any network call. ``errors`` maps field -> message."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(errors.values()), "ApplicationForm")
        self.errors = errors
