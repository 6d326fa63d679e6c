"""Error taxonomy shared by the server services and the offline client."""

from typing import Any, List, Optional


class PaperTrailError(Exception):
    """Base class for all PaperTrail errors."""


class ValidationError(PaperTrailError):
    """Malformed input to a create/update call. Never retried."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(PaperTrailError):
    """Target id does not exist or is owned by another user."""


class SyncError(PaperTrailError):
    """Failure talking to the remote document service."""


class TransientSyncError(SyncError):
    """Network, timeout or 5xx failure. Retried with backoff."""


class PermanentSyncError(SyncError):
    """Non-retryable remote failure (4xx other than the cases below)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(PermanentSyncError):
    """The remote rejected the session credentials (401/403)."""


class RemoteNotFoundError(NotFoundError, PermanentSyncError):
    """The remote reports the resource as gone (404/410)."""

    def __init__(self, message: str, status_code: Optional[int] = 404):
        PermanentSyncError.__init__(self, message, status_code)


def validation_error_from(exc, message: str = "Invalid document data") -> ValidationError:
    """Wrap a pydantic ValidationError, keeping only JSON-safe error details."""
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return ValidationError(message, errors)
