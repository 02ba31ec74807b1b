"""Failure taxonomy shared by every sync backend.

Adapters classify and raise; :class:`~dailyboard.orchestrator.SyncOrchestrator`
is the only place that decides whether a failure is shown to the user.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all synchronization failures."""

    kind = "sync_error"

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.status_code = status_code


class RemoteUnavailable(SyncError):
    """Network failure, timeout or server-side (5xx) error."""

    kind = "remote_unavailable"


class AuthFailure(SyncError):
    """Missing, expired or under-privileged credential (401/403)."""

    kind = "auth_failure"


class NotFound(SyncError):
    """The remote document does not exist yet (404)."""

    kind = "not_found"


class InvalidData(SyncError):
    """The response body is not a JSON document (or is an HTML error page)."""

    kind = "invalid_data"


class VersionConflict(SyncError):
    """The backend rejected a write because the presented token is stale."""

    kind = "version_conflict"

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        status_code: int | None = None,
        local_version: str | None = None,
        remote_version: str | None = None,
    ) -> None:
        super().__init__(message, source=source, status_code=status_code)
        self.local_version = local_version
        self.remote_version = remote_version


class NotConfigured(SyncError):
    """No credentials or backend available; local-only operation applies."""

    kind = "not_configured"


class PriorityLimitExceeded(ValueError):
    """Raised when a day would carry more priority tasks than allowed."""


def error_for_status(status_code: int, source: str, detail: str = "") -> SyncError:
    """Map an HTTP status onto the failure taxonomy."""
    suffix = f": {detail}" if detail else ""
    if status_code in (401, 403):
        return AuthFailure(f"{source} rejected the credentials ({status_code}){suffix}",
                           source=source, status_code=status_code)
    if status_code == 404:
        return NotFound(f"{source} has no data yet{suffix}", source=source, status_code=status_code)
    if status_code == 409:
        return VersionConflict(f"{source} reported a version conflict{suffix}",
                               source=source, status_code=status_code)
    if status_code >= 500 or status_code in (408, 429):
        return RemoteUnavailable(f"{source} is unavailable ({status_code}){suffix}",
                                 source=source, status_code=status_code)
    return SyncError(f"{source} request failed ({status_code}){suffix}",
                     source=source, status_code=status_code)
