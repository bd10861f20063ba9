"""Error taxonomy shared by repositories and sync engines."""

from __future__ import annotations


class StoraError(Exception):
    """Base class for all STORA errors."""


class ValidationError(StoraError):
    """Rejected before any network call or local mutation."""


class TransportError(StoraError):
    """The remote could not be reached (timeout, DNS, refused connection)."""


class RemoteRejectedError(StoraError):
    """The remote answered with a non-2xx status or ``success=false``."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class LocalStorageError(StoraError):
    """The local store failed; fatal to the current operation."""
