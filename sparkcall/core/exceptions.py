"""Error types raised by the call service."""
from typing import Any, Optional


class CallServiceError(Exception):
    """Base class for every error the call service surfaces to its callers."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(CallServiceError):
    """Bad input. User-correctable, never retried."""


class MediaAccessError(CallServiceError):
    """Local capture was denied or no device is available."""


class SignalingError(CallServiceError):
    """Peer-link setup or offer exchange failed."""


class CallTimeoutError(SignalingError):
    """No remote media arrived within the connect window."""


class RecordStoreError(CallServiceError):
    """The call record store could not be reached or refused the write."""


class NotFoundError(CallServiceError):
    """A record id does not exist in the store."""


class InvalidStateError(CallServiceError):
    """The operation is not allowed in the manager's current state."""
