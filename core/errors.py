"""Exception types shared by the server, the sync client and the engine."""


class FocusError(Exception):
    """Base exception for FocusSync errors."""


class NotFound(FocusError):
    """Unknown user, device or session. Pollers treat this as empty state."""


class Unauthorized(FocusError):
    """Caller does not own the device/session, or the credential is invalid."""


class InvalidCredential(Unauthorized):
    """Missing or unknown bearer token."""


class TransportFailure(FocusError):
    """Network error, timeout or unusable response while talking to the server."""


class ValidationError(FocusError):
    """Missing or malformed request fields. No state was changed."""
