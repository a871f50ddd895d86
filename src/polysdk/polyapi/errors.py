"""Exceptions raised by the polyapi client."""


class PolySDKError(Exception):
    """Base class for all polyapi client errors."""


class ValidationError(PolySDKError, ValueError):
    """Raised when a required argument is empty, before any request is sent."""


class TransportError(PolySDKError):
    """Raised on network failures, timeouts and HTTP error statuses."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(PolySDKError):
    """Raised when a response body is not JSON or not the expected envelope."""


class ServiceError(PolySDKError):
    """Raised when a data model response envelope carries a non-zero code.

    The service has no structured sub-codes, so callers tell a missing
    entity from other failures by inspecting ``msg``.
    """

    def __init__(self, msg: str, code: int):
        super().__init__(msg)
        self.msg = msg
        self.code = code


class AuthError(PolySDKError):
    """Raised when the login exchange returns a non-zero code."""

    def __init__(self, msg: str, code: int):
        super().__init__(msg)
        self.msg = msg
        self.code = code
