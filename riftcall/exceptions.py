"""Custom exceptions for the riftcall client.

Every failure a call can end with is an ApiError subclass. Classification
errors carry the HTTP status that produced them; local failures (hook veto,
missing fixture, transport error) carry the status of the closest HTTP
equivalent, or 0 when there is none.
"""


class ApiError(Exception):
    """Base class for client exceptions with an HTTP status code.

    All custom exceptions inherit from this class and define their
    specific status_code for consistent handling by callers.
    """
    status_code: int = 0

    def __init__(self, message: str = "API error", status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class SettingsError(ApiError):
    """Raised when client configuration is rejected at construction time."""


class RequestError(ApiError):
    """Raised when a request is invalid or could not be completed."""
    status_code = 400


class RequestAborted(RequestError):
    """Raised when a before-call hook vetoes the call.

    The built-in rate-limit admission check is the most common source:
    it aborts before any network activity when a known window is exhausted.
    """
    status_code = 429


class FixtureMissing(RequestError):
    """Raised when fixture replay is on, no fixture exists and recording is off."""
    status_code = 0


class TransportFailure(RequestError):
    """Raised when no response was obtained from the transport."""
    status_code = 0


class BadRequest(RequestError):
    status_code = 400


class Unauthorized(RequestError):
    status_code = 401


class Forbidden(RequestError):
    status_code = 403


class NotFound(RequestError):
    status_code = 404


class UnsupportedMedia(RequestError):
    status_code = 415


class UnspecifiedClientError(RequestError):
    """Any 4xx status without a dedicated exception."""


class ServerError(ApiError):
    """Raised for 500, 503 and any other 5xx status."""
    status_code = 500


class RateLimited(ServerError):
    """Raised when the server answered 429.

    A distinct ServerError subclass; catch it before ServerError to back
    off and retry.
    """
    status_code = 429


class EndpointDeprecationWarning(UserWarning):
    """Emitted when a response announces that its endpoint is deprecated."""
