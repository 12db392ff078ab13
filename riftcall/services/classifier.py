"""Maps HTTP status codes onto the client's exception kinds."""

import json
from typing import Dict, Type

from riftcall.exceptions import (
    ApiError,
    BadRequest,
    Forbidden,
    NotFound,
    RateLimited,
    ServerError,
    Unauthorized,
    UnspecifiedClientError,
    UnsupportedMedia,
)

# Status codes with a dedicated exception
_STATUS_ERRORS: Dict[int, tuple[Type[ApiError], str]] = {
    503: (ServerError, "Service is temporarily unavailable."),
    500: (ServerError, "Internal server error occured."),
    429: (RateLimited, "Rate limit for this API key was exceeded."),
    415: (UnsupportedMedia, "Unsupported media type."),
    404: (NotFound, "Not Found."),
    403: (Forbidden, "Forbidden."),
    401: (Unauthorized, "Unauthorized."),
    400: (BadRequest, "Request is invalid."),
}


def classify(status_code: int) -> Type[ApiError] | None:
    """Return the exception class for a status code, or None on success."""
    if status_code in _STATUS_ERRORS:
        return _STATUS_ERRORS[status_code][0]
    if 500 <= status_code < 600:
        return ServerError
    if 400 <= status_code < 500:
        return UnspecifiedClientError
    return None


def server_message(body: str | bytes | None) -> str | None:
    """Extract status.message from an error body, if there is one."""
    if not body:
        return None
    try:
        data = json.loads(body)
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    status = data.get("status")
    if isinstance(status, dict) and status.get("message"):
        return str(status["message"])
    return None


def error_for(status_code: int, body: str | bytes | None = None) -> ApiError | None:
    """Build the exception for a response, or None when it succeeded.

    The message includes the server's status.message when the body has one.
    """
    error_class = classify(status_code)
    if error_class is None:
        return None
    if status_code in _STATUS_ERRORS:
        message = _STATUS_ERRORS[status_code][1]
    else:
        message = f"Unspecified error occured ({status_code})."
    detail = server_message(body)
    if detail:
        message = f"{message} ({detail})"
    return error_class(message, status_code=status_code)
