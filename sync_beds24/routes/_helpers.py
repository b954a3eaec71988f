"""
Internal helpers for Beds24 route handlers.

Maps the integration's exception taxonomy onto HTTP responses so every
route reports the same status code and body shape for the same failure.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from sync_beds24.errors import (
    AuthenticationError,
    Beds24Error,
    ConfigurationError,
    DuplicateConnectionError,
    InvalidTransitionError,
    NotFoundError,
    ProviderError,
    RateLimitError,
    TransientNetworkError,
)

ERROR_STATUS_CODES: dict[type[Beds24Error], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateConnectionError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    RateLimitError: status.HTTP_429_TOO_MANY_REQUESTS,
    ProviderError: status.HTTP_502_BAD_GATEWAY,
    TransientNetworkError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_error(error: Beds24Error) -> HTTPException:
    """
    Convert an integration error into an HTTPException.

    Args:
        error: Error raised by a service call

    Returns:
        HTTPException: With the mapped status code and the error's details.
            Rate limit responses carry a Retry-After header.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    for error_class, code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_class):
            status_code = code
            break

    headers = None
    if isinstance(error, RateLimitError):
        headers = {"Retry-After": str(error.resets_in)}

    detail = error.to_details()
    if isinstance(error, ConfigurationError):
        detail = {"type": error.error_type, "message": "Beds24 integration is not configured"}

    return HTTPException(status_code=status_code, detail=detail, headers=headers)
