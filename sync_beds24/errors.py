"""
Exception taxonomy for the Beds24 integration.

Every error carries a stable ``error_type`` and a ``to_details()`` dict so the
same shape lands in audit entries, sync log ``error_details`` and HTTP error
responses.
"""

from __future__ import annotations

from typing import Any, Optional


class Beds24Error(Exception):
    """Base exception for all Beds24 integration errors."""

    error_type = "beds24_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_details(self) -> dict[str, Any]:
        """Serialize the error for audit and sync log storage."""
        return {"type": self.error_type, "message": self.message, **self.details}


class ConfigurationError(Beds24Error):
    """Required credentials or settings are missing. Fatal, never retried."""

    error_type = "configuration"


class AuthenticationError(Beds24Error):
    """Beds24 rejected an invite code or refresh token. Needs re-authorization."""

    error_type = "authentication"


class RateLimitError(Beds24Error):
    """
    The five-minute credit budget is at or below the backoff threshold.

    Callers must stop the current batch and resume after ``resets_in`` seconds.
    """

    error_type = "rate_limit"

    def __init__(
        self,
        remaining: int,
        resets_in: int,
        request_cost: Optional[int] = None,
        limit: Optional[int] = None,
    ):
        super().__init__(
            f"Beds24 credit budget exhausted: {remaining} remaining, resets in {resets_in}s"
        )
        self.remaining = remaining
        self.resets_in = resets_in
        self.request_cost = request_cost
        self.limit = limit

    def to_details(self) -> dict[str, Any]:
        return {
            "type": self.error_type,
            "message": self.message,
            "remaining": self.remaining,
            "resets_in": self.resets_in,
            "request_cost": self.request_cost,
            "limit": self.limit,
        }


class ProviderError(Beds24Error):
    """Beds24 answered with a non-2xx status."""

    error_type = "provider"

    def __init__(self, status_code: int, body: Any, endpoint: Optional[str] = None):
        super().__init__(f"Beds24 returned HTTP {status_code} for {endpoint or 'request'}")
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint

    def to_details(self) -> dict[str, Any]:
        return {
            "type": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
            "body": self.body,
        }


class TransientNetworkError(Beds24Error):
    """Timeouts and connection resets that survived the bounded retries."""

    error_type = "network"


class InvalidTransitionError(Beds24Error):
    """A connection status change that the lifecycle does not allow."""

    error_type = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move connection from {current} to {target}")
        self.current = current
        self.target = target


class NotFoundError(Beds24Error):
    error_type = "not_found"


class DuplicateConnectionError(Beds24Error):
    error_type = "duplicate_connection"
