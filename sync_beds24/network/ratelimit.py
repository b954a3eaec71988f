"""
Beds24 credit budget policy.

Every Beds24 v2 response reports the cost of the call and what is left of the
rolling five-minute credit window. Missing or unparseable headers mean the
budget is unknown, which is treated as "proceed".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from sync_beds24.config import MAX_BACKOFF_SECONDS, RATE_LIMIT_THRESHOLD

DEFAULT_REQUEST_COST = 1
DEFAULT_REMAINING = 1000
DEFAULT_RESETS_IN = 300  # nominal five-minute window

# Header names in priority order; the alternates show up on older endpoints
COST_HEADERS = ("x-request-cost", "x-api-request-cost")
REMAINING_HEADERS = ("x-five-min-limit-remaining", "x-api-credits-remaining")
RESETS_IN_HEADERS = ("x-five-min-limit-resets-in", "x-api-credits-resets-in")
LIMIT_HEADERS = ("x-five-min-limit", "x-api-credits-limit")


@dataclass(frozen=True)
class CreditInfo:
    """
    Parsed credit telemetry for a single Beds24 response.

    Attributes:
        request_cost: Credits charged for the call
        remaining: Credits left in the current window
        resets_in: Seconds until the window resets
        limit: Window ceiling, when Beds24 reports it
        observed: False when the remaining count came from defaults
    """

    request_cost: int = DEFAULT_REQUEST_COST
    remaining: int = DEFAULT_REMAINING
    resets_in: int = DEFAULT_RESETS_IN
    limit: Optional[int] = None
    observed: bool = False


def _header_int(headers: Mapping[str, str], names: tuple[str, ...]) -> Optional[int]:
    lowered = {k.lower(): v for k, v in headers.items()}
    for name in names:
        raw = lowered.get(name)
        if raw is None:
            continue
        try:
            return int(float(str(raw).strip()))
        except (ValueError, OverflowError):
            continue
    return None


def parse_credit_headers(headers: Mapping[str, str]) -> CreditInfo:
    """
    Extract credit telemetry from response headers.

    Args:
        headers: Response headers (any case)

    Returns:
        CreditInfo with defaults for anything missing

    Example:
        >>> parse_credit_headers({"X-Request-Cost": "2", "X-Five-Min-Limit-Remaining": "40"})
        CreditInfo(request_cost=2, remaining=40, resets_in=300, limit=None, observed=True)
    """
    cost = _header_int(headers, COST_HEADERS)
    remaining = _header_int(headers, REMAINING_HEADERS)
    resets_in = _header_int(headers, RESETS_IN_HEADERS)
    limit = _header_int(headers, LIMIT_HEADERS)

    return CreditInfo(
        request_cost=cost if cost is not None else DEFAULT_REQUEST_COST,
        remaining=remaining if remaining is not None else DEFAULT_REMAINING,
        resets_in=resets_in if resets_in is not None else DEFAULT_RESETS_IN,
        limit=limit,
        observed=remaining is not None,
    )


def should_backoff(remaining: int, threshold: int = RATE_LIMIT_THRESHOLD) -> bool:
    """
    Decide whether the caller must stop spending credits.

    The threshold itself already counts as exhausted: 50 remaining with a
    threshold of 50 backs off, 51 does not.
    """
    return remaining <= threshold


def backoff_delay(resets_in: int, cap: int = MAX_BACKOFF_SECONDS) -> int:
    """
    Seconds to sleep before resuming, never longer than ``cap``.

    Args:
        resets_in: Seconds until the credit window resets
        cap: Upper bound for the sleep
    """
    return max(1, min(int(resets_in), cap))
