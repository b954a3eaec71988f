"""
Per-invocation token cache.

A TokenCache is created for one request or one worker run and handed to the
TokenManager explicitly. It only saves round trips to the credential store and
the token service; the connections table stays the source of truth, so losing
the cache between invocations is always safe.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Hashable, Optional

from sync_beds24.config import TOKEN_EXPIRY_BUFFER_SECONDS
from sync_beds24.utils.datetime import utc_now


class TokenCache:
    """
    In-memory token cache with expiry-aware lookups.

    Entries are stored as ``(token, expires_at)``. A token whose expiry falls
    inside the safety buffer is treated as missing and evicted on read.

    Attributes:
        ttl: Lifetime applied to tokens without a known expiry
        buffer: Safety margin subtracted from each expiry

    Example:
        >>> cache = TokenCache()
        >>> cache.set(("conn-1", "write"), "token-abc", expires_at=utc_now() + timedelta(hours=1))
        >>> cache.get(("conn-1", "write"))
        'token-abc'
    """

    def __init__(
        self,
        ttl_seconds: int = 3600,
        buffer_seconds: int = TOKEN_EXPIRY_BUFFER_SECONDS,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.buffer = timedelta(seconds=buffer_seconds)
        self._cache: dict[Hashable, tuple[str, datetime]] = {}

    def get(self, key: Hashable) -> Optional[str]:
        """
        Get a cached token if it is still valid past the buffer.

        Args:
            key: Cache key, usually ``(connection_id, token_class)``

        Returns:
            Token string, or None when absent or about to expire
        """
        if key in self._cache:
            token, expires_at = self._cache[key]
            if utc_now() + self.buffer < expires_at:
                return token
            del self._cache[key]
        return None

    def set(self, key: Hashable, token: str, expires_at: Optional[datetime] = None) -> None:
        """
        Cache a token until its expiry (or the default TTL when unknown).

        Args:
            key: Cache key
            token: Bearer token
            expires_at: Provider-reported expiry, timezone-aware
        """
        self._cache[key] = (token, expires_at or utc_now() + self.ttl)

    def invalidate(self, key: Hashable) -> None:
        """Remove a token, e.g. after Beds24 rejected it."""
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def size(self) -> int:
        return len(self._cache)
