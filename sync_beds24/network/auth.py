"""
Beds24 token acquisition.

Tokens come from an ordered chain of providers. Each provider is a small
callable that returns an IssuedToken or None ("not configured here, ask the
next one"); a provider raises only when the credentials exist and were
rejected. The TokenManager walks the chain behind a per-invocation TokenCache.

    read:  cache -> static config -> token service -> refresh-token exchange
    write: cache -> token service -> refresh-token exchange
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from uuid import UUID

import requests
import structlog
from dateutil import parser as date_parser
from sqlalchemy.engine import Engine

from sync_beds24.cache import TokenCache
from sync_beds24.config import (
    BEDS24_BASE_URL,
    BEDS24_READ_TOKEN,
    BEDS24_TOKEN_SERVICE_KEY,
    BEDS24_TOKEN_SERVICE_URL,
    BEDS24_WRITE_REFRESH_TOKEN,
    REQUEST_TIMEOUT_SECONDS,
    TOKEN_EXPIRY_BUFFER_SECONDS,
)
from sync_beds24.crypto import decrypt_token, encrypt_token
from sync_beds24.db.engine import engine as default_engine
from sync_beds24.db.readers.connections import get_connection_credentials
from sync_beds24.db.writers.connections import store_connection_tokens, update_connection_status
from sync_beds24.errors import (
    AuthenticationError,
    ConfigurationError,
    ProviderError,
    TransientNetworkError,
)
from sync_beds24.metrics import token_cache_hits, token_cache_misses, token_refreshes
from sync_beds24.services.connection_state import ConnectionStatus, transition
from sync_beds24.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

READ = "read"
WRITE = "write"

REJECTED_STATUSES = (400, 401, 403)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: Optional[datetime]
    source: str

    def is_usable(self, now: datetime, buffer: timedelta) -> bool:
        """A token without a known expiry is usable; others must outlive the buffer."""
        return self.expires_at is None or now + buffer < self.expires_at


@dataclass(frozen=True)
class InviteGrant:
    """Result of exchanging a Beds24 invite code."""

    token: str
    expires_in: int
    refresh_token: str


TokenProvider = Callable[[], Optional[IssuedToken]]


def _service_expiry(data: dict[str, Any]) -> Optional[datetime]:
    """Expiry of a token-service reply; timestamps without an offset are UTC."""
    if data.get("expiresAt"):
        expires_at = date_parser.isoparse(str(data["expiresAt"]))
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at
    if data.get("expiresIn") is not None:
        return utc_now() + timedelta(seconds=int(data["expiresIn"]))
    return None


def _auth_get(path: str, headers: dict[str, str], base_url: str) -> dict[str, Any]:
    url = f"{base_url}{path}"
    try:
        response = requests.get(
            url,
            headers={"Accept": "application/json", **headers},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.warning("beds24_auth_request_failed", path=path, error=str(e))
        raise TransientNetworkError(f"Beds24 {path} unreachable: {e}")

    if response.status_code in REJECTED_STATUSES:
        logger.error("beds24_auth_rejected", path=path, status_code=response.status_code)
        raise AuthenticationError(
            f"Beds24 rejected credentials at {path}",
            details={"status_code": response.status_code},
        )
    if not response.ok:
        raise ProviderError(response.status_code, response.text, endpoint=path)

    return dict(response.json())


def request_token_refresh(refresh_token: str, base_url: str = BEDS24_BASE_URL) -> tuple[str, int]:
    """
    Exchange a refresh token for a new access token.

    Args:
        refresh_token (str): Long-lived Beds24 refresh token.
        base_url (str): Beds24 API root.

    Returns:
        tuple[str, int]: Access token and its lifetime in seconds.

    Raises:
        AuthenticationError: If Beds24 rejects the refresh token.
    """
    data = _auth_get("/authentication/token", {"refreshToken": refresh_token}, base_url)
    token = data.get("token")
    if not isinstance(token, str) or not token:
        raise AuthenticationError("No token in Beds24 refresh response")
    return token, int(data.get("expiresIn", 86400))


def exchange_invite_code(
    code: str,
    device_name: Optional[str] = None,
    base_url: str = BEDS24_BASE_URL,
) -> InviteGrant:
    """
    Exchange a one-time Beds24 invite code for an access and refresh token.

    Args:
        code (str): Invite code generated in the Beds24 console.
        device_name (Optional[str]): Label Beds24 shows next to the refresh token.
        base_url (str): Beds24 API root.

    Returns:
        InviteGrant: Access token, lifetime and refresh token.

    Raises:
        AuthenticationError: If the code is invalid, used or expired.
    """
    headers = {"code": code}
    if device_name:
        headers["deviceName"] = device_name

    logger.info("beds24_invite_exchange_started", device_name=device_name)
    data = _auth_get("/authentication/setup", headers, base_url)

    token = data.get("token")
    refresh_token = data.get("refreshToken")
    if not isinstance(token, str) or not isinstance(refresh_token, str):
        raise AuthenticationError("Beds24 setup response is missing token or refreshToken")

    return InviteGrant(
        token=token,
        expires_in=int(data.get("expiresIn", 86400)),
        refresh_token=refresh_token,
    )


class StaticTokenProvider:
    """Long-lived read token from configuration."""

    source = "static_config"

    def __init__(self, token: Optional[str] = BEDS24_READ_TOKEN):
        self.token = token

    def __call__(self) -> Optional[IssuedToken]:
        if not self.token:
            return None
        return IssuedToken(token=self.token, expires_at=None, source=self.source)


class TokenServiceProvider:
    """
    Shared token-issuing service used by other platform components.

    Any failure of the service is logged and treated as "not available" so the
    chain can fall through to the refresh-token exchange.
    """

    source = "token_service"

    def __init__(
        self,
        token_class: str,
        connection_id: Optional[UUID] = None,
        url: Optional[str] = BEDS24_TOKEN_SERVICE_URL,
        api_key: Optional[str] = BEDS24_TOKEN_SERVICE_KEY,
    ):
        self.token_class = token_class
        self.connection_id = connection_id
        self.url = url
        self.api_key = api_key

    def __call__(self) -> Optional[IssuedToken]:
        if not self.url:
            return None

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "action": "get_token",
            "tokenType": self.token_class,
            "connectionId": str(self.connection_id) if self.connection_id else None,
        }

        try:
            response = requests.post(
                self.url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT_SECONDS
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("token_service_unavailable", token_class=self.token_class, error=str(e))
            token_refreshes.labels(source=self.source, status="failure").inc()
            return None

        token = data.get("token")
        if not isinstance(token, str) or not token:
            logger.warning("token_service_returned_no_token", token_class=self.token_class)
            return None

        try:
            expires_at = _service_expiry(data)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning(
                "token_service_bad_expiry",
                token_class=self.token_class,
                expires_at=data.get("expiresAt"),
                error=str(e),
            )
            token_refreshes.labels(source=self.source, status="failure").inc()
            return None

        return IssuedToken(token=token, expires_at=expires_at, source=self.source)


class RefreshTokenProvider:
    """
    Refresh-token exchange backed by the credential store.

    With a connection, the stored access token is reused while it outlives
    the buffer; otherwise the stored refresh token is exchanged and the new
    access token is written back together with the connection status. Without
    a connection, the refresh token from configuration is exchanged and
    nothing is persisted. force=True skips the stored access token so the
    refresh token is exercised on every call.
    """

    source = "refresh_token"

    def __init__(
        self,
        connection_id: Optional[UUID] = None,
        engine: Optional[Engine] = None,
        refresh_token: Optional[str] = BEDS24_WRITE_REFRESH_TOKEN,
        base_url: str = BEDS24_BASE_URL,
        buffer_seconds: int = TOKEN_EXPIRY_BUFFER_SECONDS,
        force: bool = False,
    ):
        self.connection_id = connection_id
        self.engine = engine or default_engine
        self.refresh_token = refresh_token
        self.base_url = base_url
        self.buffer = timedelta(seconds=buffer_seconds)
        self.force = force

    def __call__(self) -> Optional[IssuedToken]:
        if self.connection_id is None:
            if not self.refresh_token:
                return None
            token, expires_in = request_token_refresh(self.refresh_token, self.base_url)
            return IssuedToken(
                token=token,
                expires_at=utc_now() + timedelta(seconds=expires_in),
                source=self.source,
            )

        with self.engine.connect() as conn:
            creds = get_connection_credentials(conn, self.connection_id)

        if not creds or not creds.get("refresh_token_encrypted"):
            return None

        status = creds["status"]
        if status in (ConnectionStatus.ERROR.value, ConnectionStatus.DISCONNECTED.value):
            raise AuthenticationError(
                f"Connection {self.connection_id} is in {status} state and needs re-authorization"
            )

        now = utc_now()
        stored_expiry = creds.get("token_expires_at")
        if (
            not self.force
            and creds.get("access_token_encrypted")
            and stored_expiry
            and now + self.buffer < stored_expiry
        ):
            return IssuedToken(
                token=decrypt_token(creds["access_token_encrypted"]),
                expires_at=stored_expiry,
                source="credential_store",
            )

        return self._exchange(creds, status)

    def _exchange(self, creds: dict[str, Any], status: str) -> IssuedToken:
        refresh_token = decrypt_token(creds["refresh_token_encrypted"])
        try:
            token, expires_in = request_token_refresh(refresh_token, self.base_url)
        except AuthenticationError as e:
            token_refreshes.labels(source=self.source, status="failure").inc()
            with self.engine.begin() as conn:
                update_connection_status(
                    conn, self.connection_id, ConnectionStatus.ERROR.value, last_error=e.message
                )
            logger.error("token_refresh_rejected", connection_id=str(self.connection_id))
            raise

        expires_at = utc_now() + timedelta(seconds=expires_in)
        target = transition(status, ConnectionStatus.ACTIVE.value)

        with self.engine.begin() as conn:
            store_connection_tokens(
                conn,
                self.connection_id,
                access_token_encrypted=encrypt_token(token),
                token_expires_at=expires_at,
                status=target.value,
            )

        logger.info(
            "token_refreshed",
            connection_id=str(self.connection_id),
            previous_status=status,
            expires_at=expires_at.isoformat(),
        )
        return IssuedToken(token=token, expires_at=expires_at, source=self.source)


class TokenManager:
    """
    Supplies a valid read or write token for one invocation.

    Example:
        >>> tokens = TokenManager.for_connection(connection_id, cache=TokenCache())
        >>> tokens.get_write_token()
        'eyJ...'
    """

    def __init__(
        self,
        read_providers: list[TokenProvider],
        write_providers: list[TokenProvider],
        cache: Optional[TokenCache] = None,
        namespace: str = "default",
        buffer_seconds: int = TOKEN_EXPIRY_BUFFER_SECONDS,
    ):
        self.chains = {READ: read_providers, WRITE: write_providers}
        self.cache = cache if cache is not None else TokenCache(buffer_seconds=buffer_seconds)
        self.namespace = namespace
        self.buffer = timedelta(seconds=buffer_seconds)

    @classmethod
    def for_connection(
        cls,
        connection_id: Optional[UUID] = None,
        engine: Optional[Engine] = None,
        cache: Optional[TokenCache] = None,
    ) -> "TokenManager":
        """Build the standard provider chains for a connection (or for config-only use)."""
        refresh = RefreshTokenProvider(connection_id=connection_id, engine=engine)
        return cls(
            read_providers=[
                StaticTokenProvider(),
                TokenServiceProvider(READ, connection_id),
                refresh,
            ],
            write_providers=[TokenServiceProvider(WRITE, connection_id), refresh],
            cache=cache,
            namespace=str(connection_id) if connection_id else "default",
        )

    def get_read_token(self) -> str:
        return self.get_token(READ)

    def get_write_token(self) -> str:
        return self.get_token(WRITE)

    def get_token(self, token_class: str) -> str:
        """
        Resolve a token of the given class.

        Raises:
            ConfigurationError: If no provider in the chain is configured.
            AuthenticationError: If Beds24 rejected the stored credentials.
        """
        key = (self.namespace, token_class)
        cached = self.cache.get(key)
        if cached:
            token_cache_hits.labels(token_class=token_class).inc()
            return cached
        token_cache_misses.labels(token_class=token_class).inc()

        now = utc_now()
        for provider in self.chains[token_class]:
            issued = provider()
            if issued is None:
                continue
            if not issued.is_usable(now, self.buffer):
                logger.warning(
                    "token_discarded_near_expiry", source=issued.source, token_class=token_class
                )
                continue

            self.cache.set(key, issued.token, issued.expires_at)
            token_refreshes.labels(source=issued.source, status="success").inc()
            logger.debug("token_resolved", source=issued.source, token_class=token_class)
            return issued.token

        raise ConfigurationError(
            f"No Beds24 {token_class} token available: configure a read token, "
            "a token service or a refresh token"
        )

    def invalidate(self, token_class: Optional[str] = None) -> None:
        """Drop cached tokens after Beds24 rejected one."""
        for cls_name in [token_class] if token_class else [READ, WRITE]:
            self.cache.invalidate((self.namespace, cls_name))
