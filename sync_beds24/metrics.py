"""
Prometheus metrics for Beds24 sync runs, API calls and token handling.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from sync_beds24.metrics import poll_duration, records_synced
    >>> with poll_duration.labels(entity_type="bookings").time():
    ...     bookings = client.get_bookings(property_id=1234)
    ...     records_synced.labels(entity_type="bookings").inc(len(bookings))
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Poll / Sync Metrics
# =============================================================================

poll_total = Counter(
    "beds24_polls_total",
    "Total number of Beds24 polling operations (success and failure)",
    ["entity_type", "status"],
)
"""
Counter for polling operations.

Labels:
    entity_type: properties, calendar, bookings
    status: success or failure
"""

poll_duration = Histogram(
    "beds24_poll_duration_seconds",
    "Duration of Beds24 polling operations in seconds",
    ["entity_type"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, float("inf")),
)

records_synced = Counter(
    "beds24_records_synced_total",
    "Total number of records synced between Beds24 and the database",
    ["entity_type"],
)

sync_runs = Counter(
    "beds24_sync_runs_total",
    "Sync runs by type, direction and terminal status",
    ["sync_type", "direction", "status"],
)
"""
Counter for finished sync log rows.

Labels:
    sync_type: properties, inventory, bookings, rates, bootstrap
    direction: pull or push
    status: completed or failed
"""

# =============================================================================
# API Metrics
# =============================================================================

api_requests = Counter(
    "beds24_api_requests_total",
    "Total Beds24 API requests made",
    ["endpoint", "status_code"],
)
"""
Counter for API requests to Beds24.

Labels:
    endpoint: API endpoint path (e.g. "/bookings", "/inventory/rooms/calendar")
    status_code: HTTP status code, or "error" when no response was received
"""

api_latency = Histogram(
    "beds24_api_latency_seconds",
    "Beds24 API request latency in seconds",
    ["endpoint"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

api_credits_remaining = Gauge(
    "beds24_api_credits_remaining",
    "Credits left in the current five-minute window, as last reported by Beds24",
)

rate_limit_hits = Counter(
    "beds24_rate_limit_hits_total",
    "Calls that ended with the credit budget at or below the backoff threshold",
)

# =============================================================================
# Token Metrics
# =============================================================================

token_cache_hits = Counter(
    "beds24_token_cache_hits_total",
    "Total number of token cache hits",
    ["token_class"],
)
"""Counter for token cache hits (cache held a token valid past the buffer)."""

token_cache_misses = Counter(
    "beds24_token_cache_misses_total",
    "Total number of token cache misses",
    ["token_class"],
)

token_refreshes = Counter(
    "beds24_token_refreshes_total",
    "Total number of tokens obtained from a provider in the chain",
    ["source", "status"],
)
"""
Counter for token acquisitions.

Labels:
    source: static_config, token_service, refresh_token
    status: success or failure
"""

# =============================================================================
# Webhook / Keep-alive Metrics
# =============================================================================

webhooks_received = Counter(
    "beds24_webhooks_received_total",
    "Inbound Beds24 webhooks by type and outcome",
    ["webhook_type", "outcome"],
)
"""
Counter for inbound webhooks.

Labels:
    webhook_type: booking or the detected payload kind
    outcome: accepted, ignored, rejected or failed
"""

keep_alive_refreshes = Counter(
    "beds24_keep_alive_refreshes_total",
    "Refresh token exercises performed by the keep-alive job",
    ["status"],
)
