"""Redaction of secrets and guest PII before payloads are written to audit entries."""

from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from sync_beds24.config import LOG_REDACT_KEYS

REDACTED = "[REDACTED]"

_BEARER_RE = re.compile(r"(?i)bearer\s+[A-Za-z0-9._~+/=-]+")


def _is_sensitive(key: str, keys: Iterable[str]) -> bool:
    lowered = key.lower()
    return any(k.lower() in lowered for k in keys)


def redact(value: Any, keys: Optional[Iterable[str]] = None) -> Any:
    """
    Return a copy of ``value`` with sensitive entries replaced.

    A dict key is sensitive when it contains any configured key as a
    case-insensitive substring, so ``refreshToken`` and ``guestEmail`` match
    ``token`` and ``email``. Bearer credentials embedded in strings are masked too.

    Args:
        value: Request or response payload (dicts, lists, scalars)
        keys: Override for LOG_REDACT_KEYS

    Returns:
        Redacted copy; the input is not modified
    """
    keys = list(keys) if keys is not None else LOG_REDACT_KEYS

    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(str(k), keys) else redact(v, keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item, keys) for item in value]
    if isinstance(value, str):
        return _BEARER_RE.sub(f"Bearer {REDACTED}", value)
    return value
