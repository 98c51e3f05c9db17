from __future__ import annotations

import re
from typing import Iterable

from originator.core.settings import settings


TENANT_ID_MIN_LENGTH = 2
TENANT_ID_MAX_LENGTH = 64
_TENANT_ID_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def normalize_tenant_id(value: str) -> str:
    cleaned = value.strip().lower()
    if len(cleaned) < TENANT_ID_MIN_LENGTH or len(cleaned) > TENANT_ID_MAX_LENGTH:
        raise ValueError(
            f"tenant_id must be between {TENANT_ID_MIN_LENGTH} and {TENANT_ID_MAX_LENGTH} characters"
        )
    if not _TENANT_ID_RE.fullmatch(cleaned):
        raise ValueError(
            "tenant_id may only contain lowercase letters, numbers, '-' and '_'"
        )
    return cleaned


def is_valid_tenant_id(value: str | None) -> bool:
    if not value:
        return False
    try:
        normalize_tenant_id(value)
    except ValueError:
        return False
    return True


def tenant_from_host(host: str | None, allowed_hosts: Iterable[str] = ()) -> str | None:
    """Leading label of ``lender.example.com``; None for bare or unlisted hosts."""
    hostname = (host or "").split(":")[0].lower()
    allowed = {h.lower() for h in allowed_hosts}
    if allowed and hostname not in allowed:
        return None
    parts = hostname.split(".")
    if len(parts) < 3:
        return None
    return parts[0]


def resolve_tenant_id(header: str | None, host: str | None) -> str | None:
    """Tenant for a request, or None when multi-tenant resolution fails.

    Single mode always answers with the configured default. In multi mode the
    ``X-Tenant-ID`` header wins over the subdomain.
    """
    if settings.tenancy_mode != "multi":
        return settings.default_tenant_id
    candidate = header or tenant_from_host(host, settings.allowed_tenant_hosts)
    if not is_valid_tenant_id(candidate):
        return None
    return normalize_tenant_id(candidate)
