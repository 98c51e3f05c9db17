from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from originator.core.settings import settings
from originator.core.tenant import resolve_tenant_id


def tenant_rate_key(request: Request) -> str:
    """Rate-limit bucket ``<tenant>:<client address>``."""
    tenant = resolve_tenant_id(request.headers.get("x-tenant-id"), request.headers.get("host"))
    return f"{tenant or 'unresolved'}:{get_remote_address(request)}"


limiter = Limiter(
    key_func=tenant_rate_key,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.redis_url,
)

__all__ = ["limiter", "tenant_rate_key"]
