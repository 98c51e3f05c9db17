from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from originator.core.context import set_actor_id, set_tenant_id
from originator.core.permissions import PermissionCode
from originator.core.security import decode_token
from originator.core.tenant import resolve_tenant_id
from originator.db.session import get_db
from originator.models.applicant_account import ApplicantAccount
from originator.models.staff_account import StaffAccount
from originator.services import authz


@dataclass(slots=True)
class TenantContext:
    tenant_id: str


bearer_scheme = HTTPBearer(auto_error=False)


async def get_tenant_context(
    request: Request,
    tenant_id: str | None = Header(default=None, alias="X-Tenant-ID"),
) -> TenantContext:
    resolved = resolve_tenant_id(tenant_id, request.headers.get("host"))
    if resolved is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant resolution failed: provide X-Tenant-ID header or subdomain",
        )
    set_tenant_id(resolved)
    return TenantContext(tenant_id=resolved)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


def _decode_bearer(credentials: HTTPAuthorizationCredentials | None, actor: str) -> dict:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = decode_token(credentials.credentials, expected_actor=actor)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    if not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return payload


def _check_token_tenant(payload: dict, ctx: TenantContext) -> None:
    token_tenant = payload.get("tid")
    if token_tenant and token_tenant != ctx.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token was issued for another tenant",
        )


async def get_current_staff(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
    ctx: TenantContext = Depends(get_tenant_context),
) -> StaffAccount:
    payload = _decode_bearer(credentials, "staff")
    _check_token_tenant(payload, ctx)
    stmt = select(StaffAccount).where(
        StaffAccount.id == payload["sub"],
        StaffAccount.tenant_id == ctx.tenant_id,
    )
    result = await db.execute(stmt)
    staff = result.scalar_one_or_none()
    if not staff:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Staff account not found")
    if not staff.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive staff account")
    staff.last_active_at = datetime.now(timezone.utc)
    set_actor_id(str(staff.id))
    return staff


async def get_current_applicant(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
    ctx: TenantContext = Depends(get_tenant_context),
) -> ApplicantAccount:
    payload = _decode_bearer(credentials, "applicant")
    _check_token_tenant(payload, ctx)
    stmt = select(ApplicantAccount).where(
        ApplicantAccount.id == payload["sub"],
        ApplicantAccount.tenant_id == ctx.tenant_id,
    )
    result = await db.execute(stmt)
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account not found")
    if not account.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive account")
    account.last_active_at = datetime.now(timezone.utc)
    set_actor_id(str(account.id))
    return account


def require_permission(permission_code: PermissionCode | str):
    async def dependency(
        current_staff: StaffAccount = Depends(get_current_staff),
        ctx: TenantContext = Depends(get_tenant_context),
    ) -> StaffAccount:
        if not ctx.tenant_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tenant context missing")
        if not authz.has_permission(authz.actor_for_staff(current_staff), permission_code):
            target = permission_code.value if isinstance(permission_code, PermissionCode) else str(permission_code)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {target}",
            )
        return current_staff

    return dependency
