from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from originator.api import deps
from originator.core.errors import http_error_from
from originator.core.permissions import PermissionCode
from originator.db.session import get_db
from originator.models.application import Application
from originator.models.staff_account import StaffAccount
from originator.schemas.application import (
    AllowedStatusesResponse,
    ApplicationDTO,
    ApproveRequest,
    AssignRequest,
    CancelRequest,
    CounterOfferRequest,
    RejectRequest,
    RiskAssessmentRequest,
    StatusChangeRequest,
    StatusHistoryEntryDTO,
    StatusHistoryListResponse,
    StatusOption,
    VerificationChecklistUpdate,
)
from originator.services import application_status, applications, authz

router = APIRouter(prefix="/staff/applications", tags=["staff-applications"])


async def _load_application(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    *,
    for_update: bool = False,
) -> Application:
    application = await applications.get_application(db, ctx, application_id, for_update=for_update)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return application


@router.get(
    "/status-options",
    response_model=list[StatusOption],
    summary="Statuses the current staff member may select",
)
async def list_status_options(
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.APPLICATION_VIEW)),
) -> list[StatusOption]:
    actor = authz.actor_for_staff(current_staff)
    return [StatusOption(**option) for option in application_status.get_status_options_for_user(actor)]


@router.get("/{application_id}", response_model=ApplicationDTO, summary="Get application detail")
async def get_application(
    application_id: UUID,
    _: object = Depends(deps.require_permission(PermissionCode.APPLICATION_VIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_application(db, ctx, application_id)
    return ApplicationDTO.model_validate(application)


@router.get(
    "/{application_id}/allowed-statuses",
    response_model=AllowedStatusesResponse,
    summary="Next statuses reachable by the current staff member",
)
async def get_allowed_statuses(
    application_id: UUID,
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.APPLICATION_VIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> AllowedStatusesResponse:
    application = await _load_application(db, ctx, application_id)
    actor = authz.actor_for_staff(current_staff)
    allowed = application_status.get_allowed_next_statuses(application, actor)
    return AllowedStatusesResponse(
        current_status=application.status,
        is_terminal=application_status.is_terminal_state(application),
        is_stale=application_status.is_stale(application),
        allowed=[StatusOption(value=item, label=item.label) for item in allowed],
    )


@router.get(
    "/{application_id}/history",
    response_model=StatusHistoryListResponse,
    summary="Status history of an application",
)
async def get_history(
    application_id: UUID,
    _: object = Depends(deps.require_permission(PermissionCode.APPLICATION_VIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> StatusHistoryListResponse:
    await _load_application(db, ctx, application_id)
    entries = await applications.get_status_history(db, ctx, application_id)
    return StatusHistoryListResponse(
        items=[StatusHistoryEntryDTO.model_validate(entry) for entry in entries],
        total=len(entries),
    )


@router.post(
    "/{application_id}/status",
    response_model=ApplicationDTO,
    summary="Change application status",
)
async def change_status(
    application_id: UUID,
    payload: StatusChangeRequest,
    current_staff: StaffAccount = Depends(deps.get_current_staff),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_application(db, ctx, application_id, for_update=True)
    try:
        application = await application_status.change_status(
            db,
            ctx,
            application,
            payload.status,
            authz.actor_for_staff(current_staff),
            reason=payload.reason,
            metadata=payload.metadata,
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)


@router.post("/{application_id}/approve", response_model=ApplicationDTO, summary="Approve an application")
async def approve_application(
    application_id: UUID,
    payload: ApproveRequest,
    current_staff: StaffAccount = Depends(deps.get_current_staff),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_application(db, ctx, application_id, for_update=True)
    try:
        application = await applications.approve(
            db,
            ctx,
            application,
            authz.actor_for_staff(current_staff),
            amount=payload.amount,
            term_months=payload.term_months,
            interest_rate=payload.interest_rate,
            notes=payload.notes,
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)


@router.post("/{application_id}/reject", response_model=ApplicationDTO, summary="Reject an application")
async def reject_application(
    application_id: UUID,
    payload: RejectRequest,
    current_staff: StaffAccount = Depends(deps.get_current_staff),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_application(db, ctx, application_id, for_update=True)
    try:
        application = await applications.reject(
            db,
            ctx,
            application,
            authz.actor_for_staff(current_staff),
            reason=payload.reason,
            notes=payload.notes,
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)


@router.post("/{application_id}/cancel", response_model=ApplicationDTO, summary="Cancel an application")
async def cancel_application(
    application_id: UUID,
    payload: CancelRequest,
    current_staff: StaffAccount = Depends(deps.get_current_staff),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_application(db, ctx, application_id, for_update=True)
    try:
        application = await applications.cancel(
            db, ctx, application, authz.actor_for_staff(current_staff), reason=payload.reason
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)


@router.post("/{application_id}/assign", response_model=ApplicationDTO, summary="Assign an application")
async def assign_application(
    application_id: UUID,
    payload: AssignRequest,
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.APPLICATION_ASSIGN)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_application(db, ctx, application_id, for_update=True)
    result = await db.execute(
        select(StaffAccount).where(
            StaffAccount.id == payload.assignee_id,
            StaffAccount.tenant_id == ctx.tenant_id,
        )
    )
    assignee = result.scalar_one_or_none()
    if not assignee or not assignee.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignee not found")
    try:
        application = await applications.assign(
            db, ctx, application, assignee, authz.actor_for_staff(current_staff)
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)


@router.post(
    "/{application_id}/counter-offer",
    response_model=ApplicationDTO,
    summary="Send a counter offer to the applicant",
)
async def send_counter_offer(
    application_id: UUID,
    payload: CounterOfferRequest,
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.APPLICATION_COUNTER_OFFER)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_application(db, ctx, application_id, for_update=True)
    try:
        application = await applications.send_counter_offer(
            db,
            ctx,
            application,
            authz.actor_for_staff(current_staff),
            payload.model_dump(include={"amount", "term_months", "interest_rate"}),
            reason=payload.reason,
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)


@router.patch(
    "/{application_id}/verification-checklist",
    response_model=ApplicationDTO,
    summary="Merge verification checklist flags",
)
async def update_verification_checklist(
    application_id: UUID,
    payload: VerificationChecklistUpdate,
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.APPLICATION_STATUS_CHANGE)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_application(db, ctx, application_id, for_update=True)
    try:
        application = await applications.update_verification_checklist(
            db, ctx, application, payload.checks, actor=authz.actor_for_staff(current_staff)
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)


@router.put("/{application_id}/risk", response_model=ApplicationDTO, summary="Set risk assessment")
async def set_risk_assessment(
    application_id: UUID,
    payload: RiskAssessmentRequest,
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.APPLICATION_RISK_MANAGE)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_application(db, ctx, application_id, for_update=True)
    try:
        application = await applications.set_risk_assessment(
            db,
            ctx,
            application,
            payload.level,
            payload.data,
            actor=authz.actor_for_staff(current_staff),
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)
