from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from originator.api import deps
from originator.core.errors import http_error_from
from originator.db.session import get_db
from originator.models.applicant_account import ApplicantAccount
from originator.models.application import Application
from originator.schemas.application import (
    ApplicationDTO,
    CancelRequest,
    CounterOfferResponseRequest,
)
from originator.services import application_status, applications, authz

router = APIRouter(prefix="/applicant/applications", tags=["applicant-applications"])


async def _load_own_application(
    db: AsyncSession,
    ctx: deps.TenantContext,
    account: ApplicantAccount,
    application_id: UUID,
) -> Application:
    if account.person_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    application = await applications.get_application(
        db, ctx, application_id, for_update=True, person_id=account.person_id
    )
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return application


@router.post("/{application_id}/submit", response_model=ApplicationDTO, summary="Submit own application")
async def submit_application(
    application_id: UUID,
    account: ApplicantAccount = Depends(deps.get_current_applicant),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_own_application(db, ctx, account, application_id)
    try:
        application = await applications.submit(db, ctx, application, authz.actor_for_applicant(account))
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)


@router.post("/{application_id}/cancel", response_model=ApplicationDTO, summary="Cancel own application")
async def cancel_application(
    application_id: UUID,
    payload: CancelRequest,
    account: ApplicantAccount = Depends(deps.get_current_applicant),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_own_application(db, ctx, account, application_id)
    try:
        application = await applications.cancel(
            db, ctx, application, authz.actor_for_applicant(account), reason=payload.reason
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)


@router.post(
    "/{application_id}/counter-offer/response",
    response_model=ApplicationDTO,
    summary="Accept or decline a pending counter offer",
)
async def respond_to_counter_offer(
    application_id: UUID,
    payload: CounterOfferResponseRequest,
    account: ApplicantAccount = Depends(deps.get_current_applicant),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await _load_own_application(db, ctx, account, application_id)
    try:
        application = await applications.respond_to_counter_offer(
            db, ctx, application, account, accepted=payload.accepted
        )
    except application_status.StatusTransitionError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return ApplicationDTO.model_validate(application)
