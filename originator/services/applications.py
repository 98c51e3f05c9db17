from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from originator.api import deps
from originator.core.permissions import PermissionCode
from originator.models.applicant_account import ApplicantAccount
from originator.models.application import Application
from originator.models.application_status_history import ApplicationStatusHistory
from originator.models.staff_account import StaffAccount
from originator.schemas.application import ApplicationDecision, ApplicationStatus, RiskLevel
from originator.services import application_status, authz, loan_calculation
from originator.services.application_status import InvalidCounterOffer, PermissionDenied
from originator.services.audit import record_actor_audit


logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require(actor: authz.Actor, permission_code: PermissionCode) -> None:
    if not authz.has_permission(actor, permission_code):
        raise PermissionDenied(
            code="permission_denied",
            message="No tienes permiso para realizar esta acción.",
            details={"required_permission": permission_code.value},
        )


async def get_application(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID | str,
    *,
    for_update: bool = False,
    person_id: UUID | None = None,
) -> Application | None:
    stmt = select(Application).where(
        Application.tenant_id == ctx.tenant_id,
        Application.id == application_id,
    )
    if person_id is not None:
        stmt = stmt.where(Application.person_id == person_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_status_history(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID | str,
) -> list[ApplicationStatusHistory]:
    stmt = (
        select(ApplicationStatusHistory)
        .where(
            ApplicationStatusHistory.tenant_id == ctx.tenant_id,
            ApplicationStatusHistory.application_id == application_id,
        )
        .order_by(ApplicationStatusHistory.created_at.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def submit(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    actor: authz.Actor,
) -> Application:
    state = application_status.snapshot(application)
    application.submitted_at = _now()
    return await application_status.transition(
        db, ctx, application, ApplicationStatus.SUBMITTED, actor, state=state
    )


async def approve(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    actor: authz.Actor,
    *,
    amount: Decimal | None = None,
    term_months: int | None = None,
    interest_rate: Decimal | None = None,
    notes: str | None = None,
) -> Application:
    """Record the decision and move to APPROVED; unspecified terms fall back to the requested ones."""
    application_status.ensure_transition_allowed(application, ApplicationStatus.APPROVED, actor)
    state = application_status.snapshot(application)
    approved_amount = amount if amount is not None else application.requested_amount
    approved_term = term_months if term_months is not None else application.requested_term_months
    approved_rate = interest_rate if interest_rate is not None else application.interest_rate

    application.decision = ApplicationDecision.APPROVED.value
    application.decision_at = _now()
    application.decision_by = actor.id
    application.decision_notes = notes
    application.approved_amount = approved_amount
    application.approved_term_months = approved_term
    application.approved_interest_rate = approved_rate
    if approved_rate is not None:
        application.approved_monthly_payment = loan_calculation.monthly_payment(
            approved_amount, approved_rate, approved_term
        )
    return await application_status.transition(
        db, ctx, application, ApplicationStatus.APPROVED, actor, reason=notes, state=state
    )


async def reject(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    actor: authz.Actor,
    *,
    reason: str,
    notes: str | None = None,
) -> Application:
    application_status.ensure_transition_allowed(application, ApplicationStatus.REJECTED, actor)
    state = application_status.snapshot(application)
    application.decision = ApplicationDecision.REJECTED.value
    application.decision_at = _now()
    application.decision_by = actor.id
    application.decision_notes = notes
    application.rejection_reason = reason
    return await application_status.transition(
        db, ctx, application, ApplicationStatus.REJECTED, actor, reason=reason, state=state
    )


async def cancel(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    actor: authz.Actor,
    *,
    reason: str | None = None,
) -> Application:
    return await application_status.change_status(
        db, ctx, application, ApplicationStatus.CANCELLED, actor, reason=reason
    )


def _build_counter_offer(application: Application, offer: dict[str, Any], reason: str | None) -> dict[str, Any]:
    amount = offer.get("amount")
    term_months = offer.get("term_months")
    if amount is None or term_months is None:
        raise InvalidCounterOffer(
            code="invalid_counter_offer",
            message="La contraoferta debe incluir monto y plazo.",
            details={"missing": [key for key in ("amount", "term_months") if offer.get(key) is None]},
        )
    amount = loan_calculation.as_decimal(amount)
    term_months = int(term_months)
    if amount <= 0 or term_months <= 0:
        raise InvalidCounterOffer(
            code="invalid_counter_offer",
            message="El monto y el plazo de la contraoferta deben ser positivos.",
            details={"amount": str(amount), "term_months": term_months},
        )
    rate = offer.get("interest_rate")
    if rate is None:
        rate = application.interest_rate
    payment = loan_calculation.monthly_payment(amount, rate or 0, term_months)
    total = loan_calculation.total_payable(amount, rate or 0, term_months)
    return {
        "amount": str(amount),
        "term_months": term_months,
        "interest_rate": str(rate) if rate is not None else None,
        "monthly_payment": str(payment),
        "total_amount": str(total),
        "reason": reason,
        "offered_at": _now().isoformat(),
    }


async def send_counter_offer(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    actor: authz.Actor,
    offer: dict[str, Any],
    *,
    reason: str | None = None,
) -> Application:
    _require(actor, PermissionCode.APPLICATION_COUNTER_OFFER)
    application_status.ensure_transition_allowed(application, ApplicationStatus.COUNTER_OFFERED, actor)
    payload = _build_counter_offer(application, offer, reason)
    state = application_status.snapshot(application)
    application.decision = ApplicationDecision.COUNTER_OFFER.value
    application.decision_at = _now()
    application.decision_by = actor.id
    application.counter_offer = payload
    application.counter_offer_accepted = None
    application.counter_offer_responded_at = None
    return await application_status.transition(
        db,
        ctx,
        application,
        ApplicationStatus.COUNTER_OFFERED,
        actor,
        reason=reason,
        metadata={"counter_offer": payload},
        state=state,
    )


async def respond_to_counter_offer(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    account: ApplicantAccount,
    *,
    accepted: bool,
) -> Application:
    """Record the applicant's answer; acceptance copies the offer into the approved terms.

    The approval tier is not re-checked on acceptance because it was exercised by
    the staff member who sent the offer. The matrix still is.
    """
    actor = authz.actor_for_applicant(account)
    _require(actor, PermissionCode.COUNTER_OFFER_RESPOND)
    if application.status != ApplicationStatus.COUNTER_OFFERED.value or not application.has_counter_offer:
        raise InvalidCounterOffer(
            code="invalid_counter_offer",
            message="No hay una contraoferta pendiente para esta solicitud.",
            details={"status": application.status},
        )
    state = application_status.snapshot(application)
    offer = dict(application.counter_offer or {})
    application.counter_offer_accepted = accepted
    application.counter_offer_responded_at = _now()

    if not accepted:
        db.add(application)
        record_actor_audit(
            db,
            ctx,
            actor,
            action="application.counter_offer_declined",
            resource_type="application",
            resource_id=str(application.id),
            old_value={"counter_offer_accepted": None},
            new_value={"counter_offer_accepted": False},
        )
        await application_status.persist(db, application, state)
        return application

    application.approved_amount = loan_calculation.as_decimal(offer.get("amount") or application.requested_amount)
    application.approved_term_months = int(offer.get("term_months") or application.requested_term_months)
    rate = offer.get("interest_rate")
    application.approved_interest_rate = (
        loan_calculation.as_decimal(rate) if rate is not None else application.interest_rate
    )
    payment = offer.get("monthly_payment")
    application.approved_monthly_payment = loan_calculation.as_decimal(payment) if payment is not None else None
    return await application_status.transition(
        db,
        ctx,
        application,
        ApplicationStatus.APPROVED,
        actor,
        reason="Contraoferta aceptada",
        metadata={"counter_offer_accepted": True},
        check_permission=False,
        state=state,
    )


async def assign(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    assignee: StaffAccount,
    actor: authz.Actor,
) -> Application:
    _require(actor, PermissionCode.APPLICATION_ASSIGN)
    state = application_status.snapshot(application)
    old_assignee = application.assigned_to
    application.assigned_to = assignee.id
    application.assigned_by = actor.id
    application.assigned_at = _now()
    db.add(application)
    record_actor_audit(
        db,
        ctx,
        actor,
        action="application.assigned",
        resource_type="application",
        resource_id=str(application.id),
        old_value={"assigned_to": old_assignee},
        new_value={"assigned_to": assignee.id},
    )
    await application_status.persist(db, application, state)
    logger.info("Application %s assigned to %s", application.id, assignee.id)
    return application


async def mark_synced(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    *,
    external_id: str,
    system: str,
    sync_data: dict[str, Any] | None = None,
) -> Application:
    state = application_status.snapshot(application)
    application.synced_at = _now()
    application.external_id = external_id
    application.external_system = system
    application.sync_data = sync_data
    return await application_status.enter_synced(
        db,
        ctx,
        application,
        metadata={"external_id": external_id, "external_system": system},
        state=state,
    )


async def update_verification_checklist(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    checks: dict[str, bool],
    *,
    actor: authz.Actor | None = None,
) -> Application:
    state = application_status.snapshot(application)
    current = dict(application.verification_checklist or {})
    merged = {**current, **{key: bool(value) for key, value in checks.items()}}
    application.verification_checklist = merged
    db.add(application)
    actor = actor or authz.SYSTEM_ACTOR
    record_actor_audit(
        db,
        ctx,
        actor,
        action="application.verification_checklist_updated",
        resource_type="application",
        resource_id=str(application.id),
        old_value=current,
        new_value=merged,
    )
    await application_status.persist(db, application, state)
    return application


async def set_risk_assessment(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    level: RiskLevel | str,
    data: dict[str, Any] | None = None,
    *,
    actor: authz.Actor | None = None,
) -> Application:
    risk_level = level if isinstance(level, RiskLevel) else RiskLevel(level)
    state = application_status.snapshot(application)
    old_value = {"risk_level": application.risk_level, "risk_data": application.risk_data}
    application.risk_level = risk_level.value
    application.risk_data = data
    db.add(application)
    actor = actor or authz.SYSTEM_ACTOR
    record_actor_audit(
        db,
        ctx,
        actor,
        action="application.risk_assessed",
        resource_type="application",
        resource_id=str(application.id),
        old_value=old_value,
        new_value={"risk_level": risk_level.value, "risk_data": data},
    )
    await application_status.persist(db, application, state)
    return application
