from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Mapping

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.exc import StaleDataError

from originator.api import deps
from originator.core.logging import get_audit_logger
from originator.core.settings import settings
from originator.models.application import Application
from originator.models.application_status_history import ApplicationStatusHistory
from originator.schemas.application import ApplicationStatus
from originator.services import authz
from originator.services.audit import record_actor_audit


logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

S = ApplicationStatus

TRANSITIONS: Mapping[ApplicationStatus, frozenset[ApplicationStatus]] = MappingProxyType(
    {
        S.DRAFT: frozenset({S.SUBMITTED, S.CANCELLED}),
        S.SUBMITTED: frozenset({S.IN_REVIEW, S.DOCS_PENDING, S.CANCELLED}),
        S.IN_REVIEW: frozenset(
            {
                S.DOCS_PENDING,
                S.CORRECTIONS_PENDING,
                S.COUNTER_OFFERED,
                S.APPROVED,
                S.REJECTED,
                S.CANCELLED,
            }
        ),
        S.DOCS_PENDING: frozenset({S.IN_REVIEW, S.CORRECTIONS_PENDING, S.CANCELLED}),
        S.CORRECTIONS_PENDING: frozenset({S.IN_REVIEW, S.CANCELLED}),
        S.COUNTER_OFFERED: frozenset({S.IN_REVIEW, S.APPROVED, S.REJECTED, S.CANCELLED}),
        S.APPROVED: frozenset({S.DISBURSED, S.CANCELLED}),
        S.DISBURSED: frozenset({S.ACTIVE}),
        S.ACTIVE: frozenset({S.COMPLETED, S.DEFAULT}),
        S.DEFAULT: frozenset({S.ACTIVE}),
        S.REJECTED: frozenset(),
        S.CANCELLED: frozenset(),
        S.COMPLETED: frozenset(),
        S.SYNCED: frozenset(),
    }
)

TERMINAL_STATUSES = frozenset({S.REJECTED, S.CANCELLED, S.COMPLETED, S.SYNCED})

ACTIVE_STATUSES = frozenset(
    {S.SUBMITTED, S.IN_REVIEW, S.DOCS_PENDING, S.CORRECTIONS_PENDING, S.COUNTER_OFFERED}
)

SYNCABLE_STATUSES = frozenset({S.DISBURSED, S.ACTIVE})

# Statuses that are reached by dedicated workflows, never picked from a list.
_NON_SELECTABLE_STATUSES = frozenset({S.DRAFT, S.SUBMITTED, S.SYNCED})

# Target status -> the only status it may be entered from.
_REQUIRED_PREDECESSOR: Mapping[ApplicationStatus, tuple[frozenset[ApplicationStatus], str]] = MappingProxyType(
    {
        S.DISBURSED: (
            frozenset({S.APPROVED}),
            "Solo las solicitudes aprobadas pueden ser desembolsadas.",
        ),
        S.ACTIVE: (
            frozenset({S.DISBURSED}),
            "Solo las solicitudes desembolsadas pueden marcarse como activas.",
        ),
        S.COMPLETED: (
            frozenset({S.ACTIVE}),
            "Solo las solicitudes activas pueden marcarse como completadas o en mora.",
        ),
        S.DEFAULT: (
            frozenset({S.ACTIVE}),
            "Solo las solicitudes activas pueden marcarse como completadas o en mora.",
        ),
    }
)


@dataclass(frozen=True)
class StatusTransitionError(ValueError):
    code: str
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


class PermissionDenied(StatusTransitionError):
    pass


class InvalidTransition(StatusTransitionError):
    pass


class ConcurrentModification(StatusTransitionError):
    pass


class InvalidCounterOffer(StatusTransitionError):
    pass


def _status(value: ApplicationStatus | str) -> ApplicationStatus:
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError as exc:
        raise InvalidTransition(
            code="invalid_transition",
            message=f"Estado desconocido: '{value}'.",
            details={"status": str(value)},
        ) from exc


def can_transition(current: ApplicationStatus | str, target: ApplicationStatus | str) -> bool:
    try:
        return _status(target) in TRANSITIONS.get(_status(current), frozenset())
    except InvalidTransition:
        return False


def validate_transition(current: ApplicationStatus | str, target: ApplicationStatus | str) -> str | None:
    """Return the reason the move is illegal, or None when it is allowed."""
    current_status = _status(current)
    target_status = _status(target)
    if not can_transition(current_status, target_status):
        return (
            f"No se puede cambiar el estado de '{current_status.value}' a '{target_status.value}'."
        )
    rule = _REQUIRED_PREDECESSOR.get(target_status)
    if rule is not None:
        predecessors, message = rule
        if current_status not in predecessors:
            return message
    return None


def _permission_denied(actor: authz.Actor, target: ApplicationStatus) -> PermissionDenied:
    return PermissionDenied(
        code="permission_denied",
        message="No tienes permiso para cambiar a este estado.",
        details={
            "status": target.value,
            "required_permission": authz.required_permission(target).value,
            "actor_type": actor.actor_type.value,
        },
    )


def _invalid_transition(current: ApplicationStatus, target: ApplicationStatus, message: str) -> InvalidTransition:
    return InvalidTransition(
        code="invalid_transition",
        message=message,
        details={"from_status": current.value, "to_status": target.value},
    )


def snapshot(application: Application) -> dict[str, Any]:
    return {attr.key: getattr(application, attr.key) for attr in sa_inspect(Application).column_attrs}


def restore(application: Application, state: dict[str, Any]) -> None:
    """Put the in-memory application back to ``state`` without marking it dirty."""
    for key, value in state.items():
        set_committed_value(application, key, value)


async def persist(db: AsyncSession, application: Application, state: dict[str, Any]) -> None:
    """Flush the staged unit of work and reload server-side values; on failure roll back and restore ``application``."""
    try:
        await db.flush()
    except StaleDataError as exc:
        await db.rollback()
        restore(application, state)
        logger.warning("Concurrent modification of application %s", application.id)
        raise ConcurrentModification(
            code="concurrent_modification",
            message="La solicitud fue modificada por otra operación. Actualiza e intenta de nuevo.",
            details={"application_id": str(application.id)},
        ) from exc
    except Exception:
        await db.rollback()
        restore(application, state)
        raise
    await db.refresh(application)


def ensure_transition_allowed(
    application: Application,
    new_status: ApplicationStatus | str,
    actor: authz.Actor,
    *,
    check_permission: bool = True,
) -> ApplicationStatus:
    """Permission first, then legality; raises before anything is mutated."""
    target = _status(new_status)
    current = _status(application.status)
    if check_permission and not authz.can_change_to_status(actor, target):
        raise _permission_denied(actor, target)
    error = validate_transition(current, target)
    if error:
        raise _invalid_transition(current, target, error)
    return target


def _apply_side_effects(application: Application, target: ApplicationStatus, now: datetime) -> None:
    if target == S.APPROVED:
        application.approved_at = now
        if application.approved_amount is None:
            application.approved_amount = application.requested_amount
    elif target == S.REJECTED:
        application.rejected_at = now
    elif target == S.DISBURSED:
        application.disbursed_at = now


async def _execute_transition(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    target: ApplicationStatus,
    actor: authz.Actor,
    *,
    reason: str | None,
    metadata: dict[str, Any] | None,
    state: dict[str, Any],
) -> Application:
    old_status = _status(application.status)
    now = datetime.now(timezone.utc)
    application.status = target.value
    application.status_changed_at = now
    application.status_changed_by = actor.id
    application.status_changed_by_type = actor.actor_type.value
    _apply_side_effects(application, target, now)
    db.add(application)
    db.add(
        ApplicationStatusHistory(
            tenant_id=ctx.tenant_id,
            application_id=application.id,
            from_status=old_status.value,
            to_status=target.value,
            changed_by=actor.id,
            changed_by_type=actor.actor_type.value,
            notes=reason,
            transition_metadata=metadata or None,
        )
    )
    record_actor_audit(
        db,
        ctx,
        actor,
        action="application.status_changed",
        resource_type="application",
        resource_id=str(application.id),
        old_value={"status": old_status.value},
        new_value={**(metadata or {}), "status": target.value, "reason": reason},
    )
    await persist(db, application, state)
    audit_logger.info(
        "Application %s status changed %s -> %s",
        application.id,
        old_status.value,
        target.value,
        extra={"event": "application.status_changed"},
    )
    return application


async def transition(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    new_status: ApplicationStatus | str,
    actor: authz.Actor,
    *,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    check_permission: bool = True,
    state: dict[str, Any] | None = None,
) -> Application:
    """Shared path for every status mutation.

    ``state`` is a snapshot taken by lifecycle operations before they staged
    their own fields, so a failed write restores those fields as well.
    """
    if state is None:
        state = snapshot(application)
    try:
        target = ensure_transition_allowed(
            application, new_status, actor, check_permission=check_permission
        )
    except StatusTransitionError:
        restore(application, state)
        raise
    return await _execute_transition(
        db,
        ctx,
        application,
        target,
        actor,
        reason=reason,
        metadata=metadata,
        state=state,
    )


async def change_status(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    new_status: ApplicationStatus | str,
    actor: authz.Actor,
    *,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Application:
    """Check permission, then legality, then apply the change with its history and audit rows.

    Validation failures leave the application untouched. Failures while writing
    roll the session back and restore the in-memory application before the error
    propagates.
    """
    return await transition(db, ctx, application, new_status, actor, reason=reason, metadata=metadata)


async def enter_synced(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: Application,
    *,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    state: dict[str, Any] | None = None,
) -> Application:
    """SYNCED sits outside the matrix and is only entered after disbursement."""
    if state is None:
        state = snapshot(application)
    current = _status(application.status)
    if current not in SYNCABLE_STATUSES:
        restore(application, state)
        raise _invalid_transition(
            current,
            S.SYNCED,
            f"No se puede cambiar el estado de '{current.value}' a '{S.SYNCED.value}'.",
        )
    return await _execute_transition(
        db,
        ctx,
        application,
        S.SYNCED,
        authz.SYSTEM_ACTOR,
        reason=reason,
        metadata=metadata,
        state=state,
    )


def get_allowed_next_statuses(application: Application, actor: authz.Actor) -> list[ApplicationStatus]:
    candidates = TRANSITIONS.get(_status(application.status), frozenset())
    return [
        status
        for status in ApplicationStatus
        if status in candidates and authz.can_change_to_status(actor, status)
    ]


def is_terminal_state(application: Application) -> bool:
    return _status(application.status) in TERMINAL_STATUSES


def is_active_state(application: Application) -> bool:
    return _status(application.status) in ACTIVE_STATUSES


def _last_touched(application: Application) -> datetime | None:
    value = application.updated_at or application.status_changed_at or application.created_at
    if value is not None and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def is_stale(
    application: Application,
    hours_threshold: int | None = None,
    now: datetime | None = None,
) -> bool:
    """Active applications untouched for longer than the threshold need attention."""
    if not is_active_state(application):
        return False
    last_touched = _last_touched(application)
    if last_touched is None:
        return False
    threshold = settings.stale_application_hours if hours_threshold is None else hours_threshold
    current = now or datetime.now(timezone.utc)
    return current - last_touched > timedelta(hours=threshold)


def get_status_options_for_user(actor: authz.Actor) -> list[dict[str, str]]:
    return [
        {"value": status.value, "label": status.label}
        for status in ApplicationStatus
        if status not in _NON_SELECTABLE_STATUSES and authz.can_change_to_status(actor, status)
    ]
