from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet
from uuid import UUID

from originator.core.permissions import (
    APPLICANT_PERMISSIONS,
    SYSTEM_ROLE_DEFINITIONS,
    PermissionCode,
)
from originator.models.applicant_account import ApplicantAccount
from originator.models.staff_account import StaffAccount
from originator.schemas.application import ActorType, ApplicationStatus


RESTRICTED_STATUSES = frozenset(
    {
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.CANCELLED,
        ApplicationStatus.DISBURSED,
        ApplicationStatus.ACTIVE,
        ApplicationStatus.COMPLETED,
        ApplicationStatus.DEFAULT,
    }
)

_APPLICANT_TARGETS = {
    ApplicationStatus.SUBMITTED: PermissionCode.APPLICATION_SUBMIT_OWN,
    ApplicationStatus.CANCELLED: PermissionCode.APPLICATION_CANCEL_OWN,
}


@dataclass(frozen=True, slots=True)
class Actor:
    """Whoever requests a state change, with the permission codes it holds."""

    id: UUID | None
    actor_type: ActorType
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_system(self) -> bool:
        return self.actor_type == ActorType.SYSTEM


SYSTEM_ACTOR = Actor(id=None, actor_type=ActorType.SYSTEM, permissions=frozenset(PermissionCode.list_all()))


def role_permissions(role: str | None) -> set[str]:
    definition = SYSTEM_ROLE_DEFINITIONS.get((role or "").upper())
    if not definition:
        return set()
    return set(definition["permissions"])


def actor_for_staff(staff: StaffAccount) -> Actor:
    if staff.is_superuser:
        permissions = set(PermissionCode.list_all()) - APPLICANT_PERMISSIONS
    else:
        permissions = role_permissions(staff.role)
        permissions.update(PermissionCode.normalize(staff.permissions or []))
    return Actor(id=staff.id, actor_type=ActorType.STAFF, permissions=frozenset(permissions))


def actor_for_applicant(account: ApplicantAccount) -> Actor:
    return Actor(id=account.id, actor_type=ActorType.APPLICANT, permissions=APPLICANT_PERMISSIONS)


def has_permission(actor: Actor, permission_code: PermissionCode | str) -> bool:
    target = permission_code.value if isinstance(permission_code, PermissionCode) else str(permission_code)
    return target in actor.permissions


def required_permission(status: ApplicationStatus | str) -> PermissionCode:
    if status in RESTRICTED_STATUSES:
        return PermissionCode.APPLICATION_APPROVE_REJECT
    return PermissionCode.APPLICATION_STATUS_CHANGE


def can_change_to_status(actor: Actor, status: ApplicationStatus | str) -> bool:
    """Permission tier check only; whether the move is legal is decided by the transition matrix."""
    try:
        target = ApplicationStatus(status)
    except ValueError:
        return False
    if actor.actor_type == ActorType.APPLICANT:
        code = _APPLICANT_TARGETS.get(target)
        return code is not None and has_permission(actor, code)
    return has_permission(actor, required_permission(target))
