from originator.core.permissions import APPLICANT_PERMISSIONS, PermissionCode
from originator.services import authz
from tests.conftest import make_applicant, make_staff


def test_supervisor_holds_decision_permissions():
    actor = authz.actor_for_staff(make_staff(role="SUPERVISOR"))

    assert authz.has_permission(actor, PermissionCode.APPLICATION_APPROVE_REJECT)
    assert authz.has_permission(actor, "application.assign")
    assert authz.can_change_to_status(actor, "APPROVED")
    assert authz.can_change_to_status(actor, "IN_REVIEW")


def test_analyst_is_limited_to_workflow_moves():
    actor = authz.actor_for_staff(make_staff(role="ANALYST"))

    assert authz.can_change_to_status(actor, "DOCS_PENDING")
    assert not authz.can_change_to_status(actor, "APPROVED")
    assert not authz.can_change_to_status(actor, "DISBURSED")


def test_role_lookup_is_case_insensitive():
    assert authz.role_permissions("supervisor") == authz.role_permissions("SUPERVISOR")
    assert authz.role_permissions("UNKNOWN") == set()
    assert authz.role_permissions(None) == set()


def test_extra_grants_extend_the_role():
    staff = make_staff(role="VIEWER", permissions=["application.status.change", "not.a.permission"])

    actor = authz.actor_for_staff(staff)

    assert authz.can_change_to_status(actor, "IN_REVIEW")
    assert "not.a.permission" not in actor.permissions


def test_superuser_gets_every_staff_permission():
    actor = authz.actor_for_staff(make_staff(role="VIEWER", is_superuser=True))

    assert authz.can_change_to_status(actor, "COMPLETED")
    assert actor.permissions.isdisjoint(APPLICANT_PERMISSIONS)


def test_applicant_can_only_submit_or_cancel():
    actor = authz.actor_for_applicant(make_applicant())

    assert authz.can_change_to_status(actor, "SUBMITTED")
    assert authz.can_change_to_status(actor, "CANCELLED")
    assert not authz.can_change_to_status(actor, "IN_REVIEW")
    assert not authz.can_change_to_status(actor, "APPROVED")


def test_required_permission_tiers():
    assert authz.required_permission("REJECTED") == PermissionCode.APPLICATION_APPROVE_REJECT
    assert authz.required_permission("DEFAULT") == PermissionCode.APPLICATION_APPROVE_REJECT
    assert authz.required_permission("CORRECTIONS_PENDING") == PermissionCode.APPLICATION_STATUS_CHANGE


def test_system_actor_holds_everything():
    assert authz.SYSTEM_ACTOR.is_system
    assert authz.can_change_to_status(authz.SYSTEM_ACTOR, "ACTIVE")
