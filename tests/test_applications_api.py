from __future__ import annotations

from uuid import uuid4

from sqlalchemy.orm.exc import StaleDataError

from originator.api import deps
from originator.main import app
from originator.models.application import Application
from originator.models.application_status_history import ApplicationStatusHistory
from originator.models.staff_account import StaffAccount
from tests.conftest import (
    FakeResult,
    entity_handler,
    make_applicant,
    make_application,
    make_staff,
)


def _serve(fake_db, application):
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))


def _act_as(staff):
    async def _get_staff():
        return staff

    app.dependency_overrides[deps.get_current_staff] = _get_staff


def test_get_application_is_enveloped(client, fake_db):
    application = make_application(status="IN_REVIEW")
    _serve(fake_db, application)

    resp = client.get(f"/api/v1/staff/applications/{application.id}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == "ok"
    assert body["data"]["id"] == str(application.id)
    assert body["data"]["status"] == "IN_REVIEW"
    assert body["data"]["requested_amount"] == "50000.00"
    assert resp.headers["x-request-id"]


def test_request_id_is_echoed(client, fake_db):
    application = make_application()
    _serve(fake_db, application)

    resp = client.get(f"/api/v1/staff/applications/{application.id}", headers={"X-Request-ID": "req-123"})

    assert resp.headers["x-request-id"] == "req-123"


def test_missing_application_returns_404(client):
    resp = client.get(f"/api/v1/staff/applications/{uuid4()}")

    assert resp.status_code == 404
    body = resp.json()
    assert body["code"] == "not_found"
    assert body["message"] == "Application not found"
    assert body["data"] is None


def test_change_status_commits(client, fake_db):
    application = make_application(status="SUBMITTED")
    _serve(fake_db, application)

    resp = client.post(
        f"/api/v1/staff/applications/{application.id}/status",
        json={"status": "IN_REVIEW", "reason": "Inicio de revisión"},
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "IN_REVIEW"
    assert fake_db.committed
    assert fake_db.added_of(ApplicationStatusHistory)[0].notes == "Inicio de revisión"


def test_illegal_transition_returns_409(client, fake_db):
    application = make_application(status="DRAFT")
    _serve(fake_db, application)

    resp = client.post(f"/api/v1/staff/applications/{application.id}/status", json={"status": "APPROVED"})

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "invalid_transition"
    assert "DRAFT" in body["message"] and "APPROVED" in body["message"]
    assert body["details"] == {"from_status": "DRAFT", "to_status": "APPROVED"}
    assert not fake_db.committed


def test_analyst_cannot_approve(client, fake_db):
    _act_as(make_staff(role="ANALYST"))
    application = make_application(status="IN_REVIEW")
    _serve(fake_db, application)

    resp = client.post(f"/api/v1/staff/applications/{application.id}/approve", json={})

    assert resp.status_code == 403
    body = resp.json()
    assert body["code"] == "permission_denied"
    assert body["details"]["required_permission"] == "application.approve_reject"
    assert application.status == "IN_REVIEW"


def test_supervisor_approves(client, fake_db):
    application = make_application(status="IN_REVIEW")
    _serve(fake_db, application)

    resp = client.post(
        f"/api/v1/staff/applications/{application.id}/approve",
        json={"amount": "40000", "term_months": 10, "interest_rate": "0"},
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "APPROVED"
    assert data["approved_amount"] == "40000"
    assert data["approved_monthly_payment"] == "4000.00"


def test_reject_requires_reason(client, fake_db):
    application = make_application(status="IN_REVIEW")
    _serve(fake_db, application)

    resp = client.post(f"/api/v1/staff/applications/{application.id}/reject", json={})

    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "validation_error"
    assert body["details"]["errors"][0]["loc"][-1] == "reason"


def test_concurrent_write_returns_409(client, fake_db):
    application = make_application(status="SUBMITTED")
    _serve(fake_db, application)
    fake_db.flush_error = StaleDataError("version mismatch")

    resp = client.post(f"/api/v1/staff/applications/{application.id}/status", json={"status": "IN_REVIEW"})

    assert resp.status_code == 409
    assert resp.json()["code"] == "concurrent_modification"
    assert application.status == "SUBMITTED"
    assert not fake_db.committed


def test_allowed_statuses_for_analyst(client, fake_db):
    _act_as(make_staff(role="ANALYST"))
    application = make_application(status="IN_REVIEW")
    _serve(fake_db, application)

    resp = client.get(f"/api/v1/staff/applications/{application.id}/allowed-statuses")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["current_status"] == "IN_REVIEW"
    assert data["is_terminal"] is False
    assert data["is_stale"] is False
    assert [item["value"] for item in data["allowed"]] == ["DOCS_PENDING", "CORRECTIONS_PENDING", "COUNTER_OFFERED"]


def test_status_options_route_is_not_an_id(client):
    resp = client.get("/api/v1/staff/applications/status-options")

    assert resp.status_code == 200
    values = [item["value"] for item in resp.json()["data"]]
    assert "APPROVED" in values
    assert "SYNCED" not in values


def test_history_lists_entries(client, fake_db):
    application = make_application(status="IN_REVIEW")
    entry = ApplicationStatusHistory(
        id=uuid4(),
        tenant_id="default",
        application_id=application.id,
        from_status="SUBMITTED",
        to_status="IN_REVIEW",
        changed_by=None,
        changed_by_type="system",
        transition_metadata={"source": "auto"},
    )
    _serve(fake_db, application)
    fake_db.on_execute(entity_handler(ApplicationStatusHistory, FakeResult(items=[entry])))

    resp = client.get(f"/api/v1/staff/applications/{application.id}/history")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["to_status"] == "IN_REVIEW"
    assert data["items"][0]["metadata"] == {"source": "auto"}


def test_viewer_cannot_assign(client, fake_db):
    _act_as(make_staff(role="VIEWER"))
    application = make_application(status="IN_REVIEW")
    _serve(fake_db, application)

    resp = client.post(
        f"/api/v1/staff/applications/{application.id}/assign",
        json={"assignee_id": str(uuid4())},
    )

    assert resp.status_code == 403
    assert resp.json()["message"] == "Missing permission: application.assign"


def test_assign_to_unknown_staff_returns_404(client, fake_db):
    application = make_application(status="IN_REVIEW")
    _serve(fake_db, application)

    resp = client.post(
        f"/api/v1/staff/applications/{application.id}/assign",
        json={"assignee_id": str(uuid4())},
    )

    assert resp.status_code == 404
    assert resp.json()["message"] == "Assignee not found"


def test_assign_application(client, fake_db):
    application = make_application(status="IN_REVIEW")
    assignee = make_staff()
    _serve(fake_db, application)
    fake_db.on_execute(entity_handler(StaffAccount, FakeResult(scalar=assignee)))

    resp = client.post(
        f"/api/v1/staff/applications/{application.id}/assign",
        json={"assignee_id": str(assignee.id)},
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["assigned_to"] == str(assignee.id)


def test_counter_offer_endpoint(client, fake_db):
    application = make_application(status="IN_REVIEW")
    _serve(fake_db, application)

    resp = client.post(
        f"/api/v1/staff/applications/{application.id}/counter-offer",
        json={"amount": "20000", "term_months": 10, "interest_rate": "0", "reason": "Menor monto"},
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "COUNTER_OFFERED"
    assert data["counter_offer"]["monthly_payment"] == "2000.00"


def test_risk_and_checklist_endpoints(client, fake_db):
    application = make_application(status="IN_REVIEW")
    _serve(fake_db, application)

    risk = client.put(
        f"/api/v1/staff/applications/{application.id}/risk",
        json={"level": "MEDIUM", "data": {"score": 610}},
    )
    checklist = client.patch(
        f"/api/v1/staff/applications/{application.id}/verification-checklist",
        json={"checks": {"identity": True}},
    )

    assert risk.status_code == 200
    assert risk.json()["data"]["risk_level"] == "MEDIUM"
    assert checklist.status_code == 200
    assert checklist.json()["data"]["verification_checklist"] == {"identity": True}


def test_applicant_submits_own_application(client, fake_db, current_applicant):
    application = make_application(status="DRAFT", person_id=current_applicant.person_id)
    _serve(fake_db, application)

    resp = client.post(f"/api/v1/applicant/applications/{application.id}/submit")

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "SUBMITTED"
    history = fake_db.added_of(ApplicationStatusHistory)[0]
    assert history.changed_by == current_applicant.id
    assert history.changed_by_type == "applicant"


def test_applicant_without_person_gets_404(client):
    account = make_applicant()

    async def _get_applicant():
        return account

    app.dependency_overrides[deps.get_current_applicant] = _get_applicant

    resp = client.post(f"/api/v1/applicant/applications/{uuid4()}/submit")

    assert resp.status_code == 404


def test_applicant_cannot_move_to_review(client, fake_db, current_applicant):
    application = make_application(status="SUBMITTED", person_id=current_applicant.person_id)
    _serve(fake_db, application)

    resp = client.post(f"/api/v1/applicant/applications/{application.id}/submit")

    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_transition"


def test_applicant_accepts_counter_offer(client, fake_db, current_applicant):
    application = make_application(
        status="COUNTER_OFFERED",
        person_id=current_applicant.person_id,
        counter_offer={"amount": "20000", "term_months": 10, "interest_rate": "0", "monthly_payment": "2000.00"},
    )
    _serve(fake_db, application)

    resp = client.post(
        f"/api/v1/applicant/applications/{application.id}/counter-offer/response",
        json={"accepted": True},
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "APPROVED"
    assert data["approved_amount"] == "20000"
    assert data["counter_offer_accepted"] is True


def test_applicant_response_without_offer_is_bad_request(client, fake_db, current_applicant):
    application = make_application(status="IN_REVIEW", person_id=current_applicant.person_id)
    _serve(fake_db, application)

    resp = client.post(
        f"/api/v1/applicant/applications/{application.id}/counter-offer/response",
        json={"accepted": False},
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_counter_offer"
