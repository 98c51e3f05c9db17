from __future__ import annotations

from uuid import uuid4

import pytest

from originator.models.person import Person
from tests.conftest import FakeResult, entity_handler, make_person, make_staff, make_verification


@pytest.fixture
def person(fake_db, store) -> Person:
    person = make_person()
    fake_db.on_execute(entity_handler(Person, FakeResult(scalar=person)))
    return person


def _url(person_id, suffix: str = "") -> str:
    return f"/api/v1/staff/persons/{person_id}/verifications{suffix}"


def test_unknown_person_returns_404(client, store):
    resp = client.get(_url(uuid4()))

    assert resp.status_code == 404
    assert resp.json()["message"] == "Person not found"


def test_verify_field_then_read_it_back(client, fake_db, person):
    resp = client.post(
        _url(person.id),
        json={"field": "curp", "value": "LOGA900101MDFPRN09", "method": "RENAPO"},
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["applied"] is True
    assert data["verification"]["field_name"] == "curp"
    assert data["verification"]["is_locked"] is True
    assert data["verification"]["metadata"]["verified_at"]
    assert fake_db.committed

    read = client.get(_url(person.id, "/curp"))
    assert read.status_code == 200
    assert read.json()["data"]["method"] == "RENAPO"


def test_locked_field_reports_not_applied(client, store, person):
    store.put(make_verification(person=person, field_name="curp", method="KYC_INE_OCR", is_locked=True))

    resp = client.post(_url(person.id), json={"field": "curp", "value": "OTHER", "method": "MANUAL"})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["applied"] is False
    assert data["verification"]["method"] == "KYC_INE_OCR"


def test_unknown_method_is_a_validation_error(client, person):
    resp = client.post(_url(person.id), json={"field": "curp", "value": "X", "method": "CARRIER_PIGEON"})

    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_missing_field_verification_returns_404(client, person):
    resp = client.get(_url(person.id, "/rfc"))

    assert resp.status_code == 404
    assert resp.json()["message"] == "Verification not found"


def test_summary_and_locked(client, store, person):
    store.put(make_verification(person=person, field_name="curp", method="RENAPO", is_locked=True))
    store.put(make_verification(person=person, field_name="email", method="MANUAL"))

    summary = client.get(_url(person.id))
    locked = client.get(_url(person.id, "/locked"))

    assert summary.status_code == 200
    data = summary.json()["data"]
    assert data["total"] == 2
    assert data["locked"] == 1
    assert data["kyc_completed"] is False
    assert data["fields"]["email"]["method"] == "MANUAL"
    assert locked.json()["data"] == {"fields": ["curp"]}


def test_ine_document_endpoint(client, person):
    resp = client.post(
        _url(person.id, "/documents/ine"),
        json={"side": "front", "document_id": "doc-1", "ocr_data": {"curp": "LOGA900101MDFPRN09"}},
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["applied"] is True
    assert data["verification"]["field_name"] == "ine_document_front"
    assert data["verification"]["metadata"]["document_id"] == "doc-1"


def test_selfie_and_proof_of_address_endpoints(client, person):
    selfie = client.post(
        _url(person.id, "/documents/selfie"),
        json={"document_id": "selfie-1", "face_match_data": {"face_match_score": 0.91}},
    )
    proof = client.post(
        _url(person.id, "/documents/proof-of-address"),
        json={"document_id": "poa-1", "address_data": {"postal_code": "06600"}},
    )

    assert selfie.status_code == 200
    assert selfie.json()["data"]["verification"]["method"] == "KYC_FACE_MATCH"
    assert proof.status_code == 200
    assert proof.json()["data"]["verification"]["is_locked"] is False


def test_locked_document_reports_not_applied(client, store, person):
    store.put(
        make_verification(person=person, field_name="selfie_document", method="KYC_FACE_MATCH", is_locked=True)
    )

    resp = client.post(
        _url(person.id, "/documents/selfie"),
        json={"document_id": "selfie-2", "face_match_data": {"face_match_score": 0.95}},
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["applied"] is False
    assert data["verification"]["field_name"] == "selfie_document"


def test_viewer_cannot_verify(client, person):
    from originator.api import deps
    from originator.main import app

    viewer = make_staff(role="VIEWER")

    async def _get_staff():
        return viewer

    app.dependency_overrides[deps.get_current_staff] = _get_staff

    resp = client.post(_url(person.id), json={"field": "email", "value": "a@example.com", "method": "MANUAL"})
    summary = client.get(_url(person.id))

    assert resp.status_code == 403
    assert resp.json()["message"] == "Missing permission: kyc.verify"
    assert summary.status_code == 200
