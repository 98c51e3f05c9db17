from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel

from originator.core.errors import http_error_from, register_exception_handlers
from originator.core.response_envelope import register_response_envelope
from originator.services.application_status import (
    ConcurrentModification,
    InvalidCounterOffer,
    InvalidTransition,
    PermissionDenied,
)


class Payload(BaseModel):
    amount: int


def _build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    register_response_envelope(app)

    @app.get("/items")
    async def items():
        return [1, 2]

    @app.post("/items", status_code=201)
    async def create(payload: Payload):
        return {"amount": payload.amount}

    @app.get("/wrapped")
    async def wrapped():
        return {"code": "ok", "message": "", "data": {"x": 1}}

    @app.get("/missing")
    async def missing():
        raise HTTPException(status_code=404, detail="Thing not found")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    @app.get("/denied")
    async def denied():
        raise http_error_from(
            PermissionDenied(
                code="permission_denied",
                message="Missing permission",
                details={"required_permission": "application.assign"},
            )
        )

    return app


client = TestClient(_build_app(), raise_server_exceptions=False)


def test_success_bodies_are_enveloped():
    resp = client.get("/items")

    assert resp.json() == {"code": "ok", "message": "OK", "data": [1, 2], "details": {}}


def test_created_uses_created_code():
    resp = client.post("/items", json={"amount": 3})

    assert resp.status_code == 201
    assert resp.json()["code"] == "created"
    assert resp.json()["data"] == {"amount": 3}


def test_already_enveloped_body_is_normalized():
    body = client.get("/wrapped").json()

    assert body == {"code": "ok", "message": "OK", "data": {"x": 1}, "details": {}}


def test_http_exception_envelope():
    body = client.get("/missing").json()

    assert body == {
        "code": "not_found",
        "message": "Thing not found",
        "data": None,
        "details": {"detail": "Thing not found"},
    }


def test_validation_errors_do_not_echo_input():
    resp = client.post("/items", json={"amount": "not-a-number"})

    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "validation_error"
    assert body["message"].startswith("amount:")
    assert all("input" not in error for error in body["details"]["errors"])


def test_unhandled_errors_are_opaque():
    resp = client.get("/boom")

    assert resp.status_code == 500
    assert resp.json()["code"] == "internal_server_error"
    assert "kaboom" not in resp.text


def test_domain_errors_keep_code_and_details():
    resp = client.get("/denied")

    assert resp.status_code == 403
    body = resp.json()
    assert body["code"] == "permission_denied"
    assert body["details"] == {"required_permission": "application.assign"}


def test_domain_error_status_mapping():
    def _status(error_cls, code):
        return http_error_from(error_cls(code=code, message="x")).status_code

    assert _status(InvalidTransition, "invalid_transition") == 409
    assert _status(ConcurrentModification, "concurrent_modification") == 409
    assert _status(InvalidCounterOffer, "invalid_counter_offer") == 400
    assert _status(InvalidCounterOffer, "something_else") == 400
