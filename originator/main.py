from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from originator.api.v1 import api_router
from originator.core.errors import register_exception_handlers
from originator.core.health import APP_VERSION
from originator.core.limiter import limiter
from originator.core.logging import configure_logging
from originator.core.response_envelope import register_response_envelope
from originator.core.settings import settings
from originator.events import register_event_handlers
from originator.middlewares.request_context import RequestContextMiddleware
from originator.middlewares.security_headers import SecurityHeadersMiddleware

OPENAPI_TAGS = [
    {"name": "health", "description": "Liveness and readiness probes"},
    {"name": "staff-applications", "description": "Back-office review and decisions on loan applications"},
    {"name": "applicant-applications", "description": "Applicant self-service on their own applications"},
    {"name": "kyc-verifications", "description": "Per-field data verification and KYC documents"},
]


def create_app() -> FastAPI:
    configure_logging()
    public_docs = settings.environment != "production"
    app = FastAPI(
        title="Originator",
        version=APP_VERSION,
        openapi_tags=OPENAPI_TAGS,
        docs_url="/docs" if public_docs else None,
        redoc_url=None,
        openapi_url="/openapi.json" if public_docs else None,
    )
    register_exception_handlers(app)
    register_response_envelope(app)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-Tenant-ID"],
        expose_headers=["X-Request-ID"],
    )
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
