import logging

from fastapi import FastAPI

from originator.core.settings import settings
from originator.db.session import engine

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "Application startup (environment=%s, tenancy=%s)",
            settings.environment,
            settings.tenancy_mode,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        await engine.dispose()
