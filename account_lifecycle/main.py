"""FastAPI application wiring for the account lifecycle service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api.routes import ResetNotifier, router as v1_router
from .config import Settings, get_settings
from .domain.account import Account
from .factory import AccountServices, build_services

logger = logging.getLogger(__name__)


def log_reset_notification(account: Account, token: str) -> None:
    """Default notifier; mail delivery is plugged in by the deployment."""
    logger.info(
        "password reset token issued for account_id=%s, no notifier configured",
        account.account_id,
    )


def create_app(
    settings: Settings | None = None,
    services: AccountServices | None = None,
    notifier: ResetNotifier = log_reset_notification,
) -> FastAPI:
    """Build the application; ``services`` is built from settings at startup when omitted."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialise the account store and services for the app lifecycle."""
        logging.basicConfig(level=settings.log_level)
        owned = services is None
        app.state.account_services = services or build_services(settings)
        app.state.reset_notifier = notifier
        try:
            yield
        finally:
            if owned:
                app.state.account_services.store.close()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(v1_router)
    return app


app = create_app()
