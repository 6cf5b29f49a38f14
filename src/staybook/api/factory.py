"""FastAPI application factory with role-based route mounting."""

import os
from typing import Literal

from fastapi import FastAPI, Request, Response

from staybook.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from staybook.observability.logging import configure_logging

from .errors import register_error_handlers
from .routes import bookings, health, me, pricing, refunds, tasks_notifications, wallet, webhooks_stripe

AppRole = Literal["public", "worker"]


def create_app(role: AppRole | None = None) -> FastAPI:
    """Create the app.

    Args:
        role: "public" or "worker". Defaults to APP_ROLE, then "public".
            Guest and operator routes are mounted for "public", task
            routes for "worker". Health and the gateway webhook are on both.
    """
    if role is None:
        role = os.environ.get("APP_ROLE", "public")  # type: ignore[assignment]

    configure_logging()
    app = FastAPI(title="Staybook", docs_url=None, redoc_url=None)

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(webhooks_stripe.router)

    if role == "worker":
        app.include_router(tasks_notifications.router)
    else:
        app.include_router(me.router)
        app.include_router(pricing.router)
        app.include_router(bookings.router)
        app.include_router(refunds.router)
        app.include_router(wallet.router)

    return app
