"""
FastAPI application entrypoint for the Pesapal checkout service.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from checkout.api.routes import router as api_router
from checkout.core.config import get_settings
from checkout.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Pesapal Checkout",
        version="0.1.0",
        description="Create Pesapal payment orders and receive their outcome.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.server.cors_allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
