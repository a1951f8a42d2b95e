"""
FastAPI Application Entry Point

Main application module that configures and starts the FastAPI server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from sportclub.config import settings
from sportclub.api.errors import register_error_handlers
from sportclub.api.routes import access, athlete, health, pages
from sportclub.core.ratelimit import limiter
from sportclub.core.scheduler.service import maintenance_scheduler
from sportclub.db.session import init_db, close_db
from sportclub.monitoring.logging import RequestLoggingMiddleware, setup_logging
from sportclub.monitoring.metrics import initialize_metrics


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    setup_logging()
    initialize_metrics(settings.app_name, settings.app_version)
    await init_db()
    await maintenance_scheduler.start()

    yield

    # Shutdown
    await maintenance_scheduler.shutdown()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Sports-club API with idempotent mutations and role-based access gating",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Rate limiter state read by slowapi and the 429 handler
    app.state.limiter = limiter

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-Id",
            "X-Idempotency-Cached",
            "X-Original-Timestamp",
            "X-Correlation-ID",
            "X-Causation-ID",
        ],
    )

    register_error_handlers(app)

    # Mount Prometheus metrics
    if settings.prometheus_enabled:
        metrics_app = make_asgi_app()
        app.mount("/metrics", metrics_app)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(athlete.router, prefix="/api/athlete", tags=["Athlete"])
    app.include_router(access.router, prefix="/api/access", tags=["Access"])
    app.include_router(pages.router, tags=["Pages"])

    return app


# Application instance
app = create_app()
