"""
Social Feed API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Open the database handle (TiDB) and create tables if not present
  3. Expose Prometheus /metrics endpoint

The database handle lives on ``app.state.db`` for the lifetime of the app
and is disposed on shutdown.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from social_feed.config import Settings, settings as default_settings
from social_feed.database import Database
from social_feed.exceptions import (
    DependencyUnavailable,
    FeedValidationError,
    PublicationNotFound,
)
from social_feed.routers import communities, feed, friendships, publications, reactions, users
from social_feed.telemetry import instrument_app, instrument_engine, setup_tracing

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    if settings.otel_enabled:
        # Set up tracing before the app is created so all spans are exported
        setup_tracing(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the database handle on startup and dispose it on shutdown."""
        logger.info("Starting Social Feed API (env=%s)", settings.environment)

        database = Database(settings)
        await database.start()
        if settings.otel_enabled:
            instrument_engine(database.engine)
        await database.create_all()
        app.state.db = database

        logger.info("Database connected. API ready.")
        yield

        logger.info("Shutting down...")
        await database.stop()

    app = FastAPI(
        title="Social Feed API",
        description=(
            "Visibility-scoped social feed: public, friends-only and private "
            "publications resolved against the viewer's friendship graph."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── Routers ────────────────────────────────────────────────────────────
    app.include_router(users.router, prefix="/users", tags=["Users"])
    app.include_router(friendships.router, prefix="/friendships", tags=["Friendships"])
    app.include_router(communities.router, prefix="/communities", tags=["Communities"])
    app.include_router(publications.router, prefix="/publications", tags=["Publications"])
    app.include_router(reactions.router, prefix="/reactions", tags=["Reactions"])
    app.include_router(feed.router, prefix="/feed", tags=["Feed"])

    # ── Error taxonomy → HTTP ──────────────────────────────────────────────
    @app.exception_handler(FeedValidationError)
    async def _validation_error(request: Request, exc: FeedValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(PublicationNotFound)
    async def _not_found(request: Request, exc: PublicationNotFound):
        return JSONResponse(status_code=404, content={"detail": "Publication not found"})

    @app.exception_handler(DependencyUnavailable)
    async def _unavailable(request: Request, exc: DependencyUnavailable):
        logger.error("Dependency unavailable on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "Service temporarily unavailable, retry later"},
            headers={"Retry-After": "1"},
        )

    # ── Prometheus metrics endpoint ────────────────────────────────────────
    # Scraped by Prometheus
    app.mount("/metrics", make_asgi_app())

    # ── OTel FastAPI instrumentation ──────────────────────────────────────
    if settings.otel_enabled:
        instrument_app(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": settings.service_name}

    return app


app = create_app()
