"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from campus_vote import __version__
from campus_vote.core.config import get_settings
from campus_vote.core.database import dispose_engine, init_engine
from campus_vote.core.logging import setup_logging
from campus_vote.lib.ledger import InFlightTracker


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: init engine on startup, dispose on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level, log_dir=settings.log_dir)
    init_engine(settings.database_url, echo=False, schema=settings.database_schema)
    if not settings.ledger_enabled:
        from loguru import logger

        logger.warning("Ledger settings incomplete; deploy, sync and vote endpoints will return 503")

    yield

    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Campus Vote API",
        description="University student elections backed by an on-chain voting ledger",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.inflight = InFlightTracker()

    # Register exception handlers
    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc)},
        )

    # Register middleware and routers
    from campus_vote.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
