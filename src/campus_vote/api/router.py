"""Root API router with /api/v1 prefix and middleware registration."""

from fastapi import APIRouter, FastAPI

from campus_vote.api.middleware import SecurityHeadersMiddleware, setup_cors
from campus_vote.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included."""
    from campus_vote.api.v1.auth import router as auth_router
    from campus_vote.api.v1.candidates import candidates_router
    from campus_vote.api.v1.elections import elections_router
    from campus_vote.api.v1.ledger import ledger_router

    root_router = APIRouter(prefix=settings.api_v1_prefix)
    root_router.include_router(auth_router)
    root_router.include_router(candidates_router)
    # Ledger routes first so POST /elections/sync is not shadowed by /elections/{id} patterns.
    root_router.include_router(ledger_router)
    root_router.include_router(elections_router)
    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app."""
    setup_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
