"""FastAPI dependency injection for database sessions, auth, and ledger access.

Provides get_async_session, get_current_user, role-based access control,
and the per-application ledger context and in-flight tracker.
"""

from collections.abc import AsyncGenerator, Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.core.config import Settings, get_settings
from campus_vote.core.database import get_session_factory
from campus_vote.core.security import decode_token
from campus_vote.lib.ledger import InFlightTracker, LedgerContext, build_ledger_context
from campus_vote.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login")


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Yield an async database session with per-request lifecycle."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Decode JWT and return the authenticated user.

    Raises:
        HTTPException: If the token is invalid or the user is missing or inactive.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token, settings.jwt_secret_key, settings.jwt_algorithm)
        email: str | None = payload.get("sub")
        if email is None:
            raise credentials_exception
    except Exception as exc:
        raise credentials_exception from exc

    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise credentials_exception
    return user


def require_role(*roles: str) -> Callable[..., Any]:
    """Factory that creates a dependency requiring one of ``roles``."""

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{current_user.role}' does not have access to this resource",
            )
        return current_user

    return role_checker


def get_ledger_context(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> LedgerContext:
    """Return the application's ledger context, building it on first use.

    Raises:
        HTTPException: 503 if the ledger is not configured.
    """
    if not settings.ledger_enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ledger integration is not configured",
        )
    context: LedgerContext | None = getattr(request.app.state, "ledger_context", None)
    if context is None:
        context = build_ledger_context(settings)
        request.app.state.ledger_context = context
    return context


def get_inflight_tracker(request: Request) -> InFlightTracker:
    """Return the application-wide in-flight tracker."""
    tracker: InFlightTracker | None = getattr(request.app.state, "inflight", None)
    if tracker is None:
        tracker = InFlightTracker()
        request.app.state.inflight = tracker
    return tracker
