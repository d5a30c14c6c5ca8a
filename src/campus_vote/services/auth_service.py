"""Authentication and user management service.

Handles user authentication, creation and access-token generation.
"""

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.core.config import Settings
from campus_vote.core.faculties import faculty_code
from campus_vote.core.security import create_access_token, hash_password, verify_password
from campus_vote.models.user import User
from campus_vote.schemas.auth import TokenResponse, UserCreateRequest


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def authenticate_user(session: AsyncSession, email: str, password: str) -> User | None:
    """Authenticate a user by email and password.

    Args:
        session: The database session.
        email: The login email.
        password: The plaintext password.

    Returns:
        The User if authentication succeeds, None otherwise.
    """
    user = await get_user_by_email(session, email)
    if user is None or not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    user.last_login_at = datetime.now(UTC)
    await session.commit()
    return user


async def create_user(session: AsyncSession, request: UserCreateRequest) -> User:
    """Create a new user.

    Raises:
        ValueError: If the email already exists.
    """
    if await get_user_by_email(session, request.email) is not None:
        msg = "Email already exists"
        raise ValueError(msg)

    user = User(
        email=request.email.lower(),
        hashed_password=hash_password(request.password),
        role=request.role,
        faculty=faculty_code(request.faculty),
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info("Created {} user {}", user.role, user.id)
    return user


async def list_users(session: AsyncSession, page: int = 1, page_size: int = 20) -> tuple[list[User], int]:
    """List users with pagination.

    Returns:
        Tuple of (users list, total count).
    """
    total = (await session.execute(select(func.count(User.id)))).scalar_one()
    offset = (page - 1) * page_size
    result = await session.execute(select(User).order_by(User.id).offset(offset).limit(page_size))
    return list(result.scalars().all()), total


def generate_token(user: User, settings: Settings) -> TokenResponse:
    """Issue an access token for an authenticated user."""
    access_token = create_access_token(
        subject=user.email,
        role=user.role,
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_minutes=settings.jwt_access_token_expire_minutes,
    )
    return TokenResponse(
        access_token=access_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )
