"""Unit tests for the authentication service."""

import pytest

from campus_vote.core.security import decode_token
from campus_vote.schemas.auth import UserCreateRequest
from campus_vote.services.auth_service import (
    authenticate_user,
    create_user,
    generate_token,
    get_user_by_email,
    list_users,
)


class TestAuthenticateUser:
    @pytest.mark.asyncio
    async def test_valid_credentials(self, async_session, student_user) -> None:
        user = await authenticate_user(async_session, "student@uni.test", "password123")
        assert user is not None
        assert user.id == student_user.id
        assert user.last_login_at is not None

    @pytest.mark.asyncio
    async def test_email_is_case_insensitive(self, async_session, student_user) -> None:
        assert await authenticate_user(async_session, "Student@Uni.Test", "password123") is not None

    @pytest.mark.asyncio
    async def test_wrong_password(self, async_session, student_user) -> None:
        assert await authenticate_user(async_session, "student@uni.test", "wrong-password") is None

    @pytest.mark.asyncio
    async def test_unknown_user(self, async_session) -> None:
        assert await authenticate_user(async_session, "nobody@uni.test", "password123") is None

    @pytest.mark.asyncio
    async def test_inactive_user(self, async_session, student_user) -> None:
        student_user.is_active = False
        await async_session.commit()
        assert await authenticate_user(async_session, "student@uni.test", "password123") is None


class TestCreateUser:
    @pytest.mark.asyncio
    async def test_create_student(self, async_session) -> None:
        request = UserCreateRequest(
            email="New.Student@university.edu",
            password="longenough",
            faculty="School of Business",
        )

        user = await create_user(async_session, request)

        assert user.email == "new.student@university.edu"
        assert user.role == "student"
        assert user.faculty == "SB"
        assert await get_user_by_email(async_session, "new.student@university.edu") is not None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, async_session) -> None:
        request = UserCreateRequest(email="dup@university.edu", password="longenough", faculty="SITE")
        await create_user(async_session, request)
        with pytest.raises(ValueError, match="Email already exists"):
            await create_user(async_session, request)

    @pytest.mark.asyncio
    async def test_list_users(self, async_session, admin_user, student_user) -> None:
        users, total = await list_users(async_session, page=1, page_size=1)
        assert total == 2
        assert [u.id for u in users] == [admin_user.id]


@pytest.mark.asyncio
async def test_generate_token(settings, student_user) -> None:
    token = generate_token(student_user, settings)
    payload = decode_token(token.access_token, settings.jwt_secret_key)
    assert payload["sub"] == "student@uni.test"
    assert payload["role"] == "student"
    assert token.expires_in == settings.jwt_access_token_expire_minutes * 60
