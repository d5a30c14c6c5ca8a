"""Fixtures for API tests: the real application over the test database and fake ledger."""

from collections.abc import AsyncGenerator
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from campus_vote.core.config import get_settings
from campus_vote.core.dependencies import get_async_session, get_ledger_context
from campus_vote.main import create_app


@pytest.fixture
def app(settings, async_session, ledger) -> FastAPI:
    with patch("campus_vote.main.get_settings", return_value=settings):
        application = create_app()

    async def _session() -> AsyncGenerator:
        yield async_session

    application.dependency_overrides[get_async_session] = _session
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_ledger_context] = lambda: ledger
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers(admin_user, admin_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def student_headers(student_user, student_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {student_token}"}
