"""Unit tests for engine and session lifecycle."""

import pytest
from sqlalchemy import text

from campus_vote.core.database import dispose_engine, get_session_factory, init_engine, session_scope


class TestEngineLifecycle:
    @pytest.mark.asyncio
    async def test_init_scope_and_dispose(self) -> None:
        init_engine("sqlite+aiosqlite:///:memory:")
        try:
            async with session_scope() as session:
                assert (await session.execute(text("SELECT 1"))).scalar_one() == 1
        finally:
            await dispose_engine()

        with pytest.raises(RuntimeError, match="not initialized"):
            get_session_factory()

    def test_schema_requires_dict_connect_args(self) -> None:
        with pytest.raises(TypeError, match="connect_args must be a dict"):
            init_engine("postgresql+asyncpg://localhost/db", schema="pr_42", connect_args="bad")
