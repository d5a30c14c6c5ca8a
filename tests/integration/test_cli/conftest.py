"""Fixtures for CLI tests: a file-backed SQLite database the commands open themselves."""

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from campus_vote.models import Base


@pytest.fixture
def cli_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Session]:
    """Create the schema in a temporary database and point the CLI at it.

    Yields a synchronous session for seeding and inspecting rows.
    """
    db_path = tmp_path / "campus_vote.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret-key-not-for-production")
    with Session(engine, expire_on_commit=False) as session:
        yield session
    engine.dispose()
