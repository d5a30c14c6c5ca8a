"""Unit tests for the database migration commands."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from campus_vote.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret-key-not-for-production")


def test_upgrade_defaults_to_head() -> None:
    with patch("alembic.command.upgrade") as mock_upgrade:
        result = runner.invoke(app, ["db", "upgrade"])
    assert result.exit_code == 0, result.output
    config, revision = mock_upgrade.call_args.args
    assert revision == "head"
    assert config.config_file_name == "alembic.ini"


def test_downgrade_uses_given_config() -> None:
    with patch("alembic.command.downgrade") as mock_downgrade:
        result = runner.invoke(app, ["db", "downgrade", "base", "--config", "custom.ini"])
    assert result.exit_code == 0, result.output
    config, revision = mock_downgrade.call_args.args
    assert revision == "base"
    assert config.config_file_name == "custom.ini"


def test_serve_runs_factory() -> None:
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(app, ["serve", "--port", "9000"])
    assert result.exit_code == 0, result.output
    mock_run.assert_called_once_with(
        "campus_vote.main:create_app",
        factory=True,
        host="0.0.0.0",  # noqa: S104
        port=9000,
        reload=False,
    )
