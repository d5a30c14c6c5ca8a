"""Integration tests for the `campus-vote ledger` commands.

Commands run against a real SQLite database and the in-memory ledger.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from campus_vote.cli.app import app
from campus_vote.lib.ledger.gateway import LedgerStatus
from campus_vote.models import Candidate, Election, ElectionCandidate

runner = CliRunner()


@pytest.fixture
def seeded(cli_db, clock):
    """A senate election open around the fake clock, with two candidates on the ballot."""
    election = Election(
        name="Student Senate 2026",
        position="senator",
        eligible_faculties=[],
        start_time=clock() - timedelta(seconds=10),
        end_time=clock() + timedelta(hours=1),
    )
    ada = Candidate(full_name="Ada Lovelace", student_id="S-1", position="senator", faculty="SITE")
    alan = Candidate(full_name="Alan Turing", student_id="S-2", position="senator", faculty="SITE")
    cli_db.add_all([election, ada, alan])
    cli_db.flush()
    cli_db.add_all(
        [
            ElectionCandidate(election_id=election.id, candidate_id=ada.id),
            ElectionCandidate(election_id=election.id, candidate_id=alan.id),
        ]
    )
    cli_db.commit()
    return election.id


@pytest.fixture
def with_ledger(ledger):
    with patch("campus_vote.cli.ledger_cmd._ledger_context", return_value=ledger):
        yield ledger


class TestDeployCommand:
    def test_deploy(self, seeded, with_ledger, fake_ledger) -> None:
        result = runner.invoke(app, ["ledger", "deploy", "--election-id", str(seeded)])

        assert result.exit_code == 0, result.output
        assert "ledger handle 1" in result.output
        assert "5 succeeded, 0 failed, 5 ledger write(s)" in result.output
        assert fake_ledger.elections[1].candidates == [1, 2]

    def test_redeploy_writes_nothing(self, seeded, with_ledger, fake_ledger) -> None:
        runner.invoke(app, ["ledger", "deploy", "--election-id", str(seeded)])
        result = runner.invoke(app, ["ledger", "deploy", "--election-id", str(seeded)])

        assert result.exit_code == 0, result.output
        assert "0 ledger write(s)" in result.output
        assert len(fake_ledger.writes) == 5

    def test_partial_failure_exits_nonzero(self, seeded, with_ledger, fake_ledger) -> None:
        fake_ledger.fail_next("create_election", "insufficient funds for gas * price + value")

        result = runner.invoke(app, ["ledger", "deploy", "--election-id", str(seeded)])

        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_unknown_election(self, cli_db, with_ledger) -> None:
        result = runner.invoke(app, ["ledger", "deploy", "--election-id", "404"])
        assert result.exit_code == 1
        assert "Election 404 not found" in result.output

    def test_unconfigured_ledger(self, cli_db) -> None:
        result = runner.invoke(app, ["ledger", "deploy", "--election-id", "1"])
        assert result.exit_code == 1
        assert "not configured" in result.output


class TestSyncAndStatusCommands:
    def test_sync_all_deployed(self, seeded, with_ledger, fake_ledger) -> None:
        runner.invoke(app, ["ledger", "deploy", "--election-id", str(seeded)])

        result = runner.invoke(app, ["ledger", "sync"])

        assert result.exit_code == 0, result.output
        assert "advanced (pending -> active, expected active)" in result.output
        assert fake_ledger.elections[1].status is LedgerStatus.ACTIVE

    def test_sync_undeployed_fails(self, seeded, with_ledger) -> None:
        result = runner.invoke(app, ["ledger", "sync", "--election-id", str(seeded)])
        assert result.exit_code == 1
        assert "not deployed" in result.output

    def test_status(self, seeded, with_ledger) -> None:
        runner.invoke(app, ["ledger", "deploy", "--election-id", str(seeded)])

        result = runner.invoke(app, ["ledger", "status", "--election-id", str(seeded)])

        assert result.exit_code == 0, result.output
        assert "pending, expected active" in result.output
        assert "Ada Lovelace" in result.output

    def test_finalize_requires_completion(self, seeded, with_ledger) -> None:
        runner.invoke(app, ["ledger", "deploy", "--election-id", str(seeded)])

        result = runner.invoke(app, ["ledger", "finalize", "--election-id", str(seeded)])

        assert result.exit_code == 1
        assert "only completed elections can be finalized" in result.output

    def test_finalize_completed(self, seeded, with_ledger, fake_ledger, clock) -> None:
        runner.invoke(app, ["ledger", "deploy", "--election-id", str(seeded)])
        clock.advance(hours=2)
        runner.invoke(app, ["ledger", "sync"])

        result = runner.invoke(app, ["ledger", "finalize", "--election-id", str(seeded)])

        assert result.exit_code == 0, result.output
        assert "Finalized results" in result.output
        assert fake_ledger.elections[1].finalized
