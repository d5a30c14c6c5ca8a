"""Unit tests for the deployment reconciler against an in-memory ledger."""

from unittest.mock import AsyncMock, patch

import pytest

from campus_vote.lib.ledger.errors import LedgerErrorKind
from campus_vote.schemas.ledger import DeployStep
from campus_vote.services.deployment_service import (
    CANDIDATE_NOT_REGISTERED,
    ELECTION_NOT_CREATED,
    MISSING_RUNNING_MATE,
    deploy_election,
)
from campus_vote.services.election_service import ElectionNotFoundError


@pytest.fixture
async def senate(make_election, make_candidate, add_to_ballot):
    election = await make_election()
    ada = await make_candidate("Ada Lovelace", "S-1")
    alan = await make_candidate("Alan Turing", "S-2")
    await add_to_ballot(election, ada)
    await add_to_ballot(election, alan)
    return election, ada, alan


class TestSenatorDeploy:
    @pytest.mark.asyncio
    async def test_fresh_deploy(self, async_session, ledger, fake_ledger, senate) -> None:
        election, ada, alan = senate

        report = await deploy_election(async_session, ledger, election.id)

        assert report.ok
        assert report.ledger_election_handle == 1
        assert fake_ledger.writes == [
            "register_candidate",
            "register_candidate",
            "create_election",
            "attach_candidate",
            "attach_candidate",
        ]
        assert report.ledger_writes == 5
        assert fake_ledger.elections[1].candidates == [ada.ledger_handle, alan.ledger_handle]
        assert election.ledger_handle == 1

    @pytest.mark.asyncio
    async def test_redeploy_is_idempotent(self, async_session, ledger, fake_ledger, senate) -> None:
        election, _, _ = senate
        await deploy_election(async_session, ledger, election.id)
        writes_before = list(fake_ledger.writes)

        report = await deploy_election(async_session, ledger, election.id)

        assert fake_ledger.writes == writes_before
        assert report.ok
        assert report.ledger_writes == 0
        assert [outcome.detail for outcome in report.succeeded] == ["already attached", "already attached"]

    @pytest.mark.asyncio
    async def test_registration_conflict_is_recovered(self, async_session, ledger, fake_ledger, senate) -> None:
        """A candidate registered by someone else is resolved, not re-registered."""
        election, ada, _ = senate
        fake_ledger.candidates["S-1"] = 77

        report = await deploy_election(async_session, ledger, election.id)

        assert report.ok
        assert ada.ledger_handle == 77
        register = [o for o in report.succeeded if o.step is DeployStep.REGISTER_CANDIDATE and o.entity_id == ada.id]
        assert register[0].detail == "already registered"
        assert not register[0].ledger_write

    @pytest.mark.asyncio
    async def test_attachment_conflict_counts_as_success(self, async_session, ledger, fake_ledger, senate) -> None:
        election, _, _ = senate
        fake_ledger.fail_next("get_election_candidates", "connection reset")
        fake_ledger.fail_next("attach_candidate", "execution reverted: Candidate already added to election")

        report = await deploy_election(async_session, ledger, election.id)

        assert report.ok
        assert any("Could not read attached entries" in warning for warning in report.warnings)
        assert report.succeeded[-2].detail == "already attached"

    @pytest.mark.asyncio
    async def test_candidate_without_student_id(
        self, async_session, ledger, make_election, make_candidate, add_to_ballot
    ) -> None:
        election = await make_election()
        nobody = await make_candidate("No Id", None)
        entry = await add_to_ballot(election, nobody)

        report = await deploy_election(async_session, ledger, election.id)

        assert any("has no student id" in warning for warning in report.warnings)
        assert report.failed[0].entity_id == entry.id
        assert report.failed[0].detail == CANDIDATE_NOT_REGISTERED

    @pytest.mark.asyncio
    async def test_registration_failure_is_isolated(self, async_session, ledger, fake_ledger, senate) -> None:
        election, ada, alan = senate
        fake_ledger.fail_next("register_candidate", "insufficient funds for gas * price + value")

        report = await deploy_election(async_session, ledger, election.id)

        failed_steps = [(o.step, o.entity_id) for o in report.failed]
        assert (DeployStep.REGISTER_CANDIDATE, ada.id) in failed_steps
        assert report.failed[0].kind is LedgerErrorKind.INSUFFICIENT_FUNDS
        assert alan.ledger_handle is not None
        assert fake_ledger.elections[1].candidates == [alan.ledger_handle]


class TestElectionCreation:
    @pytest.mark.asyncio
    async def test_create_failure_marks_every_entry(self, async_session, ledger, fake_ledger, senate) -> None:
        election, _, _ = senate
        fake_ledger.fail_next("create_election", "insufficient funds for gas * price + value")

        report = await deploy_election(async_session, ledger, election.id)

        assert not report.ok
        assert report.ledger_election_handle is None
        assert report.failed[0].step is DeployStep.CREATE_ELECTION
        assert [o.detail for o in report.failed[1:]] == [ELECTION_NOT_CREATED, ELECTION_NOT_CREATED]
        assert "attach_candidate" not in fake_ledger.calls
        assert election.ledger_handle is None

    @pytest.mark.asyncio
    async def test_unsaved_handle_is_a_warning(self, async_session, ledger, senate) -> None:
        election, _, _ = senate
        with patch(
            "campus_vote.services.identity_mapper.persist_election_handle",
            new=AsyncMock(return_value=False),
        ):
            report = await deploy_election(async_session, ledger, election.id)

        assert report.ok
        assert report.ledger_election_handle == 1
        assert any("not saved locally" in warning for warning in report.warnings)

    @pytest.mark.asyncio
    async def test_unknown_election(self, async_session, ledger) -> None:
        with pytest.raises(ElectionNotFoundError):
            await deploy_election(async_session, ledger, 999)


class TestTicketDeploy:
    @pytest.mark.asyncio
    async def test_tickets_are_created_and_attached(
        self, async_session, ledger, fake_ledger, make_election, make_candidate, add_to_ballot
    ) -> None:
        election = await make_election("president_vp", name="President 2026")
        president = await make_candidate("Grace Hopper", "P-1", position="president")
        vice = await make_candidate("Katherine Johnson", "V-1", position="vice_president")
        ticket_entry = await add_to_ballot(election, president, running_mate=vice)
        vice_entry = await add_to_ballot(election, vice)

        report = await deploy_election(async_session, ledger, election.id)

        assert report.ok
        assert fake_ledger.writes == [
            "register_candidate",
            "register_candidate",
            "create_election",
            "create_ticket",
            "attach_ticket",
        ]
        assert ticket_entry.ledger_ticket_handle == 101
        assert fake_ledger.elections[1].tickets == [101]
        covered = [o for o in report.succeeded if o.entity_id == vice_entry.id and o.step is DeployStep.ATTACH_TICKET]
        assert covered[0].detail == f"covered by entry {ticket_entry.id}"

    @pytest.mark.asyncio
    async def test_president_without_running_mate_fails(
        self, async_session, ledger, fake_ledger, make_election, make_candidate, add_to_ballot
    ) -> None:
        election = await make_election("president_vp", name="President 2026")
        president = await make_candidate("Grace Hopper", "P-1", position="president")
        entry = await add_to_ballot(election, president)

        report = await deploy_election(async_session, ledger, election.id)

        assert report.failed[0].entity_id == entry.id
        assert report.failed[0].detail == MISSING_RUNNING_MATE
        assert fake_ledger.elections[1].tickets == []
