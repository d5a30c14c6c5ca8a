"""Unit tests for the candidate service."""

import pytest

from campus_vote.schemas.candidate import CandidateCreateRequest
from campus_vote.services.candidate_service import (
    CandidateNotFoundError,
    DuplicateCandidateError,
    create_candidate,
    get_candidate,
    list_candidates,
)


class TestCreateCandidate:
    @pytest.mark.asyncio
    async def test_create_normalizes_fields(self, async_session) -> None:
        request = CandidateCreateRequest(
            full_name=" Ada Lovelace ",
            student_id=" S-1 ",
            position="senator",
            faculty="School of IT and Engineering",
        )

        candidate = await create_candidate(async_session, request)

        assert candidate.full_name == "Ada Lovelace"
        assert candidate.student_id == "S-1"
        assert candidate.faculty == "SITE"
        assert candidate.ledger_handle is None

    @pytest.mark.asyncio
    async def test_student_id_is_optional(self, async_session) -> None:
        candidate = await create_candidate(
            async_session,
            CandidateCreateRequest(full_name="No Id", position="senator", faculty="SB"),
        )
        assert candidate.student_id is None

    @pytest.mark.asyncio
    async def test_duplicate_student_id(self, async_session) -> None:
        request = CandidateCreateRequest(full_name="Ada", student_id="S-1", position="senator", faculty="SITE")
        await create_candidate(async_session, request)

        with pytest.raises(DuplicateCandidateError, match="S-1"):
            await create_candidate(async_session, request)


class TestReadCandidates:
    @pytest.mark.asyncio
    async def test_get_missing(self, async_session) -> None:
        with pytest.raises(CandidateNotFoundError):
            await get_candidate(async_session, 404)

    @pytest.mark.asyncio
    async def test_list_filters_and_paginates(self, async_session, make_candidate) -> None:
        await make_candidate("Zed Senator", "S-1")
        await make_candidate("Amy Senator", "S-2")
        await make_candidate("Grace Hopper", "P-1", position="president")

        senators, total = await list_candidates(async_session, position="senator")
        first_page, everyone = await list_candidates(async_session, page=1, page_size=2)

        assert total == 2
        assert [c.full_name for c in senators] == ["Amy Senator", "Zed Senator"]
        assert everyone == 3
        assert len(first_page) == 2
