"""Candidate service -- CRUD for candidates standing in elections."""

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.core.faculties import faculty_code
from campus_vote.models.candidate import Candidate
from campus_vote.schemas.candidate import CandidateCreateRequest


class CandidateNotFoundError(ValueError):
    """Raised when a candidate does not exist."""


class DuplicateCandidateError(ValueError):
    """Raised when a student id is already used by another candidate."""


async def create_candidate(session: AsyncSession, request: CandidateCreateRequest) -> Candidate:
    """Create a candidate.

    Args:
        session: Database session.
        request: Candidate data.

    Returns:
        The created Candidate.

    Raises:
        DuplicateCandidateError: If the student id is already taken.
    """
    student_id = request.student_id.strip() if request.student_id else None
    candidate = Candidate(
        full_name=request.full_name.strip(),
        student_id=student_id or None,
        position=request.position,
        faculty=faculty_code(request.faculty),
    )
    session.add(candidate)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        msg = f"A candidate with student id '{student_id}' already exists"
        raise DuplicateCandidateError(msg) from None
    await session.refresh(candidate)
    logger.info("Created candidate {} ({}, {})", candidate.id, candidate.full_name, candidate.position)
    return candidate


async def get_candidate(session: AsyncSession, candidate_id: int) -> Candidate:
    """Return a candidate by id.

    Raises:
        CandidateNotFoundError: If no such candidate exists.
    """
    candidate = await session.get(Candidate, candidate_id)
    if candidate is None:
        msg = f"Candidate {candidate_id} not found"
        raise CandidateNotFoundError(msg)
    return candidate


async def list_candidates(
    session: AsyncSession,
    *,
    page: int = 1,
    page_size: int = 20,
    position: str | None = None,
) -> tuple[list[Candidate], int]:
    """List candidates, optionally filtered by position.

    Returns:
        Tuple of (candidates, total count).
    """
    query = select(Candidate)
    count_query = select(func.count(Candidate.id))
    if position is not None:
        query = query.where(Candidate.position == position)
        count_query = count_query.where(Candidate.position == position)

    total = (await session.execute(count_query)).scalar_one()
    result = await session.execute(
        query.order_by(Candidate.full_name, Candidate.id).offset((page - 1) * page_size).limit(page_size)
    )
    return list(result.scalars().all()), total
