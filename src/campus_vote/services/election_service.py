"""Election service -- local election definitions and ballot composition.

Once an election carries a ledger handle its schedule and position are
frozen: the ledger copy was created from them and cannot be changed, so
editing them locally would silently desynchronise the two.
"""

from datetime import datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.core.faculties import ALL_FACULTIES, faculty_code, is_all_faculties
from campus_vote.lib.ledger.timing import ensure_aware, local_status, utc_now
from campus_vote.models.candidate import Candidate
from campus_vote.models.election import Election, ElectionCandidate
from campus_vote.schemas.election import (
    ElectionCreateRequest,
    ElectionResponse,
    ElectionUpdateRequest,
    RosterEntryRequest,
)
from campus_vote.services.candidate_service import get_candidate

_LOCKED_FIELDS: frozenset[str] = frozenset({"start_time", "end_time", "position"})

# Candidate positions accepted on each ballot category.
_BALLOT_POSITIONS: dict[str, frozenset[str]] = {
    "senator": frozenset({"senator"}),
    "president_vp": frozenset({"president", "vice_president"}),
}


class ElectionNotFoundError(ValueError):
    """Raised when an election does not exist."""


class ElectionLockedError(ValueError):
    """Raised when editing schedule or position of an election already on the ledger."""


class RosterError(ValueError):
    """Raised when a roster entry does not fit the election's ballot."""


class DuplicateRosterEntryError(RosterError):
    """Raised when a candidate is already on the election's roster."""


def normalize_eligible_faculties(values: list[str]) -> list[str]:
    """Normalise faculty names to codes; collapse any "all" sentinel to ``[]``."""
    if is_all_faculties(values):
        return []
    seen: list[str] = []
    for value in values:
        if not value.strip() or value.strip().lower() == ALL_FACULTIES:
            continue
        code = faculty_code(value)
        if code not in seen:
            seen.append(code)
    return seen


def election_to_response(election: Election, now: datetime | None = None) -> ElectionResponse:
    """Build the API view of an election, deriving its status from ``now``."""
    status = local_status(election.start_time, election.end_time, now or utc_now())
    return ElectionResponse(
        id=election.id,
        name=election.name,
        description=election.description,
        position=election.position,
        eligible_faculties=list(election.eligible_faculties or []),
        start_time=ensure_aware(election.start_time),
        end_time=ensure_aware(election.end_time),
        status=status.value,
        ledger_handle=election.ledger_handle,
        created_at=election.created_at,
        updated_at=election.updated_at,
    )


async def create_election(
    session: AsyncSession,
    request: ElectionCreateRequest,
    *,
    created_by: int | None = None,
) -> Election:
    """Create an election.

    Args:
        session: Database session.
        request: Election definition.
        created_by: Id of the creating administrator.

    Returns:
        The created Election.
    """
    election = Election(
        name=request.name.strip(),
        description=request.description,
        position=request.position,
        eligible_faculties=normalize_eligible_faculties(request.eligible_faculties),
        start_time=request.start_time,
        end_time=request.end_time,
        created_by=created_by,
    )
    session.add(election)
    await session.commit()
    await session.refresh(election)
    logger.info("Created election {} ({}, {})", election.id, election.name, election.position)
    return election


async def get_election(session: AsyncSession, election_id: int) -> Election:
    """Return an election by id.

    Raises:
        ElectionNotFoundError: If no such election exists.
    """
    election = await session.get(Election, election_id)
    if election is None:
        msg = f"Election {election_id} not found"
        raise ElectionNotFoundError(msg)
    return election


async def list_elections(
    session: AsyncSession,
    *,
    page: int = 1,
    page_size: int = 20,
    deployed: bool | None = None,
) -> tuple[list[Election], int]:
    """List elections, newest start first.

    Args:
        session: Database session.
        page: Page number (1-based).
        page_size: Items per page.
        deployed: When set, only elections with (True) or without (False) a ledger handle.

    Returns:
        Tuple of (elections, total count).
    """
    query = select(Election)
    count_query = select(func.count(Election.id))
    if deployed is not None:
        condition = Election.ledger_handle.is_not(None) if deployed else Election.ledger_handle.is_(None)
        query = query.where(condition)
        count_query = count_query.where(condition)

    total = (await session.execute(count_query)).scalar_one()
    result = await session.execute(
        query.order_by(Election.start_time.desc(), Election.id.desc()).offset((page - 1) * page_size).limit(page_size)
    )
    return list(result.scalars().all()), total


async def list_deployed_election_ids(session: AsyncSession) -> list[int]:
    result = await session.execute(select(Election.id).where(Election.ledger_handle.is_not(None)).order_by(Election.id))
    return list(result.scalars().all())


async def update_election(session: AsyncSession, election_id: int, request: ElectionUpdateRequest) -> Election:
    """Apply a partial update to an election.

    Raises:
        ElectionNotFoundError: If the election does not exist.
        ElectionLockedError: If a locked field would change on a deployed election.
        ValueError: If the resulting window is empty.
    """
    election = await get_election(session, election_id)
    changes = request.model_dump(exclude_unset=True)

    if election.ledger_handle is not None:
        locked = sorted(field for field in _LOCKED_FIELDS & changes.keys() if _differs(election, field, changes[field]))
        if locked:
            msg = (
                f"Election {election_id} is deployed to the ledger (handle {election.ledger_handle}); "
                f"{', '.join(locked)} cannot be changed"
            )
            raise ElectionLockedError(msg)

    start = changes.get("start_time", election.start_time)
    end = changes.get("end_time", election.end_time)
    if ensure_aware(start) >= ensure_aware(end):
        msg = "start_time must be before end_time"
        raise ValueError(msg)

    if "eligible_faculties" in changes and changes["eligible_faculties"] is not None:
        changes["eligible_faculties"] = normalize_eligible_faculties(changes["eligible_faculties"])
    for field, value in changes.items():
        if value is not None:
            setattr(election, field, value)

    await session.commit()
    await session.refresh(election)
    logger.info("Updated election {}: {}", election.id, sorted(changes))
    return election


def _differs(election: Election, field: str, value: object) -> bool:
    current = getattr(election, field)
    if isinstance(current, datetime) and isinstance(value, datetime):
        return ensure_aware(current) != ensure_aware(value)
    return current != value


async def list_roster(session: AsyncSession, election_id: int) -> list[ElectionCandidate]:
    """Return the ballot entries of an election in insertion order."""
    await get_election(session, election_id)
    result = await session.execute(
        select(ElectionCandidate).where(ElectionCandidate.election_id == election_id).order_by(ElectionCandidate.id)
    )
    return list(result.scalars().all())


async def add_roster_entry(session: AsyncSession, election_id: int, request: RosterEntryRequest) -> ElectionCandidate:
    """Put a candidate (and optional running mate) on an election's ballot.

    Raises:
        ElectionNotFoundError: If the election does not exist.
        CandidateNotFoundError: If a referenced candidate does not exist.
        RosterError: If the candidates do not fit the ballot category.
        DuplicateRosterEntryError: If the candidate is already on the ballot.
    """
    election = await get_election(session, election_id)
    candidate = await get_candidate(session, request.candidate_id)
    running_mate: Candidate | None = None
    if request.running_mate_id is not None:
        running_mate = await get_candidate(session, request.running_mate_id)

    _check_fits_ballot(election, candidate, running_mate)

    entry = ElectionCandidate(
        election_id=election.id,
        candidate_id=candidate.id,
        running_mate_id=running_mate.id if running_mate else None,
    )
    session.add(entry)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        msg = f"Candidate {request.candidate_id} is already on the ballot of election {election_id}"
        raise DuplicateRosterEntryError(msg) from None
    await session.refresh(entry, attribute_names=["candidate", "running_mate"])
    logger.info(
        "Added candidate {} to election {} (running mate: {})",
        candidate.id,
        election_id,
        running_mate.id if running_mate else None,
    )
    return entry


def _check_fits_ballot(election: Election, candidate: Candidate, running_mate: Candidate | None) -> None:
    allowed = _BALLOT_POSITIONS[election.position]
    if candidate.position not in allowed:
        msg = f"A {candidate.position} candidate cannot stand in a {election.position} election"
        raise RosterError(msg)
    if running_mate is None:
        return
    if election.position != "president_vp":
        msg = "Running mates are only allowed on president/vice-president ballots"
        raise RosterError(msg)
    if candidate.position != "president" or running_mate.position != "vice_president":
        msg = "The running-mate pointer must go from a president to a vice-president"
        raise RosterError(msg)
    if running_mate.id == candidate.id:
        msg = "A candidate cannot be their own running mate"
        raise RosterError(msg)
