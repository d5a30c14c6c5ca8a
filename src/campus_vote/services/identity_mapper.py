"""Mapping between local ids and ledger handles.

The ledger knows candidates only by student id and tickets only by the
student ids of the pair, so lookups always go through those keys.  Writes
that the ledger rejects as duplicates are resolved by reading the existing
handle back, which makes registration safe to retry after a partial
failure or a race with another administrator.

Persisting a handle locally is a last-write-wins update.  Failing to persist
is never fatal: the ledger write has already happened and the next deploy
will resolve the same handle again.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.lib.ledger.context import LedgerContext
from campus_vote.lib.ledger.errors import LedgerError, LedgerErrorKind
from campus_vote.models.candidate import Candidate
from campus_vote.models.election import Election, ElectionCandidate

_DUPLICATE_KINDS = frozenset({LedgerErrorKind.REGISTRATION_CONFLICT, LedgerErrorKind.CREATION_CONFLICT})


@dataclass(frozen=True)
class HandleResolution:
    """A ledger handle plus whether obtaining it mined a new transaction."""

    handle: int
    created: bool


async def resolve_candidate_handle(ledger: LedgerContext, student_id: str) -> int | None:
    """Look up a candidate's ledger handle by student id; None if unregistered."""
    try:
        return await ledger.gateway.get_candidate_handle(student_id)
    except LedgerError as exc:
        if exc.kind is LedgerErrorKind.NOT_FOUND:
            return None
        raise


async def register_candidate(ledger: LedgerContext, student_id: str) -> HandleResolution:
    """Register a candidate on the ledger, reusing an existing registration.

    Raises:
        LedgerError: For any failure other than a duplicate registration.
    """
    try:
        handle = await ledger.gateway.register_candidate(student_id)
    except LedgerError as exc:
        if exc.kind not in _DUPLICATE_KINDS:
            raise
        logger.info("Candidate {} already registered on ledger; resolving existing handle", student_id)
        existing = await resolve_candidate_handle(ledger, student_id)
        if existing is None:
            msg = f"Ledger reported student {student_id} as registered but returned no handle"
            raise LedgerError(msg) from exc
        return HandleResolution(handle=existing, created=False)
    logger.info("Registered candidate {} on ledger as handle {}", student_id, handle)
    return HandleResolution(handle=handle, created=True)


async def resolve_ticket_handle(ledger: LedgerContext, president_student_id: str, vp_student_id: str) -> int | None:
    """Look up the ticket handle for a president/vice-president pair; None if absent."""
    try:
        return await ledger.gateway.get_ticket_handle(president_student_id, vp_student_id)
    except LedgerError as exc:
        if exc.kind is LedgerErrorKind.NOT_FOUND:
            return None
        raise


async def register_ticket(ledger: LedgerContext, president_student_id: str, vp_student_id: str) -> HandleResolution:
    """Create a ticket on the ledger, reusing an existing one for the same pair."""
    try:
        handle = await ledger.gateway.create_ticket(president_student_id, vp_student_id)
    except LedgerError as exc:
        if exc.kind not in _DUPLICATE_KINDS:
            raise
        logger.info("Ticket {}/{} already on ledger; resolving existing handle", president_student_id, vp_student_id)
        existing = await resolve_ticket_handle(ledger, president_student_id, vp_student_id)
        if existing is None:
            msg = f"Ledger reported ticket {president_student_id}/{vp_student_id} as existing but returned no handle"
            raise LedgerError(msg) from exc
        return HandleResolution(handle=existing, created=False)
    logger.info("Created ticket {}/{} on ledger as handle {}", president_student_id, vp_student_id, handle)
    return HandleResolution(handle=handle, created=True)


async def lookup_election_handle(session: AsyncSession, election_id: int) -> int | None:
    result = await session.execute(select(Election.ledger_handle).where(Election.id == election_id))
    return result.scalar_one_or_none()


async def _persist(session: AsyncSession, model: type, row_id: int, field: str, handle: int) -> bool:
    what = f"{field}={handle} for {model.__tablename__} {row_id}"
    try:
        row = await session.get(model, row_id)
        if row is None:
            logger.warning("Failed to persist {}: row no longer exists", what)
            return False
        setattr(row, field, handle)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.warning("Failed to persist {}: {}", what, exc)
        return False
    return True


async def persist_election_handle(session: AsyncSession, election_id: int, handle: int) -> bool:
    """Store an election's ledger handle; returns False (and logs) on failure."""
    return await _persist(session, Election, election_id, "ledger_handle", handle)


async def persist_candidate_handle(session: AsyncSession, candidate_id: int, handle: int) -> bool:
    """Store a candidate's ledger handle; returns False (and logs) on failure."""
    return await _persist(session, Candidate, candidate_id, "ledger_handle", handle)


async def persist_ticket_handle(session: AsyncSession, entry_id: int, handle: int) -> bool:
    """Store a roster entry's ticket handle; returns False (and logs) on failure."""
    return await _persist(session, ElectionCandidate, entry_id, "ledger_ticket_handle", handle)
