"""Vote submission coordinator -- one student's vote in one election.

Preconditions are checked strictly in order, each yielding its own outcome:
deployed, not already voted (locally, before any ledger call), eligible
faculty, ledger status active, candidate on the ballot.  A ledger election
that is still pending inside its window gets one status sync as a
self-heal before the status is checked again.

Local participation is recorded only when the ledger confirms the vote or
reports that the student's own account had already voted.  An already-voted
revert against the shared relay account says nothing about this student, so
it is reported as a failure.  Every other outcome leaves local state alone
so the student can retry.
"""

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.core.faculties import is_faculty_eligible
from campus_vote.lib.ledger.context import LedgerContext
from campus_vote.lib.ledger.errors import LedgerError, LedgerErrorKind
from campus_vote.lib.ledger.gateway import LedgerElection, LedgerStatus
from campus_vote.lib.ledger.timing import is_within_window
from campus_vote.models.election import ElectionCandidate
from campus_vote.models.user import User
from campus_vote.models.vote_participation import VoteParticipation
from campus_vote.schemas.ledger import NotActiveReason, VoteOutcome, VoteResult
from campus_vote.services import identity_mapper
from campus_vote.services.election_service import get_election
from campus_vote.services.status_sync_service import sync_ledger_election

CONGESTION_RETRY_PRIORITY = 1

_FAILURE_OUTCOMES: dict[LedgerErrorKind, VoteOutcome] = {
    LedgerErrorKind.USER_REJECTED: VoteOutcome.USER_REJECTED,
    LedgerErrorKind.NETWORK_CONGESTION: VoteOutcome.NETWORK_CONGESTION,
    LedgerErrorKind.INSUFFICIENT_FUNDS: VoteOutcome.INSUFFICIENT_FUNDS,
    LedgerErrorKind.ELECTION_NOT_ACTIVE: VoteOutcome.ELECTION_NOT_ACTIVE,
}

_FAILURE_MESSAGES: dict[VoteOutcome, str] = {
    VoteOutcome.USER_REJECTED: "Vote cancelled; nothing was recorded",
    VoteOutcome.NETWORK_CONGESTION: "The ledger is congested; please try again shortly",
    VoteOutcome.INSUFFICIENT_FUNDS: "The voting account cannot pay for the transaction",
    VoteOutcome.ELECTION_NOT_ACTIVE: "The ledger rejected the vote because the election is not active",
}


async def has_participated(session: AsyncSession, user_id: int, election_id: int) -> bool:
    result = await session.execute(
        select(VoteParticipation.id).where(
            VoteParticipation.user_id == user_id,
            VoteParticipation.election_id == election_id,
        )
    )
    return result.first() is not None


async def record_participation(
    session: AsyncSession,
    user_id: int,
    election_id: int,
    *,
    tx_hash: str | None,
    source: str,
) -> None:
    """Insert the participation row; an existing row for the pair is left as is."""
    session.add(VoteParticipation(user_id=user_id, election_id=election_id, tx_hash=tx_hash, source=source))
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.info("Participation of user {} in election {} already recorded", user_id, election_id)


def _not_active_reason(details: LedgerElection, now: int) -> NotActiveReason | None:
    """Reason the ledger would refuse a vote right now, or None if it is open."""
    if details.status is LedgerStatus.CANCELLED:
        return NotActiveReason.CANCELLED
    if details.status is LedgerStatus.COMPLETED or now > details.end:
        return NotActiveReason.ALREADY_ENDED
    if now < details.start:
        return NotActiveReason.NOT_YET_STARTED
    if details.status is LedgerStatus.PENDING:
        return NotActiveReason.STUCK_PENDING
    return None


async def _check_active(ledger: LedgerContext, election_id: int, handle: int) -> NotActiveReason | None:
    details = await ledger.gateway.get_election_details(handle)
    now = ledger.now_unix()
    if details.status is LedgerStatus.PENDING and is_within_window(details.start, details.end, now):
        logger.info("Election {} pending inside its window; syncing before vote", election_id)
        try:
            await sync_ledger_election(ledger, election_id, handle)
        except LedgerError as exc:
            logger.warning("Status sync before vote in election {} failed ({}): {}", election_id, exc.kind, exc.message)
        details = await ledger.gateway.get_election_details(handle)
        now = ledger.now_unix()
    return _not_active_reason(details, now)


async def _resolve_target(
    session: AsyncSession,
    ledger: LedgerContext,
    election_id: int,
    position: str,
    candidate_id: int,
) -> int | None:
    """Ledger handle to vote for: the candidate's own, or the ticket containing them."""
    if position == "president_vp":
        query = select(ElectionCandidate).where(
            ElectionCandidate.election_id == election_id,
            ElectionCandidate.running_mate_id.is_not(None),
            (ElectionCandidate.candidate_id == candidate_id) | (ElectionCandidate.running_mate_id == candidate_id),
        )
    else:
        query = select(ElectionCandidate).where(
            ElectionCandidate.election_id == election_id,
            ElectionCandidate.candidate_id == candidate_id,
        )
    entry = (await session.execute(query.limit(1))).scalar_one_or_none()
    if entry is None:
        return None

    if position == "president_vp":
        if entry.ledger_ticket_handle is not None:
            return entry.ledger_ticket_handle
        president, vice = entry.candidate, entry.running_mate
        if vice is None or not president.student_id or not vice.student_id:
            return None
        entry_id = entry.id
        handle = await identity_mapper.resolve_ticket_handle(ledger, president.student_id, vice.student_id)
        if handle is not None:
            await identity_mapper.persist_ticket_handle(session, entry_id, handle)
        return handle

    candidate = entry.candidate
    if candidate.ledger_handle is not None:
        return candidate.ledger_handle
    if not candidate.student_id:
        return None
    candidate_pk = candidate.id
    handle = await identity_mapper.resolve_candidate_handle(ledger, candidate.student_id)
    if handle is not None:
        await identity_mapper.persist_candidate_handle(session, candidate_pk, handle)
    return handle


async def cast_vote(
    session: AsyncSession,
    ledger: LedgerContext,
    election_id: int,
    user: User,
    candidate_id: int,
) -> VoteResult:
    """Submit one user's vote and classify the outcome.

    Args:
        session: Database session.
        ledger: Ledger context to read and submit through.
        election_id: Local election id.
        user: The voting student.
        candidate_id: Local id of the chosen candidate (either member of a
            ticket on paired ballots).

    Returns:
        The single definitive outcome of this attempt.

    Raises:
        ElectionNotFoundError: If the election does not exist.
        LedgerError: If a ledger read needed before submitting fails.
    """
    election = await get_election(session, election_id)
    handle = election.ledger_handle
    position = election.position
    eligible = list(election.eligible_faculties or [])
    user_id, faculty = user.id, user.faculty

    def result(outcome: VoteOutcome, message: str, reason: NotActiveReason | None = None) -> VoteResult:
        return VoteResult(election_id=election_id, outcome=outcome, message=message, reason=reason)

    if handle is None:
        return result(VoteOutcome.NOT_DEPLOYED, "This election is not on the ledger yet")
    if await has_participated(session, user_id, election_id):
        return result(VoteOutcome.ALREADY_VOTED, "You have already voted in this election")
    if not is_faculty_eligible(faculty, eligible):
        return result(VoteOutcome.NOT_ELIGIBLE, "Your faculty is not eligible for this election")

    reason = await _check_active(ledger, election_id, handle)
    if reason is not None:
        return result(VoteOutcome.ELECTION_NOT_ACTIVE, f"Election is not active ({reason.value})", reason=reason)

    target = await _resolve_target(session, ledger, election_id, position, candidate_id)
    if target is None:
        return result(VoteOutcome.UNKNOWN_CANDIDATE, f"Candidate {candidate_id} is not on this ballot")

    relayed = ledger.relays_ballots(user_id)
    resubmitted = False
    try:
        try:
            receipt = await ledger.gateway.submit_vote(handle, target, voter=user_id)
        except LedgerError as exc:
            if exc.kind is not LedgerErrorKind.NETWORK_CONGESTION:
                raise
            logger.warning("Vote by user {} in election {} hit congestion; resubmitting once", user_id, election_id)
            resubmitted = True
            receipt = await ledger.gateway.submit_vote(
                handle, target, priority=CONGESTION_RETRY_PRIORITY, voter=user_id
            )
    except LedgerError as exc:
        return await _classify_failure(session, exc, election_id, user_id, resubmitted, relayed=relayed)

    await record_participation(session, user_id, election_id, tx_hash=receipt.tx_hash, source="ledger")
    logger.info("User {} voted in election {} (tx {})", user_id, election_id, receipt.tx_hash)
    return VoteResult(
        election_id=election_id,
        outcome=VoteOutcome.SUCCESS,
        message="Vote recorded",
        tx_hash=receipt.tx_hash,
        resubmitted=resubmitted,
    )


async def _classify_failure(
    session: AsyncSession,
    exc: LedgerError,
    election_id: int,
    user_id: int,
    resubmitted: bool,
    *,
    relayed: bool,
) -> VoteResult:
    if exc.kind is LedgerErrorKind.ALREADY_VOTED and relayed:
        logger.error(
            "Ballot of user {} in election {} refused: the shared relay account has already voted",
            user_id,
            election_id,
        )
        return VoteResult(
            election_id=election_id,
            outcome=VoteOutcome.UNCLASSIFIED,
            message="The ledger already holds a ballot from the shared voting account; your vote was not cast",
            resubmitted=resubmitted,
        )
    if exc.kind is LedgerErrorKind.ALREADY_VOTED:
        logger.info("Ledger already has a vote from user {} in election {}; recording it", user_id, election_id)
        await record_participation(session, user_id, election_id, tx_hash=None, source="ledger_existing")
        return VoteResult(
            election_id=election_id,
            outcome=VoteOutcome.ALREADY_VOTED,
            message="You have already voted in this election",
            resubmitted=resubmitted,
        )

    outcome = _FAILURE_OUTCOMES.get(exc.kind, VoteOutcome.UNCLASSIFIED)
    if outcome is VoteOutcome.USER_REJECTED:
        logger.info("Vote by user {} in election {} cancelled", user_id, election_id)
    else:
        logger.error("Vote by user {} in election {} failed ({}): {}", user_id, election_id, exc.kind, exc.message)
    return VoteResult(
        election_id=election_id,
        outcome=outcome,
        reason=NotActiveReason.REJECTED_BY_LEDGER if outcome is VoteOutcome.ELECTION_NOT_ACTIVE else None,
        message=_FAILURE_MESSAGES.get(outcome, exc.message),
        resubmitted=resubmitted,
    )
