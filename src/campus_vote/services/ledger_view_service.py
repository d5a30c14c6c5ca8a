"""Read-only ledger view of a deployed election with live vote counts.

Every call reads the ledger directly; nothing is cached.
"""

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.lib.ledger.context import LedgerContext
from campus_vote.lib.ledger.errors import LedgerError
from campus_vote.lib.ledger.timing import expected_ledger_status
from campus_vote.schemas.ledger import LedgerElectionResponse, LedgerEntryVotes
from campus_vote.services.election_service import get_election, list_roster
from campus_vote.services.status_sync_service import ElectionNotDeployedError, status_name


async def get_ledger_view(session: AsyncSession, ledger: LedgerContext, election_id: int) -> LedgerElectionResponse:
    """Read an election's ledger state and per-entry vote counts.

    Entries whose handle is unknown, or whose count cannot be read, report
    ``vote_count=None`` rather than failing the whole view.

    Raises:
        ElectionNotFoundError: If the election does not exist.
        ElectionNotDeployedError: If the election has no ledger handle.
        LedgerError: If the election itself cannot be read from the ledger.
    """
    election = await get_election(session, election_id)
    if election.ledger_handle is None:
        msg = f"Election {election_id} is not deployed to the ledger"
        raise ElectionNotDeployedError(msg)
    handle = election.ledger_handle
    paired = election.position == "president_vp"
    roster = await list_roster(session, election_id)

    details = await ledger.gateway.get_election_details(handle)
    entries: list[LedgerEntryVotes] = []
    for entry in roster:
        if paired and entry.running_mate_id is None:
            continue
        target = entry.ledger_ticket_handle if paired else entry.candidate.ledger_handle
        count: int | None = None
        if target is not None:
            try:
                count = await ledger.gateway.get_vote_count(target, ticket=paired)
            except LedgerError as exc:
                logger.warning("Could not read vote count for entry {}: {}", entry.id, exc.message)
        entries.append(
            LedgerEntryVotes(
                entry_id=entry.id,
                candidate_id=entry.candidate_id,
                full_name=entry.candidate.full_name,
                running_mate_name=entry.running_mate.full_name if entry.running_mate else None,
                ledger_handle=target,
                is_ticket=paired,
                vote_count=count,
            )
        )

    return LedgerElectionResponse(
        election_id=election_id,
        ledger_handle=handle,
        category=details.category.name.lower(),
        status=status_name(details.status),
        expected_status=status_name(expected_ledger_status(details.start, details.end, ledger.now_unix())),
        start=datetime.fromtimestamp(details.start, UTC),
        end=datetime.fromtimestamp(details.end, UTC),
        total_votes_cast=details.total_votes_cast,
        results_finalized=details.results_finalized,
        entries=entries,
    )
