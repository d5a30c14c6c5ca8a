"""Status synchronizer -- converge ledger election status with the wall clock.

The ledger never changes an election's status on its own; something has to
submit a status-advancing transaction once the start or end instant has
passed.  There is no scheduler for this: administrators trigger it from the
dashboard and the vote coordinator triggers it when a voter finds an
election still pending inside its window.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.lib.ledger.context import LedgerContext
from campus_vote.lib.ledger.errors import LedgerError, LedgerErrorKind
from campus_vote.lib.ledger.gateway import STATUS_ORDER, LedgerElection, LedgerReceipt, LedgerStatus
from campus_vote.lib.ledger.timing import expected_ledger_status
from campus_vote.schemas.ledger import BatchSyncFailure, BatchSyncReport, StatusSyncReport, SyncAction
from campus_vote.services import identity_mapper
from campus_vote.services.election_service import ElectionNotFoundError, get_election, list_deployed_election_ids

# One initial advance plus at most one retry per invocation.
MAX_ADVANCE_ATTEMPTS = 2


class ElectionNotDeployedError(ValueError):
    """Raised when a ledger operation needs an election that has no ledger handle."""


def status_name(status: LedgerStatus) -> str:
    return status.name.lower()


def _is_ahead(status: LedgerStatus, expected: LedgerStatus) -> bool:
    return STATUS_ORDER.get(status, 0) > STATUS_ORDER.get(expected, 0)


async def _advance(ledger: LedgerContext, handle: int) -> None:
    try:
        receipt = await ledger.gateway.advance_election_status(handle)
    except LedgerError as exc:
        if exc.kind is LedgerErrorKind.STATUS_UNCHANGED:
            logger.info("Ledger election {} status already current (conflict recovered)", handle)
            return
        raise
    logger.info("Advanced ledger election {} status in tx {}", handle, receipt.tx_hash)


async def sync_ledger_election(ledger: LedgerContext, election_id: int, handle: int) -> StatusSyncReport:
    """Reconcile one ledger election's status against the wall clock.

    Args:
        ledger: Ledger context; its clock defines "now".
        election_id: Local id, for reporting.
        handle: Ledger election handle.

    Returns:
        What was observed and done.

    Raises:
        LedgerError: If reading the election or advancing it fails for a
            reason other than the status already being current.
    """
    details: LedgerElection = await ledger.gateway.get_election_details(handle)
    previous = details.status
    expected = expected_ledger_status(details.start, details.end, ledger.now_unix())

    def report(action: SyncAction, current: LedgerStatus, converged: bool, attempts: int = 0) -> StatusSyncReport:
        return StatusSyncReport(
            election_id=election_id,
            ledger_handle=handle,
            action=action,
            previous_status=status_name(previous),
            current_status=status_name(current),
            expected_status=status_name(expected),
            converged=converged,
            advance_attempts=attempts,
        )

    if previous is expected:
        return report(SyncAction.NO_CHANGE_NEEDED, previous, converged=True)

    if previous.is_terminal:
        result = report(SyncAction.TERMINAL, previous, converged=True)
        result.warnings.append(
            f"Ledger election {handle} is {status_name(previous)}; wall clock implies {status_name(expected)}"
        )
        logger.warning(result.warnings[-1])
        return result

    if _is_ahead(previous, expected):
        result = report(SyncAction.LEDGER_AHEAD, previous, converged=False)
        result.warnings.append(
            f"Ledger election {handle} is {status_name(previous)} ahead of the wall clock "
            f"({status_name(expected)} expected); possible clock skew, not changed"
        )
        logger.warning(result.warnings[-1])
        return result

    current = previous
    attempts = 0
    while attempts < MAX_ADVANCE_ATTEMPTS:
        attempts += 1
        await _advance(ledger, handle)
        current = (await ledger.gateway.get_election_details(handle)).status
        expected = expected_ledger_status(details.start, details.end, ledger.now_unix())
        if current is expected or current.is_terminal:
            logger.info(
                "Ledger election {} moved {} -> {} after {} attempt(s)",
                handle,
                status_name(previous),
                status_name(current),
                attempts,
            )
            return report(SyncAction.ADVANCED, current, converged=True, attempts=attempts)

    result = report(SyncAction.NOT_CONVERGED, current, converged=False, attempts=attempts)
    result.warnings.append(
        f"Ledger election {handle} still {status_name(current)} after {attempts} advance attempt(s); "
        f"expected {status_name(expected)}"
    )
    logger.warning(result.warnings[-1])
    return result


async def sync_election(session: AsyncSession, ledger: LedgerContext, election_id: int) -> StatusSyncReport:
    """Sync a local election's ledger status.

    Raises:
        ElectionNotFoundError: If the election does not exist.
        ElectionNotDeployedError: If the election has no ledger handle.
        LedgerError: On a genuine ledger failure.
    """
    await get_election(session, election_id)
    handle = await identity_mapper.lookup_election_handle(session, election_id)
    if handle is None:
        msg = f"Election {election_id} is not deployed to the ledger"
        raise ElectionNotDeployedError(msg)
    return await sync_ledger_election(ledger, election_id, handle)


async def sync_many(
    session: AsyncSession,
    ledger: LedgerContext,
    election_ids: list[int] | None = None,
) -> BatchSyncReport:
    """Sync several elections, isolating failures per election.

    Args:
        session: Database session.
        ledger: Ledger context.
        election_ids: Elections to sync; every deployed election when None.

    Returns:
        Aggregate counts plus per-election reports and failure reasons.
    """
    ids = election_ids if election_ids is not None else await list_deployed_election_ids(session)
    batch = BatchSyncReport()
    for election_id in ids:
        try:
            result = await sync_election(session, ledger, election_id)
        except (ElectionNotFoundError, ElectionNotDeployedError) as exc:
            batch.failed += 1
            batch.failures.append(BatchSyncFailure(election_id=election_id, reason=str(exc)))
            continue
        except LedgerError as exc:
            logger.error("Status sync failed for election {} ({}): {}", election_id, exc.kind, exc.message)
            batch.failed += 1
            batch.failures.append(BatchSyncFailure(election_id=election_id, reason=f"{exc.kind}: {exc.message}"))
            continue
        batch.reports.append(result)
        if result.converged:
            batch.succeeded += 1
        else:
            batch.failed += 1
            batch.failures.append(
                BatchSyncFailure(election_id=election_id, reason="; ".join(result.warnings) or result.action.value)
            )
    logger.info("Synced {} election(s): {} succeeded, {} failed", len(ids), batch.succeeded, batch.failed)
    return batch


async def finalize_election(session: AsyncSession, ledger: LedgerContext, election_id: int) -> LedgerReceipt | None:
    """Ask the ledger to finalize the results of a completed election.

    Returns:
        The finalization receipt, or None if results were already final.

    Raises:
        ElectionNotFoundError: If the election does not exist.
        ElectionNotDeployedError: If the election has no ledger handle.
        ValueError: If the ledger election has not completed.
        LedgerError: On a ledger failure.
    """
    await get_election(session, election_id)
    handle = await identity_mapper.lookup_election_handle(session, election_id)
    if handle is None:
        msg = f"Election {election_id} is not deployed to the ledger"
        raise ElectionNotDeployedError(msg)

    details = await ledger.gateway.get_election_details(handle)
    if details.results_finalized:
        logger.info("Results of election {} (ledger {}) already finalized", election_id, handle)
        return None
    if details.status is not LedgerStatus.COMPLETED:
        msg = (
            f"Election {election_id} is {status_name(details.status)} on the ledger; "
            "only completed elections can be finalized"
        )
        raise ValueError(msg)
    receipt = await ledger.gateway.finalize_results(handle)
    logger.info("Finalized results of election {} (ledger {}) in tx {}", election_id, handle, receipt.tx_hash)
    return receipt
