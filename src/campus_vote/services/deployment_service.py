"""Deployment reconciler -- bring the ledger in line with a local election.

Deploying runs three phases in a fixed order, because each needs the handles
produced by the one before:

1. register every roster candidate that has no ledger handle,
2. create the election on the ledger if it has no handle,
3. attach each roster entry (a candidate, or a president/vice-president
   ticket) that the ledger does not already list.

Every phase reads before it writes and treats duplicate-shaped conflicts as
success, so running a deploy again after a partial failure (or twice in a
row) only performs the writes still missing.  Individual failures are
recorded in the report and never stop the rest of the batch.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.lib.ledger.context import LedgerContext
from campus_vote.lib.ledger.errors import LedgerError, LedgerErrorKind
from campus_vote.lib.ledger.gateway import ElectionCategory
from campus_vote.lib.ledger.timing import to_unix_seconds
from campus_vote.models.candidate import Candidate
from campus_vote.models.election import ElectionCandidate
from campus_vote.schemas.ledger import DeploymentReport, DeployStep, StepOutcome
from campus_vote.services import identity_mapper
from campus_vote.services.election_service import get_election

MISSING_RUNNING_MATE = "missing_running_mate"
CANDIDATE_NOT_REGISTERED = "candidate_not_registered"
ELECTION_NOT_CREATED = "election_not_created"

_CATEGORIES: dict[str, ElectionCategory] = {
    "senator": ElectionCategory.SENATOR,
    "president_vp": ElectionCategory.PRESIDENT_VP,
}


@dataclass
class _CandidateRef:
    id: int
    full_name: str
    student_id: str | None
    position: str
    handle: int | None


@dataclass
class _EntryRef:
    id: int
    candidate: _CandidateRef
    running_mate: _CandidateRef | None
    ticket_handle: int | None

    @property
    def label(self) -> str:
        if self.running_mate is None:
            return self.candidate.full_name
        return f"{self.candidate.full_name} / {self.running_mate.full_name}"


class _Run:
    """Mutable state of one deploy: the report plus helpers to record into it."""

    def __init__(self, election_id: int, election_handle: int | None) -> None:
        self.report = DeploymentReport(election_id=election_id, ledger_election_handle=election_handle)

    def ok(
        self,
        step: DeployStep,
        entity_id: int,
        name: str,
        detail: str,
        *,
        handle: int | None = None,
        write: bool = False,
    ) -> None:
        self.report.succeeded.append(
            StepOutcome(
                step=step,
                entity_id=entity_id,
                name=name,
                ok=True,
                detail=detail,
                ledger_handle=handle,
                ledger_write=write,
            )
        )
        if write:
            self.report.ledger_writes += 1

    def fail(
        self,
        step: DeployStep,
        entity_id: int,
        name: str,
        detail: str,
        kind: LedgerErrorKind | None = None,
    ) -> None:
        logger.warning("Deploy {} failed for {} {} ({}): {}", step.value, entity_id, name, kind, detail)
        self.report.failed.append(
            StepOutcome(step=step, entity_id=entity_id, name=name, ok=False, detail=detail, kind=kind)
        )

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.report.warnings.append(message)


async def _load_roster(session: AsyncSession, election_id: int) -> list[_EntryRef]:
    """Snapshot the roster into plain objects so ledger work never touches ORM state."""
    result = await session.execute(
        select(ElectionCandidate).where(ElectionCandidate.election_id == election_id).order_by(ElectionCandidate.id)
    )
    refs: dict[int, _CandidateRef] = {}

    def ref(candidate: Candidate) -> _CandidateRef:
        if candidate.id not in refs:
            refs[candidate.id] = _CandidateRef(
                id=candidate.id,
                full_name=candidate.full_name,
                student_id=candidate.student_id,
                position=candidate.position,
                handle=candidate.ledger_handle,
            )
        return refs[candidate.id]

    return [
        _EntryRef(
            id=entry.id,
            candidate=ref(entry.candidate),
            running_mate=ref(entry.running_mate) if entry.running_mate is not None else None,
            ticket_handle=entry.ledger_ticket_handle,
        )
        for entry in result.scalars().all()
    ]


async def deploy_election(session: AsyncSession, ledger: LedgerContext, election_id: int) -> DeploymentReport:
    """Deploy an election and its roster to the ledger.

    Args:
        session: Database session used to read the roster and persist handles.
        ledger: Ledger context to read and submit through.
        election_id: Local election id.

    Returns:
        A report of every step attempted, with the resulting election handle.

    Raises:
        ElectionNotFoundError: If the election does not exist.
    """
    election = await get_election(session, election_id)
    category = _CATEGORIES[election.position]
    name = election.name
    start = to_unix_seconds(election.start_time)
    end = to_unix_seconds(election.end_time)
    run = _Run(election.id, election.ledger_handle)
    entries = await _load_roster(session, election.id)
    logger.info("Deploying election {} ({}) with {} roster entries", election_id, name, len(entries))

    await _register_candidates(session, ledger, run, entries)

    handle = run.report.ledger_election_handle
    if handle is None:
        handle = await _create_election(session, ledger, run, election_id, name, category, start, end)
        if handle is None:
            for entry in entries:
                run.fail(_attach_step(category), entry.id, entry.label, ELECTION_NOT_CREATED)
            return run.report

    if category is ElectionCategory.PRESIDENT_VP:
        await _attach_tickets(session, ledger, run, handle, entries)
    else:
        await _attach_candidates(ledger, run, handle, entries)

    logger.info(
        "Deployed election {} as handle {}: {} succeeded, {} failed, {} ledger writes",
        election_id,
        handle,
        len(run.report.succeeded),
        len(run.report.failed),
        run.report.ledger_writes,
    )
    return run.report


def _attach_step(category: ElectionCategory) -> DeployStep:
    if category is ElectionCategory.PRESIDENT_VP:
        return DeployStep.ATTACH_TICKET
    return DeployStep.ATTACH_CANDIDATE


async def _register_candidates(
    session: AsyncSession,
    ledger: LedgerContext,
    run: _Run,
    entries: list[_EntryRef],
) -> None:
    seen: set[int] = set()
    for entry in entries:
        for candidate in (entry.candidate, entry.running_mate):
            if candidate is None or candidate.id in seen:
                continue
            seen.add(candidate.id)
            if candidate.handle is not None:
                continue
            if not candidate.student_id:
                run.warn(f"Candidate {candidate.id} ({candidate.full_name}) has no student id; not registered")
                continue
            try:
                resolution = await identity_mapper.register_candidate(ledger, candidate.student_id)
            except LedgerError as exc:
                run.fail(DeployStep.REGISTER_CANDIDATE, candidate.id, candidate.full_name, exc.message, exc.kind)
                continue
            candidate.handle = resolution.handle
            run.ok(
                DeployStep.REGISTER_CANDIDATE,
                candidate.id,
                candidate.full_name,
                "registered" if resolution.created else "already registered",
                handle=resolution.handle,
                write=resolution.created,
            )
            if not await identity_mapper.persist_candidate_handle(session, candidate.id, resolution.handle):
                run.warn(f"Candidate {candidate.id} registered as handle {resolution.handle} but not saved locally")


async def _create_election(
    session: AsyncSession,
    ledger: LedgerContext,
    run: _Run,
    election_id: int,
    name: str,
    category: ElectionCategory,
    start: int,
    end: int,
) -> int | None:
    try:
        handle = await ledger.gateway.create_election(category, start, end)
    except LedgerError as exc:
        run.fail(DeployStep.CREATE_ELECTION, election_id, name, exc.message, exc.kind)
        return None
    logger.info("Created election {} on ledger as handle {} ({}..{})", election_id, handle, start, end)
    run.report.ledger_election_handle = handle
    run.ok(DeployStep.CREATE_ELECTION, election_id, name, "created", handle=handle, write=True)
    if not await identity_mapper.persist_election_handle(session, election_id, handle):
        run.warn(f"Election {election_id} created as handle {handle} but not saved locally")
    return handle


async def _attached(run: _Run, reader: Callable[[int], Awaitable[list[int]]], handle: int) -> set[int]:
    try:
        return set(await reader(handle))
    except LedgerError as exc:
        run.warn(f"Could not read attached entries of ledger election {handle}: {exc.message}")
        return set()


async def _attach(
    run: _Run,
    step: DeployStep,
    entry: _EntryRef,
    target: int,
    attached: set[int],
    submit: Callable[[int], Awaitable[None]],
) -> None:
    if target in attached:
        run.ok(step, entry.id, entry.label, "already attached", handle=target)
        return
    try:
        await submit(target)
    except LedgerError as exc:
        if exc.kind is LedgerErrorKind.ATTACHMENT_CONFLICT:
            logger.info("Entry {} already attached on ledger (conflict recovered)", entry.id)
            run.ok(step, entry.id, entry.label, "already attached", handle=target)
        else:
            run.fail(step, entry.id, entry.label, exc.message, exc.kind)
        return
    attached.add(target)
    run.ok(step, entry.id, entry.label, "attached", handle=target, write=True)


async def _attach_candidates(ledger: LedgerContext, run: _Run, handle: int, entries: list[_EntryRef]) -> None:
    attached = await _attached(run, ledger.gateway.get_election_candidates, handle)

    async def submit(target: int) -> None:
        await ledger.gateway.attach_candidate(handle, target)

    for entry in entries:
        if entry.candidate.handle is None:
            run.fail(DeployStep.ATTACH_CANDIDATE, entry.id, entry.label, CANDIDATE_NOT_REGISTERED)
            continue
        await _attach(run, DeployStep.ATTACH_CANDIDATE, entry, entry.candidate.handle, attached, submit)


async def _attach_tickets(
    session: AsyncSession,
    ledger: LedgerContext,
    run: _Run,
    handle: int,
    entries: list[_EntryRef],
) -> None:
    attached = await _attached(run, ledger.gateway.get_election_tickets, handle)
    covered = {entry.running_mate.id: entry.id for entry in entries if entry.running_mate is not None}

    async def submit(target: int) -> None:
        await ledger.gateway.attach_ticket(handle, target)

    for entry in entries:
        if entry.running_mate is None:
            if entry.candidate.position == "vice_president":
                if entry.candidate.id in covered:
                    detail = f"covered by entry {covered[entry.candidate.id]}"
                    run.ok(DeployStep.ATTACH_TICKET, entry.id, entry.label, detail)
                else:
                    run.warn(f"Vice-president {entry.candidate.id} ({entry.candidate.full_name}) is on no ticket")
                continue
            run.fail(DeployStep.ATTACH_TICKET, entry.id, entry.label, MISSING_RUNNING_MATE)
            continue

        president, vice = entry.candidate, entry.running_mate
        if president.handle is None or vice.handle is None or not president.student_id or not vice.student_id:
            run.fail(DeployStep.ATTACH_TICKET, entry.id, entry.label, CANDIDATE_NOT_REGISTERED)
            continue

        if entry.ticket_handle is None:
            try:
                resolution = await identity_mapper.register_ticket(ledger, president.student_id, vice.student_id)
            except LedgerError as exc:
                run.fail(DeployStep.CREATE_TICKET, entry.id, entry.label, exc.message, exc.kind)
                continue
            entry.ticket_handle = resolution.handle
            run.ok(
                DeployStep.CREATE_TICKET,
                entry.id,
                entry.label,
                "created" if resolution.created else "already exists",
                handle=resolution.handle,
                write=resolution.created,
            )
            if not await identity_mapper.persist_ticket_handle(session, entry.id, resolution.handle):
                run.warn(f"Ticket for entry {entry.id} created as handle {resolution.handle} but not saved locally")

        await _attach(run, DeployStep.ATTACH_TICKET, entry, entry.ticket_handle, attached, submit)
