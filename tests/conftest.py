"""Shared test fixtures: async SQLite database, users and tokens, and an in-memory ledger."""

import itertools
from collections import defaultdict
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from campus_vote.core.config import Settings
from campus_vote.core.security import create_access_token, hash_password
from campus_vote.lib.ledger.context import LedgerContext
from campus_vote.lib.ledger.errors import LedgerError
from campus_vote.lib.ledger.gateway import (
    STATUS_ORDER,
    ElectionCategory,
    LedgerElection,
    LedgerGateway,
    LedgerReceipt,
    LedgerStatus,
)
from campus_vote.lib.ledger.timing import expected_ledger_status, to_unix_seconds
from campus_vote.models import Base, Candidate, Election, ElectionCandidate, User

NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=UTC)
OPERATOR_ACCOUNT = "0x00000000000000000000000000000000000000A1"


class FakeClock:
    """Controllable wall clock shared by the ledger context and the fake ledger."""

    def __init__(self, now: datetime = NOW) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@dataclass
class FakeLedgerElection:
    handle: int
    category: ElectionCategory
    start: int
    end: int
    status: LedgerStatus = LedgerStatus.PENDING
    candidates: list[int] = field(default_factory=list)
    tickets: list[int] = field(default_factory=list)
    total_votes: int = 0
    finalized: bool = False


class InMemoryLedgerGateway(LedgerGateway):
    """Ledger fake that reverts with the same reason strings the contract uses.

    ``writes`` lists every mined write; ``fail_next`` queues a failure for the
    next call of a method; ``stuck`` makes status advances mine without effect.
    Like the contract, it accepts one ballot per (election, signing account);
    ``per_voter_accounts = False`` makes every ballot come from the operator.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.candidates: dict[str, int] = {}
        self.tickets: dict[tuple[str, str], int] = {}
        self.elections: dict[int, FakeLedgerElection] = {}
        self.votes: dict[int, int] = defaultdict(int)
        self.vote_priorities: list[int] = []
        self.writes: list[str] = []
        self.calls: list[str] = []
        self.stuck = False
        self.per_voter_accounts = True
        self.ballots: set[tuple[int, str]] = set()
        self._failures: dict[str, list[LedgerError]] = defaultdict(list)
        self._candidate_ids = itertools.count(1)
        self._ticket_ids = itertools.count(101)
        self._election_ids = itertools.count(1)

    @property
    def account(self) -> str:
        return OPERATOR_ACCOUNT

    def voter_account(self, voter: int) -> str | None:
        return f"0x{voter:040x}" if self.per_voter_accounts else None

    # --- test controls ---

    def fail_next(self, method: str, message: str, code: str | int | None = None) -> None:
        self._failures[method].append(LedgerError(message, code=code))

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if self._failures[method]:
            raise self._failures[method].pop(0)

    def _mine(self, method: str) -> LedgerReceipt:
        self.writes.append(method)
        return LedgerReceipt(tx_hash=f"0x{len(self.writes):064x}", block_number=len(self.writes))

    def _now(self) -> int:
        return to_unix_seconds(self.clock())

    def _election(self, handle: int) -> FakeLedgerElection:
        if handle not in self.elections:
            msg = f"execution reverted: Election {handle} does not exist"
            raise LedgerError(msg)
        return self.elections[handle]

    def seed_election(
        self,
        category: ElectionCategory,
        start: int,
        end: int,
        status: LedgerStatus = LedgerStatus.PENDING,
    ) -> int:
        """Put an election on the fake ledger without counting a write."""
        handle = next(self._election_ids)
        self.elections[handle] = FakeLedgerElection(
            handle=handle, category=category, start=start, end=end, status=status
        )
        return handle

    # --- gateway ---

    async def register_candidate(self, student_id: str) -> int:
        self._enter("register_candidate")
        if student_id in self.candidates:
            msg = "execution reverted: Candidate already registered"
            raise LedgerError(msg)
        self.candidates[student_id] = next(self._candidate_ids)
        self._mine("register_candidate")
        return self.candidates[student_id]

    async def get_candidate_handle(self, student_id: str) -> int:
        self._enter("get_candidate_handle")
        if student_id not in self.candidates:
            msg = f"Candidate not found for student id {student_id}"
            raise LedgerError(msg)
        return self.candidates[student_id]

    async def create_ticket(self, president_student_id: str, vp_student_id: str) -> int:
        self._enter("create_ticket")
        key = (president_student_id, vp_student_id)
        if president_student_id not in self.candidates or vp_student_id not in self.candidates:
            msg = "execution reverted: Invalid candidate"
            raise LedgerError(msg)
        if key in self.tickets:
            msg = "execution reverted: Ticket already exists"
            raise LedgerError(msg)
        self.tickets[key] = next(self._ticket_ids)
        self._mine("create_ticket")
        return self.tickets[key]

    async def get_ticket_handle(self, president_student_id: str, vp_student_id: str) -> int:
        self._enter("get_ticket_handle")
        key = (president_student_id, vp_student_id)
        if key not in self.tickets:
            msg = f"Ticket not found for {president_student_id}/{vp_student_id}"
            raise LedgerError(msg)
        return self.tickets[key]

    async def create_election(self, category: ElectionCategory, start: int, end: int) -> int:
        self._enter("create_election")
        handle = self.seed_election(category, start, end)
        self._mine("create_election")
        return handle

    async def attach_candidate(self, election_handle: int, candidate_handle: int) -> LedgerReceipt:
        self._enter("attach_candidate")
        election = self._election(election_handle)
        if candidate_handle not in self.candidates.values():
            msg = "execution reverted: Invalid candidate"
            raise LedgerError(msg)
        if candidate_handle in election.candidates:
            msg = "execution reverted: Candidate already added to election"
            raise LedgerError(msg)
        election.candidates.append(candidate_handle)
        return self._mine("attach_candidate")

    async def attach_ticket(self, election_handle: int, ticket_handle: int) -> LedgerReceipt:
        self._enter("attach_ticket")
        election = self._election(election_handle)
        if ticket_handle not in self.tickets.values():
            msg = "execution reverted: InvalidTicket"
            raise LedgerError(msg)
        if ticket_handle in election.tickets:
            msg = "execution reverted: Ticket already added to election"
            raise LedgerError(msg)
        election.tickets.append(ticket_handle)
        return self._mine("attach_ticket")

    async def get_election_details(self, election_handle: int) -> LedgerElection:
        self._enter("get_election_details")
        election = self._election(election_handle)
        return LedgerElection(
            handle=election.handle,
            category=election.category,
            status=election.status,
            start=election.start,
            end=election.end,
            total_votes_cast=election.total_votes,
            results_finalized=election.finalized,
        )

    async def get_election_candidates(self, election_handle: int) -> list[int]:
        self._enter("get_election_candidates")
        return list(self._election(election_handle).candidates)

    async def get_election_tickets(self, election_handle: int) -> list[int]:
        self._enter("get_election_tickets")
        return list(self._election(election_handle).tickets)

    async def advance_election_status(self, election_handle: int) -> LedgerReceipt:
        self._enter("advance_election_status")
        election = self._election(election_handle)
        if self.stuck:
            return self._mine("advance_election_status")
        target = expected_ledger_status(election.start, election.end, self._now())
        if election.status.is_terminal or STATUS_ORDER[target] <= STATUS_ORDER[election.status]:
            msg = "execution reverted: Status unchanged"
            raise LedgerError(msg)
        election.status = target
        return self._mine("advance_election_status")

    async def submit_vote(
        self,
        election_handle: int,
        target_handle: int,
        *,
        priority: int = 0,
        voter: int | None = None,
    ) -> LedgerReceipt:
        self._enter("submit_vote")
        election = self._election(election_handle)
        now = self._now()
        if election.status is not LedgerStatus.ACTIVE or not election.start <= now <= election.end:
            msg = "execution reverted: Election not active"
            raise LedgerError(msg)
        allowed = election.tickets if election.category is ElectionCategory.PRESIDENT_VP else election.candidates
        if target_handle not in allowed:
            msg = "execution reverted: Invalid candidate"
            raise LedgerError(msg)
        signer = (self.voter_account(voter) if voter is not None else None) or self.account
        if (election_handle, signer) in self.ballots:
            msg = "execution reverted: Already voted"
            raise LedgerError(msg)
        self.ballots.add((election_handle, signer))
        self.votes[target_handle] += 1
        election.total_votes += 1
        self.vote_priorities.append(priority)
        return self._mine("submit_vote")

    async def get_vote_count(self, target_handle: int, *, ticket: bool = False) -> int:
        self._enter("get_vote_count")
        return self.votes.get(target_handle, 0)

    async def finalize_results(self, election_handle: int) -> LedgerReceipt:
        self._enter("finalize_results")
        election = self._election(election_handle)
        election.finalized = True
        return self._mine("finalize_results")


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key="test-secret-key-not-for-production",
        jwt_algorithm="HS256",
        jwt_access_token_expire_minutes=30,
    )


@pytest.fixture
async def async_engine(settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Per-test async session."""
    session_factory = async_sessionmaker(async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_ledger(clock: FakeClock) -> InMemoryLedgerGateway:
    return InMemoryLedgerGateway(clock)


@pytest.fixture
def ledger(fake_ledger: InMemoryLedgerGateway, clock: FakeClock) -> LedgerContext:
    """Ledger context over the in-memory gateway and the fake clock."""
    return LedgerContext.for_gateway(fake_ledger, clock=clock)


async def _add_user(session: AsyncSession, email: str, role: str, faculty: str) -> User:
    user = User(email=email, hashed_password=hash_password("password123"), role=role, faculty=faculty)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def admin_user(async_session: AsyncSession) -> User:
    return await _add_user(async_session, "admin@uni.test", "admin", "SITE")


@pytest.fixture
async def student_user(async_session: AsyncSession) -> User:
    """A student in the School of IT and Engineering."""
    return await _add_user(async_session, "student@uni.test", "student", "SITE")


@pytest.fixture
async def other_student(async_session: AsyncSession) -> User:
    """A student in the School of Business."""
    return await _add_user(async_session, "business@uni.test", "student", "SB")


@pytest.fixture
def admin_token(settings: Settings) -> str:
    return create_access_token(
        subject="admin@uni.test",
        role="admin",
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture
def student_token(settings: Settings) -> str:
    return create_access_token(
        subject="student@uni.test",
        role="student",
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture
def make_candidate(async_session: AsyncSession) -> Callable[..., Awaitable[Candidate]]:
    async def _make(
        full_name: str,
        student_id: str | None,
        position: str = "senator",
        faculty: str = "SITE",
    ) -> Candidate:
        candidate = Candidate(full_name=full_name, student_id=student_id, position=position, faculty=faculty)
        async_session.add(candidate)
        await async_session.commit()
        await async_session.refresh(candidate)
        return candidate

    return _make


@pytest.fixture
def make_election(async_session: AsyncSession, clock: FakeClock) -> Callable[..., Awaitable[Election]]:
    """Build an election whose window is given in seconds relative to the fake clock."""

    async def _make(
        position: str = "senator",
        *,
        start_in: int = -10,
        end_in: int = 3600,
        eligible: list[str] | None = None,
        name: str = "Student Senate 2026",
    ) -> Election:
        election = Election(
            name=name,
            position=position,
            eligible_faculties=eligible or [],
            start_time=clock() + timedelta(seconds=start_in),
            end_time=clock() + timedelta(seconds=end_in),
        )
        async_session.add(election)
        await async_session.commit()
        await async_session.refresh(election)
        return election

    return _make


@pytest.fixture
def add_to_ballot(async_session: AsyncSession) -> Callable[..., Awaitable[ElectionCandidate]]:
    async def _add(
        election: Election,
        candidate: Candidate,
        running_mate: Candidate | None = None,
    ) -> ElectionCandidate:
        entry = ElectionCandidate(
            election_id=election.id,
            candidate_id=candidate.id,
            running_mate_id=running_mate.id if running_mate else None,
        )
        async_session.add(entry)
        await async_session.commit()
        await async_session.refresh(entry, attribute_names=["candidate", "running_mate"])
        return entry

    return _add
