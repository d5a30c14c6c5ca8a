"""Abstract ledger gateway interface and the value types it exchanges."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum


class ElectionCategory(IntEnum):
    """Ballot category as encoded by the ledger contract."""

    SENATOR = 0
    PRESIDENT_VP = 1


class LedgerStatus(IntEnum):
    """Election status as recorded by the ledger contract."""

    PENDING = 0
    ACTIVE = 1
    COMPLETED = 2
    CANCELLED = 3

    @property
    def is_terminal(self) -> bool:
        """Whether no status-advancing transaction can change this status."""
        return self in (LedgerStatus.COMPLETED, LedgerStatus.CANCELLED)


# Progression order used to compare a ledger status against the wall clock.
STATUS_ORDER: dict[LedgerStatus, int] = {
    LedgerStatus.PENDING: 0,
    LedgerStatus.ACTIVE: 1,
    LedgerStatus.COMPLETED: 2,
}


@dataclass(frozen=True)
class LedgerElection:
    """Snapshot of an election as read from the ledger."""

    handle: int
    category: ElectionCategory
    status: LedgerStatus
    start: int
    end: int
    total_votes_cast: int = 0
    results_finalized: bool = False


@dataclass(frozen=True)
class LedgerReceipt:
    """Confirmation of a mined ledger transaction."""

    tx_hash: str
    block_number: int | None = None


class LedgerGateway(ABC):
    """Read/write contract for the external election ledger.

    Every method is awaited; writes return only once the transaction is
    mined.  Every failure is raised as ``LedgerError`` whose ``kind`` says
    whether it was a benign conflict or a genuine failure.
    """

    @property
    @abstractmethod
    def account(self) -> str:
        """Address transactions are submitted from."""

    def voter_account(self, voter: int) -> str | None:
        """Address that signs ``voter``'s ballots.

        None means ballots are relayed through ``account``, which the ledger
        counts as a single voter.
        """
        return None

    @abstractmethod
    async def register_candidate(self, student_id: str) -> int:
        """Register a candidate by student id and return the new handle."""

    @abstractmethod
    async def get_candidate_handle(self, student_id: str) -> int:
        """Return the handle registered for ``student_id``.

        Raises:
            LedgerError: With kind ``NOT_FOUND`` if the student is unregistered.
        """

    @abstractmethod
    async def create_ticket(self, president_student_id: str, vp_student_id: str) -> int:
        """Create a president/vice-president ticket and return its handle."""

    @abstractmethod
    async def get_ticket_handle(self, president_student_id: str, vp_student_id: str) -> int:
        """Return the handle of an existing ticket.

        Raises:
            LedgerError: With kind ``NOT_FOUND`` if no such ticket exists.
        """

    @abstractmethod
    async def create_election(self, category: ElectionCategory, start: int, end: int) -> int:
        """Create an election from unix-second bounds and return its handle."""

    @abstractmethod
    async def attach_candidate(self, election_handle: int, candidate_handle: int) -> LedgerReceipt:
        """Add a registered candidate to an election's ballot."""

    @abstractmethod
    async def attach_ticket(self, election_handle: int, ticket_handle: int) -> LedgerReceipt:
        """Add a ticket to an election's ballot."""

    @abstractmethod
    async def get_election_details(self, election_handle: int) -> LedgerElection:
        """Read the current ledger state of an election."""

    @abstractmethod
    async def get_election_candidates(self, election_handle: int) -> list[int]:
        """Return the candidate handles attached to an election."""

    @abstractmethod
    async def get_election_tickets(self, election_handle: int) -> list[int]:
        """Return the ticket handles attached to an election."""

    @abstractmethod
    async def advance_election_status(self, election_handle: int) -> LedgerReceipt:
        """Ask the ledger to move the election's status forward based on its own clock."""

    @abstractmethod
    async def submit_vote(
        self,
        election_handle: int,
        target_handle: int,
        *,
        priority: int = 0,
        voter: int | None = None,
    ) -> LedgerReceipt:
        """Cast a vote for a candidate or ticket handle.

        Args:
            election_handle: Ledger election handle.
            target_handle: Candidate handle (senator ballots) or ticket handle
                (paired ballots).
            priority: Resource-priority hint; higher levels pay more to be
                mined sooner.
            voter: Local user id; the ballot is signed by ``voter_account(voter)``
                when that exists, otherwise by ``account``.
        """

    @abstractmethod
    async def get_vote_count(self, target_handle: int, *, ticket: bool = False) -> int:
        """Return the votes recorded for a candidate or ticket handle."""

    @abstractmethod
    async def finalize_results(self, election_handle: int) -> LedgerReceipt:
        """Finalize a completed election's results on the ledger."""
