"""Pydantic v2 schemas for ledger deployment, status sync and voting.

These are the reports returned to administrators and students.  Batch
operations never fail as a whole; they report per-item outcomes instead.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, computed_field

from campus_vote.lib.ledger.errors import LedgerErrorKind


class DeployStep(StrEnum):
    """Ledger write a deployment step corresponds to."""

    REGISTER_CANDIDATE = "register_candidate"
    CREATE_ELECTION = "create_election"
    CREATE_TICKET = "create_ticket"
    ATTACH_CANDIDATE = "attach_candidate"
    ATTACH_TICKET = "attach_ticket"


class StepOutcome(BaseModel):
    """Result of one deployment step for one entity."""

    step: DeployStep
    entity_id: int = Field(description="Local id of the candidate, election or roster entry")
    name: str = Field(description="Display name of the entity")
    ok: bool
    detail: str = ""
    kind: LedgerErrorKind | None = Field(default=None, description="Classified ledger failure, if any")
    ledger_handle: int | None = None
    ledger_write: bool = Field(default=False, description="Whether a ledger transaction was mined for this step")


class DeploymentReport(BaseModel):
    """Aggregate outcome of deploying an election to the ledger."""

    election_id: int
    ledger_election_handle: int | None = None
    succeeded: list[StepOutcome] = Field(default_factory=list)
    failed: list[StepOutcome] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    ledger_writes: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> bool:
        return not self.failed


class SyncAction(StrEnum):
    """What a status sync did."""

    NO_CHANGE_NEEDED = "no_change_needed"
    ADVANCED = "advanced"
    TERMINAL = "terminal"
    LEDGER_AHEAD = "ledger_ahead"
    NOT_CONVERGED = "not_converged"


class StatusSyncReport(BaseModel):
    """Outcome of reconciling one ledger election status against the wall clock."""

    election_id: int
    ledger_handle: int
    action: SyncAction
    previous_status: str
    current_status: str
    expected_status: str
    converged: bool
    advance_attempts: int = 0
    warnings: list[str] = Field(default_factory=list)


class BatchSyncRequest(BaseModel):
    """Elections to sync; every deployed election when omitted."""

    election_ids: list[int] | None = None


class BatchSyncFailure(BaseModel):
    election_id: int
    reason: str


class BatchSyncReport(BaseModel):
    """Aggregate outcome of syncing several elections."""

    succeeded: int = 0
    failed: int = 0
    reports: list[StatusSyncReport] = Field(default_factory=list)
    failures: list[BatchSyncFailure] = Field(default_factory=list)


class VoteOutcome(StrEnum):
    """Single definitive outcome of a vote attempt."""

    SUCCESS = "success"
    NOT_DEPLOYED = "not_deployed"
    ALREADY_VOTED = "already_voted"
    NOT_ELIGIBLE = "not_eligible"
    ELECTION_NOT_ACTIVE = "election_not_active"
    UNKNOWN_CANDIDATE = "unknown_candidate"
    USER_REJECTED = "user_rejected"
    NETWORK_CONGESTION = "network_congestion"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNCLASSIFIED = "unclassified"


class NotActiveReason(StrEnum):
    NOT_YET_STARTED = "not_yet_started"
    ALREADY_ENDED = "already_ended"
    STUCK_PENDING = "stuck_pending"
    CANCELLED = "cancelled"
    REJECTED_BY_LEDGER = "rejected_by_ledger"


class VoteRequest(BaseModel):
    """Ballot choice: the local id of a candidate on the election's roster."""

    candidate_id: int


class VoteResult(BaseModel):
    """Outcome of one vote attempt."""

    election_id: int
    outcome: VoteOutcome
    reason: NotActiveReason | None = None
    tx_hash: str | None = None
    message: str = ""
    resubmitted: bool = Field(default=False, description="Whether the vote was resubmitted at higher priority")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_voted(self) -> bool:
        return self.outcome in (VoteOutcome.SUCCESS, VoteOutcome.ALREADY_VOTED)


class LedgerEntryVotes(BaseModel):
    """Vote tally for one ballot entry as recorded on the ledger."""

    entry_id: int
    candidate_id: int
    full_name: str
    running_mate_name: str | None = None
    ledger_handle: int | None = None
    is_ticket: bool = False
    vote_count: int | None = None


class LedgerElectionResponse(BaseModel):
    """Live ledger view of a deployed election."""

    election_id: int
    ledger_handle: int
    category: str
    status: str
    expected_status: str
    start: datetime
    end: datetime
    total_votes_cast: int
    results_finalized: bool
    entries: list[LedgerEntryVotes] = Field(default_factory=list)
