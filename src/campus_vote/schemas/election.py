"""Pydantic v2 schemas for election and ballot endpoints."""

from datetime import datetime
from typing import Literal, Self

from pydantic import BaseModel, Field, model_validator

from campus_vote.schemas.candidate import CandidateResponse
from campus_vote.schemas.common import PaginationMeta

ElectionPosition = Literal["president_vp", "senator"]

# --- Request schemas ---


class ElectionCreateRequest(BaseModel):
    """Request body for creating an election."""

    name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=5000)
    position: ElectionPosition
    eligible_faculties: list[str] = Field(
        default_factory=list,
        description='Faculty codes allowed to vote; empty or ["all"] admits every faculty',
    )
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def check_window(self) -> Self:
        if self.start_time >= self.end_time:
            msg = "start_time must be before end_time"
            raise ValueError(msg)
        return self


class ElectionUpdateRequest(BaseModel):
    """Partial update of an election.

    Schedule and position fields are rejected once the election is on the ledger.
    """

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    position: ElectionPosition | None = None
    eligible_faculties: list[str] | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class RosterEntryRequest(BaseModel):
    """Add a candidate (and, for paired ballots, a running mate) to an election."""

    candidate_id: int
    running_mate_id: int | None = None


# --- Response schemas ---


class ElectionResponse(BaseModel):
    """Election detail with derived status."""

    model_config = {"from_attributes": True}

    id: int
    name: str
    description: str
    position: str
    eligible_faculties: list[str]
    start_time: datetime
    end_time: datetime
    status: Literal["upcoming", "active", "completed"]
    ledger_handle: int | None = None
    created_at: datetime
    updated_at: datetime


class PaginatedElectionListResponse(BaseModel):
    """Paginated list of elections."""

    items: list[ElectionResponse]
    pagination: PaginationMeta


class RosterEntryResponse(BaseModel):
    """One ballot entry."""

    model_config = {"from_attributes": True}

    id: int
    election_id: int
    candidate: CandidateResponse
    running_mate: CandidateResponse | None = None
    ledger_ticket_handle: int | None = None
