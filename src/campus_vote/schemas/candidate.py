"""Pydantic v2 schemas for candidate endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from campus_vote.schemas.common import PaginationMeta

CandidatePosition = Literal["president", "vice_president", "senator"]


class CandidateCreateRequest(BaseModel):
    """Request body for creating a candidate."""

    full_name: str = Field(min_length=1, max_length=255)
    student_id: str | None = Field(
        default=None,
        min_length=1,
        max_length=50,
        description="University student ID; required before the candidate can be put on the ledger",
    )
    position: CandidatePosition
    faculty: str = Field(min_length=1, max_length=100)


class CandidateResponse(BaseModel):
    """Candidate detail."""

    model_config = {"from_attributes": True}

    id: int
    full_name: str
    student_id: str | None
    position: str
    faculty: str
    ledger_handle: int | None = None
    created_at: datetime


class PaginatedCandidateListResponse(BaseModel):
    """Paginated list of candidates."""

    items: list[CandidateResponse]
    pagination: PaginationMeta
