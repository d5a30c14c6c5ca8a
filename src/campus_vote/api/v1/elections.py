"""Election and ballot API endpoints.

GET /elections: list elections
POST /elections: create election (admin)
GET /elections/{id}: election detail
PATCH /elections/{id}: update election (admin)
GET /elections/{id}/candidates: ballot entries
POST /elections/{id}/candidates: add a ballot entry (admin)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.core.dependencies import get_async_session, get_current_user, require_role
from campus_vote.models.user import User
from campus_vote.schemas.common import PaginationMeta
from campus_vote.schemas.election import (
    ElectionCreateRequest,
    ElectionResponse,
    ElectionUpdateRequest,
    PaginatedElectionListResponse,
    RosterEntryRequest,
    RosterEntryResponse,
)
from campus_vote.services import election_service
from campus_vote.services.candidate_service import CandidateNotFoundError
from campus_vote.services.election_service import (
    DuplicateRosterEntryError,
    ElectionLockedError,
    ElectionNotFoundError,
    RosterError,
)

elections_router = APIRouter(prefix="/elections", tags=["elections"])


@elections_router.get("", response_model=PaginatedElectionListResponse)
async def list_elections(
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    deployed: bool | None = Query(default=None, description="Only elections on (true) or off (false) the ledger"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Results per page"),
) -> PaginatedElectionListResponse:
    """List elections, newest first."""
    items, total = await election_service.list_elections(session, page=page, page_size=page_size, deployed=deployed)
    return PaginatedElectionListResponse(
        items=[election_service.election_to_response(e) for e in items],
        pagination=PaginationMeta.build(total, page, page_size),
    )


@elections_router.post("", response_model=ElectionResponse, status_code=status.HTTP_201_CREATED)
async def create_election(
    request: ElectionCreateRequest,
    current_user: Annotated[User, Depends(require_role("admin"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ElectionResponse:
    """Create an election (admin only)."""
    election = await election_service.create_election(session, request, created_by=current_user.id)
    return election_service.election_to_response(election)


@elections_router.get("/{election_id}", response_model=ElectionResponse)
async def get_election(
    election_id: int,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ElectionResponse:
    """Election detail with derived status."""
    try:
        election = await election_service.get_election(session, election_id)
    except ElectionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return election_service.election_to_response(election)


@elections_router.patch("/{election_id}", response_model=ElectionResponse)
async def update_election(
    election_id: int,
    request: ElectionUpdateRequest,
    _current_user: Annotated[User, Depends(require_role("admin"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ElectionResponse:
    """Update an election (admin only).

    Schedule and position changes are refused with 409 once the election is
    on the ledger.
    """
    try:
        election = await election_service.update_election(session, election_id, request)
    except ElectionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ElectionLockedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return election_service.election_to_response(election)


@elections_router.get("/{election_id}/candidates", response_model=list[RosterEntryResponse])
async def list_roster(
    election_id: int,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> list[RosterEntryResponse]:
    """Ballot entries of an election."""
    try:
        entries = await election_service.list_roster(session, election_id)
    except ElectionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return [RosterEntryResponse.model_validate(entry) for entry in entries]


@elections_router.post(
    "/{election_id}/candidates",
    response_model=RosterEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_roster_entry(
    election_id: int,
    request: RosterEntryRequest,
    _current_user: Annotated[User, Depends(require_role("admin"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> RosterEntryResponse:
    """Put a candidate (and running mate) on the ballot (admin only)."""
    try:
        entry = await election_service.add_roster_entry(session, election_id, request)
    except (ElectionNotFoundError, CandidateNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except DuplicateRosterEntryError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except RosterError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return RosterEntryResponse.model_validate(entry)
