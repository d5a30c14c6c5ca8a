"""Candidate API endpoints.

GET /candidates, POST /candidates, GET /candidates/{id}.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.core.dependencies import get_async_session, get_current_user, require_role
from campus_vote.models.user import User
from campus_vote.schemas.candidate import (
    CandidateCreateRequest,
    CandidatePosition,
    CandidateResponse,
    PaginatedCandidateListResponse,
)
from campus_vote.schemas.common import PaginationMeta
from campus_vote.services import candidate_service
from campus_vote.services.candidate_service import CandidateNotFoundError, DuplicateCandidateError

candidates_router = APIRouter(prefix="/candidates", tags=["candidates"])


@candidates_router.get("", response_model=PaginatedCandidateListResponse)
async def list_candidates(
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    position: CandidatePosition | None = Query(default=None, description="Filter by position"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Results per page"),
) -> PaginatedCandidateListResponse:
    """List candidates."""
    items, total = await candidate_service.list_candidates(session, page=page, page_size=page_size, position=position)
    return PaginatedCandidateListResponse(
        items=[CandidateResponse.model_validate(c) for c in items],
        pagination=PaginationMeta.build(total, page, page_size),
    )


@candidates_router.post("", response_model=CandidateResponse, status_code=status.HTTP_201_CREATED)
async def create_candidate(
    request: CandidateCreateRequest,
    _current_user: Annotated[User, Depends(require_role("admin"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> CandidateResponse:
    """Register a candidate locally (admin only)."""
    try:
        candidate = await candidate_service.create_candidate(session, request)
    except DuplicateCandidateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return CandidateResponse.model_validate(candidate)


@candidates_router.get("/{candidate_id}", response_model=CandidateResponse)
async def get_candidate(
    candidate_id: int,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> CandidateResponse:
    """Candidate detail."""
    try:
        candidate = await candidate_service.get_candidate(session, candidate_id)
    except CandidateNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return CandidateResponse.model_validate(candidate)
