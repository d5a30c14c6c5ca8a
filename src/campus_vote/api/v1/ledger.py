"""Ledger-facing election endpoints.

POST /elections/sync: sync every (or the listed) deployed election (admin)
POST /elections/{id}/deploy: put an election and its ballot on the ledger (admin)
POST /elections/{id}/sync: sync one election's ledger status
POST /elections/{id}/vote: cast a vote (student)
GET /elections/{id}/ledger: ledger state and live vote counts
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_vote.core.dependencies import (
    get_async_session,
    get_current_user,
    get_inflight_tracker,
    get_ledger_context,
    require_role,
)
from campus_vote.lib.ledger import EntityInFlightError, InFlightTracker, LedgerContext, LedgerError
from campus_vote.lib.ledger.inflight import BATCH_SYNC_KEY, deploy_key, sync_key, vote_key
from campus_vote.models.user import User
from campus_vote.schemas.ledger import (
    BatchSyncReport,
    BatchSyncRequest,
    DeploymentReport,
    LedgerElectionResponse,
    StatusSyncReport,
    VoteOutcome,
    VoteRequest,
    VoteResult,
)
from campus_vote.services import deployment_service, ledger_view_service, status_sync_service, vote_service
from campus_vote.services.election_service import ElectionNotFoundError
from campus_vote.services.status_sync_service import ElectionNotDeployedError

ledger_router = APIRouter(prefix="/elections", tags=["ledger"])

_VOTE_STATUS: dict[VoteOutcome, int] = {
    VoteOutcome.SUCCESS: status.HTTP_200_OK,
    VoteOutcome.NOT_DEPLOYED: status.HTTP_409_CONFLICT,
    VoteOutcome.ALREADY_VOTED: status.HTTP_409_CONFLICT,
    VoteOutcome.NOT_ELIGIBLE: status.HTTP_403_FORBIDDEN,
    VoteOutcome.ELECTION_NOT_ACTIVE: status.HTTP_409_CONFLICT,
    VoteOutcome.UNKNOWN_CANDIDATE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    VoteOutcome.USER_REJECTED: status.HTTP_409_CONFLICT,
    VoteOutcome.NETWORK_CONGESTION: status.HTTP_503_SERVICE_UNAVAILABLE,
    VoteOutcome.INSUFFICIENT_FUNDS: status.HTTP_502_BAD_GATEWAY,
    VoteOutcome.UNCLASSIFIED: status.HTTP_502_BAD_GATEWAY,
}


def _http_error(exc: Exception) -> HTTPException:
    """Map a service or ledger failure to an HTTP error."""
    if isinstance(exc, ElectionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (ElectionNotDeployedError, EntityInFlightError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, LedgerError):
        detail = f"Ledger error ({exc.kind}): {exc.message}"
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@ledger_router.post("/sync", response_model=BatchSyncReport)
async def sync_elections(
    _current_user: Annotated[User, Depends(require_role("admin"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    ledger: Annotated[LedgerContext, Depends(get_ledger_context)],
    tracker: Annotated[InFlightTracker, Depends(get_inflight_tracker)],
    request: BatchSyncRequest | None = None,
) -> BatchSyncReport:
    """Sync ledger status for several elections; failures are reported per election."""
    election_ids = request.election_ids if request is not None else None
    try:
        async with tracker.hold(BATCH_SYNC_KEY):
            return await status_sync_service.sync_many(session, ledger, election_ids)
    except EntityInFlightError as e:
        raise _http_error(e) from e


@ledger_router.post("/{election_id}/deploy", response_model=DeploymentReport)
async def deploy_election(
    election_id: int,
    _current_user: Annotated[User, Depends(require_role("admin"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    ledger: Annotated[LedgerContext, Depends(get_ledger_context)],
    tracker: Annotated[InFlightTracker, Depends(get_inflight_tracker)],
) -> DeploymentReport:
    """Deploy an election to the ledger (admin only).

    Safe to repeat: steps already reflected on the ledger are skipped, so a
    partially failed deployment can be retried.
    """
    try:
        async with tracker.hold(deploy_key(election_id)):
            return await deployment_service.deploy_election(session, ledger, election_id)
    except (ElectionNotFoundError, EntityInFlightError) as e:
        raise _http_error(e) from e


@ledger_router.post("/{election_id}/sync", response_model=StatusSyncReport)
async def sync_election(
    election_id: int,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    ledger: Annotated[LedgerContext, Depends(get_ledger_context)],
    tracker: Annotated[InFlightTracker, Depends(get_inflight_tracker)],
) -> StatusSyncReport:
    """Bring one election's ledger status in line with its schedule."""
    try:
        async with tracker.hold(sync_key(election_id)):
            return await status_sync_service.sync_election(session, ledger, election_id)
    except (ElectionNotFoundError, ElectionNotDeployedError, EntityInFlightError, LedgerError) as e:
        raise _http_error(e) from e


@ledger_router.post("/{election_id}/vote", response_model=VoteResult)
async def cast_vote(
    election_id: int,
    request: VoteRequest,
    response: Response,
    current_user: Annotated[User, Depends(require_role("student"))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    ledger: Annotated[LedgerContext, Depends(get_ledger_context)],
    tracker: Annotated[InFlightTracker, Depends(get_inflight_tracker)],
) -> VoteResult:
    """Cast the current student's vote.

    The body always carries the classified outcome; the status code mirrors it.
    """
    try:
        async with tracker.hold(vote_key(election_id, current_user.id)):
            result = await vote_service.cast_vote(session, ledger, election_id, current_user, request.candidate_id)
    except (ElectionNotFoundError, EntityInFlightError, LedgerError) as e:
        raise _http_error(e) from e
    response.status_code = _VOTE_STATUS[result.outcome]
    return result


@ledger_router.get("/{election_id}/ledger", response_model=LedgerElectionResponse)
async def get_ledger_view(
    election_id: int,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    ledger: Annotated[LedgerContext, Depends(get_ledger_context)],
) -> LedgerElectionResponse:
    """Ledger status and live vote counts for a deployed election."""
    try:
        return await ledger_view_service.get_ledger_view(session, ledger, election_id)
    except (ElectionNotFoundError, ElectionNotDeployedError, LedgerError) as e:
        raise _http_error(e) from e
