"""
Vote endpoints.

One vote per voter. Casting and cancelling go through the in-memory
aggregation, which re-fetches the whole vote set after every write.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.deps import client_ip, get_current_user, get_optional_user, get_services
from core.container import AppServices
from schemas.auth import AuthUser
from schemas.vote import (
    CandidateStanding,
    ProfileSyncStatus,
    VoteCreate,
    VoteRecord,
    VoteResponse,
    VoteStatus,
    VoteTallyResponse,
)
from services.vote_aggregation import VoteFailureReason, VoteOutcome

router = APIRouter()

FAILURE_STATUS = {
    VoteFailureReason.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    VoteFailureReason.VOTING_CLOSED: status.HTTP_403_FORBIDDEN,
    VoteFailureReason.ALREADY_VOTED: status.HTTP_409_CONFLICT,
    VoteFailureReason.INVALID_CANDIDATE: status.HTTP_400_BAD_REQUEST,
    VoteFailureReason.NO_VOTE: status.HTTP_404_NOT_FOUND,
    VoteFailureReason.INSERT_FAILED: status.HTTP_502_BAD_GATEWAY,
    VoteFailureReason.DELETE_FAILED: status.HTTP_502_BAD_GATEWAY,
}


def to_response(outcome: VoteOutcome, message: str) -> VoteResponse:
    """Successful outcome -> response; failures become HTTP errors."""
    if not outcome.success:
        raise HTTPException(status_code=FAILURE_STATUS[outcome.reason], detail=outcome.error)

    sync = outcome.profile_sync
    return VoteResponse(
        success=True,
        message=message,
        vote=VoteRecord.model_validate(outcome.vote) if outcome.vote else None,
        profile_sync=ProfileSyncStatus(succeeded=sync.succeeded, attempts=sync.attempts, error=sync.error)
        if sync
        else None,
    )


@router.get("/tally", response_model=VoteTallyResponse)
async def get_tally(services: AppServices = Depends(get_services)) -> VoteTallyResponse:
    """Vote counts, total and rankings from the current snapshot."""
    voting = services.voting
    rankings = [
        CandidateStanding(
            rank=ranked.rank,
            candidate_id=ranked.candidate.id,
            name=ranked.candidate.name,
            genre=ranked.candidate.genre,
            votes=ranked.votes,
            percentage=ranked.percentage,
        )
        for ranked in voting.rankings()
    ]
    leader = rankings[0].name if rankings and rankings[0].votes > 0 else None
    return VoteTallyResponse(
        counts=voting.vote_counts,
        total_votes=voting.total_votes,
        rankings=rankings,
        leader=leader,
        error=voting.error,
    )


@router.get("/me", response_model=VoteStatus)
async def get_my_vote(
    current_user: Annotated[AuthUser, Depends(get_current_user)],
    services: AppServices = Depends(get_services),
) -> VoteStatus:
    """The caller's vote, if any."""
    vote = services.voting.user_vote(current_user.id)
    return VoteStatus(
        has_voted=vote is not None,
        vote=VoteRecord.model_validate(vote) if vote else None,
        last_vote_cancelled=services.voting.last_vote_cancelled(current_user.id),
    )


@router.post("", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
async def cast_vote(
    request: Request,
    vote_data: VoteCreate,
    current_user: Annotated[Optional[AuthUser], Depends(get_optional_user)],
    services: AppServices = Depends(get_services),
) -> VoteResponse:
    """
    Cast a vote for a candidate.

    Refused when not signed in, when voting has ended, when the caller has
    already voted or when the candidate is unknown.
    """
    outcome = await services.voting.cast_vote(
        current_user, vote_data.candidate_id, ip_address=client_ip(request)
    )
    return to_response(outcome, "Vote cast successfully")


@router.delete("/me", response_model=VoteResponse)
async def cancel_vote(
    current_user: Annotated[Optional[AuthUser], Depends(get_optional_user)],
    services: AppServices = Depends(get_services),
) -> VoteResponse:
    """Withdraw the caller's vote."""
    outcome = await services.voting.cancel_vote(current_user)
    return to_response(outcome, "Vote cancelled successfully")
