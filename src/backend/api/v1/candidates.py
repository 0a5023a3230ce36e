"""
Candidate endpoints.

Listing is public; adding, editing and removing candidates is admin-only.
Every successful write re-fetches the in-memory candidate list.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_current_admin_user, get_services, platform_http_error
from core.container import AppServices
from db.platform import PlatformError
from models.documents import CandidateRow
from repositories.candidate_repository import CandidateRepository
from schemas.auth import AuthUser
from schemas.candidate import CandidateCreate, CandidateResponse, CandidateUpdate

logger = structlog.get_logger(__name__)

router = APIRouter()

REQUIRED_FIELDS_MESSAGE = "Name and genre are required"


def to_response(candidate: CandidateRow, vote_count: int = 0) -> CandidateResponse:
    return CandidateResponse(**candidate.model_dump(include=set(CandidateResponse.model_fields)), vote_count=vote_count)


@router.get("", response_model=list[CandidateResponse])
async def list_candidates(services: AppServices = Depends(get_services)) -> list[CandidateResponse]:
    """All candidates with their current vote counts."""
    counts = services.voting.vote_counts
    return [to_response(c, counts.get(c.id, 0)) for c in services.voting.candidates]


@router.get("/{candidate_id}", response_model=CandidateResponse)
async def get_candidate(candidate_id: int, services: AppServices = Depends(get_services)) -> CandidateResponse:
    """A single candidate."""
    candidate = services.voting.get_candidate(candidate_id)
    if candidate is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Candidate not found")
    return to_response(candidate, services.voting.vote_counts.get(candidate_id, 0))


@router.post("", response_model=CandidateResponse, status_code=status.HTTP_201_CREATED)
async def create_candidate(
    candidate_data: CandidateCreate,
    admin: Annotated[AuthUser, Depends(get_current_admin_user)],
    services: AppServices = Depends(get_services),
) -> CandidateResponse:
    """Add a candidate."""
    if candidate_data.missing_required():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=REQUIRED_FIELDS_MESSAGE)

    repo = CandidateRepository(services.platform, token=admin.access_token)
    try:
        candidate = await repo.create(candidate_data.to_row())
    except PlatformError as e:
        logger.error("candidate_create_failed", error=e.message)
        raise platform_http_error(e) from e

    logger.info("candidate_created", candidate_id=candidate.id, name=candidate.name, admin_id=admin.id)
    await services.voting.fetch_candidates()
    return to_response(candidate)


@router.put("/{candidate_id}", response_model=CandidateResponse)
async def update_candidate(
    candidate_id: int,
    candidate_data: CandidateUpdate,
    admin: Annotated[AuthUser, Depends(get_current_admin_user)],
    services: AppServices = Depends(get_services),
) -> CandidateResponse:
    """Edit a candidate."""
    if candidate_data.missing_required():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=REQUIRED_FIELDS_MESSAGE)

    repo = CandidateRepository(services.platform, token=admin.access_token)
    try:
        candidate = await repo.update(candidate_id, candidate_data.to_row())
    except PlatformError as e:
        logger.error("candidate_update_failed", candidate_id=candidate_id, error=e.message)
        raise platform_http_error(e) from e

    if candidate is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Candidate not found")

    logger.info("candidate_updated", candidate_id=candidate_id, admin_id=admin.id)
    await services.voting.fetch_candidates()
    return to_response(candidate, services.voting.vote_counts.get(candidate_id, 0))


@router.delete("/{candidate_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_candidate(
    candidate_id: int,
    admin: Annotated[AuthUser, Depends(get_current_admin_user)],
    services: AppServices = Depends(get_services),
) -> None:
    """Remove a candidate."""
    repo = CandidateRepository(services.platform, token=admin.access_token)
    try:
        removed = await repo.delete(candidate_id)
    except PlatformError as e:
        logger.error("candidate_delete_failed", candidate_id=candidate_id, error=e.message)
        raise platform_http_error(e) from e

    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Candidate not found")

    logger.info("candidate_deleted", candidate_id=candidate_id, admin_id=admin.id)
    await services.voting.fetch_candidates()
