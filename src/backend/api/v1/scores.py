"""
AI score endpoints.

Scores are a presentational heuristic over voters' email addresses. They are
recomputed on every request to ``GET /scores``.
"""

from fastapi import APIRouter, Depends

from api.deps import get_services
from core.container import AppServices
from schemas.score import AIScoreEntry, AIScoresResponse, ScoreCriterion
from services.ai_score import get_spam_detection_criteria

router = APIRouter()


@router.get("", response_model=AIScoresResponse)
async def get_scores(services: AppServices = Depends(get_services)) -> AIScoresResponse:
    """Scores for every current candidate."""
    candidate_ids = [candidate.id for candidate in services.voting.candidates]
    scores = await services.scores.calculate_all_ai_scores(candidate_ids)
    return AIScoresResponse(
        scores={cid: AIScoreEntry.model_validate(data.model_dump()) for cid, data in scores.items()}
    )


@router.get("/criteria", response_model=list[ScoreCriterion])
async def get_criteria() -> list[ScoreCriterion]:
    """The criteria behind the score, with their weights."""
    return [ScoreCriterion(**criterion) for criterion in get_spam_detection_criteria()]
