"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.auth import router as auth_router
from api.v1.candidates import router as candidates_router
from api.v1.scores import router as scores_router
from api.v1.site import router as site_router
from api.v1.votes import router as votes_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["Authentication"])
router.include_router(candidates_router, prefix="/candidates", tags=["Candidates"])
router.include_router(votes_router, prefix="/votes", tags=["Votes"])
router.include_router(scores_router, prefix="/scores", tags=["AI Scores"])
router.include_router(site_router, prefix="/site", tags=["Site Settings"])
