"""
API Router — Combines all endpoint groups.

Analysis (6 endpoints): /api/v1/analysis, /analysis/{file,themes,correlations,stats,health}
"""

from fastapi import APIRouter

from datascope.api.v1.analysis import router as analysis_router

api_router = APIRouter()

api_router.include_router(
    analysis_router,
    tags=["Data Analysis"],
)
