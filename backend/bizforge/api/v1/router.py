from fastapi import APIRouter, Request

from bizforge import __version__
from bizforge.api.v1.endpoints import orchestration

api_router = APIRouter()

api_router.include_router(orchestration.router, prefix="/orchestrations", tags=["Orchestration"])


@api_router.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Service status with orchestration load"""
    jobs = request.app.state.job_manager
    broadcaster = request.app.state.broadcaster
    return {
        "status": "healthy",
        "service": "bizforge",
        "version": __version__,
        "active_jobs": jobs.active_count(),
        "subscribed_jobs": len(broadcaster.active_jobs()),
        "subscribers": broadcaster.subscriber_count(),
    }
