"""
Health check and status endpoints
"""
from fastapi import APIRouter

from pulse.config import get_settings
from pulse.services.queue_service import queue
from pulse.utils.helpers import utcnow
from pulse import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__,
        "environment": settings.environment,
        "jobs_in_flight": queue.in_flight
    }
