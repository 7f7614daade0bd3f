"""
Background job status
"""
from fastapi import APIRouter, Depends, HTTPException

from pulse.api.deps import get_current_user_id
from pulse.services.queue_service import queue

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("/jobs/{job_id}")
async def get_job_status(
    job_id: str,
    user_id: str = Depends(get_current_user_id)
):
    """Status of a queued job (WAITING, ACTIVE, COMPLETED or FAILED)"""
    record = queue.get_status(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")

    return {
        "success": True,
        "data": record.to_dict()
    }
