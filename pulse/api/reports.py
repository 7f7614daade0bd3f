"""
Reports API

Endpoints for generating, listing, retrying and downloading PDF reports,
plus the user's automatic report schedule.
"""
import io
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pulse.api.deps import get_current_user_id
from pulse.models.base import get_db
from pulse.models.report import ReportStatus, ReportType
from pulse.services.report_service import (
    ReportConflictError,
    ReportNotFoundError,
    ReportService,
    get_report_service,
)
from pulse.services.schedule_service import ScheduleService
from pulse.utils.logger import log

router = APIRouter(prefix="/reports", tags=["reports"])


class GenerateReportRequest(BaseModel):
    type: ReportType


class UpdateScheduleRequest(BaseModel):
    enabled: Optional[bool] = None
    day_of_week: Optional[int] = Field(None, ge=0, le=6, description="0 = Monday")
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    hour_utc: Optional[int] = Field(None, ge=0, le=23)
    minute_utc: Optional[int] = Field(None, ge=0, le=59)


def _domain_error(e: Exception) -> HTTPException:
    if isinstance(e, ReportNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ReportConflictError):
        return HTTPException(status_code=409, detail=str(e))
    log.error(f"Report API error: {str(e)}")
    return HTTPException(status_code=500, detail=str(e))


@router.get("")
async def list_reports(
    type: Optional[ReportType] = Query(None, description="WEEKLY or MONTHLY"),
    status: Optional[ReportStatus] = Query(None, description="PENDING, PROCESSING, DONE or FAILED"),
    user_id: str = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service)
):
    """List the user's reports, newest first"""
    try:
        reports = await service.list_reports(user_id, report_type=type, status=status)
        return {
            "success": True,
            "data": reports
        }
    except Exception as e:
        raise _domain_error(e)


@router.post("/generate")
async def generate_report(
    request: GenerateReportRequest,
    user_id: str = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service)
):
    """
    Request a report over the trailing 7 (weekly) or 30 (monthly) days

    Returns the PENDING report immediately; generation runs in the background.
    """
    try:
        report = service.create_report(user_id, request.type)
        return {
            "success": True,
            "message": "Report generation queued",
            "data": report
        }
    except Exception as e:
        raise _domain_error(e)


@router.post("/{report_id}/retry")
async def retry_report(
    report_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service)
):
    """Retry a finished or failed report (409 while it is still in flight)"""
    try:
        report = service.retry_report(report_id, user_id)
        return {
            "success": True,
            "message": "Report generation queued",
            "data": report
        }
    except Exception as e:
        raise _domain_error(e)


@router.get("/{report_id}/download")
async def download_report(
    report_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service)
):
    """Download the report PDF"""
    try:
        file_name, content = service.get_download(report_id, user_id)
    except Exception as e:
        raise _domain_error(e)

    return StreamingResponse(
        io.BytesIO(content),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("/schedule")
async def get_schedule(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Current automatic report schedule"""
    try:
        schedule = ScheduleService(db).get_schedule(user_id)
        return {
            "success": True,
            "data": schedule.to_dict()
        }
    except Exception as e:
        log.error(f"Error getting report schedule: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/schedule")
async def update_schedule(
    request: UpdateScheduleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Update the automatic report schedule (only the fields provided)"""
    try:
        schedule = ScheduleService(db).update_schedule(user_id, request.model_dump(exclude_none=True))
        return {
            "success": True,
            "data": schedule.to_dict()
        }
    except Exception as e:
        log.error(f"Error updating report schedule: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
