"""
Analytics API

Period overview, per-channel stats and YouTube/web correlation for the
calling user.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pulse.api.deps import get_current_user_id
from pulse.models.base import get_db
from pulse.services.analytics_service import AnalyticsService, Ga4NotConnectedError, Period
from pulse.utils.logger import log

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _serialize_overview(overview: dict) -> dict:
    data = dict(overview)
    data['time_series'] = [
        {
            'date': point.date.isoformat(),
            'youtube_views': point.youtube_views,
            'web_sessions': point.web_sessions,
        }
        for point in overview['time_series']
    ]
    return data


@router.get("/overview")
async def get_overview(
    period: Period = Query(Period.SEVEN_DAYS, description="7d, 30d or 90d"),
    end_date: Optional[date] = Query(None, description="Last day of the period (YYYY-MM-DD), default today UTC"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Headline numbers for the period

    Returns:
    - YouTube views and web sessions with % change vs the previous period
    - Pulse Score and its change
    - Daily YouTube views / web sessions series
    """
    try:
        overview = await AnalyticsService(db).get_overview(period, user_id, end_date)
        return {
            "success": True,
            "data": _serialize_overview(overview)
        }
    except Exception as e:
        log.error(f"Error getting analytics overview: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/youtube")
async def get_youtube_stats(
    period: Period = Query(Period.SEVEN_DAYS, description="7d, 30d or 90d"),
    end_date: Optional[date] = Query(None, description="Last day of the period (YYYY-MM-DD)"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """YouTube views, subscribers, watch time and retention"""
    try:
        stats = await AnalyticsService(db).get_youtube_stats(period, user_id, end_date)
        return {
            "success": True,
            "data": stats
        }
    except Exception as e:
        log.error(f"Error getting YouTube stats: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/ga4")
async def get_ga4_stats(
    period: Period = Query(Period.SEVEN_DAYS, description="7d, 30d or 90d"),
    end_date: Optional[date] = Query(None, description="Last day of the period (YYYY-MM-DD)"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """GA4 sessions, users, bounce rate and session duration"""
    try:
        stats = await AnalyticsService(db).get_ga4_stats(period, user_id, end_date)
        return {
            "success": True,
            "data": stats
        }
    except Ga4NotConnectedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log.error(f"Error getting GA4 stats: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/correlations")
async def get_correlations(
    period: Period = Query(Period.THIRTY_DAYS, description="7d, 30d or 90d"),
    end_date: Optional[date] = Query(None, description="Last day of the period (YYYY-MM-DD)"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Correlation score, best lag, insight text, chart points and video peaks"""
    try:
        result = await AnalyticsService(db).get_correlations(period, user_id, end_date)
        return {
            "success": True,
            "data": result
        }
    except Exception as e:
        log.error(f"Error getting correlations: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
