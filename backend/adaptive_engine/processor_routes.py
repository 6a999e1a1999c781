"""Status and manual-trigger endpoints for the analytics processor."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from .analytics_models import SweepReport
from .config import Settings, get_settings
from .scheduler import AnalyticsScheduler

router = APIRouter(prefix="/api/analytics/processor", tags=["analytics"])


def get_analytics_scheduler(request: Request) -> AnalyticsScheduler:
    scheduler = getattr(request.app.state, "analytics_scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Analytics scheduler has not been initialised.",
        )
    return scheduler


@router.get("/status", status_code=status.HTTP_200_OK)
def processor_status(scheduler: AnalyticsScheduler = Depends(get_analytics_scheduler)) -> Dict[str, Any]:
    return scheduler.get_status()


@router.post("/run", response_model=SweepReport, status_code=status.HTTP_200_OK)
def processor_run(
    daily: bool = False,
    scheduler: AnalyticsScheduler = Depends(get_analytics_scheduler),
    settings: Settings = Depends(get_settings),
) -> SweepReport:
    if not settings.debug_endpoints:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    report = scheduler.run_daily_sweep() if daily else scheduler.run_regular_sweep()
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A sweep of this kind is already in progress.",
        )
    return report


__all__ = ["get_analytics_scheduler", "router"]
