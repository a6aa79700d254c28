from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel


router = APIRouter()


class SweepStatsRead(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    due: int
    sent: int
    failed: int
    skipped: int
    sent_ids: List[int] = []
    locked_out: bool = False


class SchedulerStatus(BaseModel):
    enabled: bool
    running: bool
    interval_seconds: Optional[float] = None
    sweep_count: int = 0
    last_sweep: Optional[SweepStatsRead] = None


def _scheduler(request: Request):
    return getattr(request.app.state, "reminder_scheduler", None)


@router.get("/health")
def health_check():
    return {"status": "healthy", "service": "reminders"}


@router.get("/scheduler", response_model=SchedulerStatus)
def scheduler_status(request: Request):
    scheduler = _scheduler(request)
    if scheduler is None:
        return SchedulerStatus(enabled=False, running=False)
    last = scheduler.last_stats
    return SchedulerStatus(
        enabled=True,
        running=scheduler.is_running,
        interval_seconds=scheduler.interval_seconds,
        sweep_count=scheduler.sweep_count,
        last_sweep=SweepStatsRead(**last.as_dict()) if last else None,
    )


@router.post("/sweep", response_model=SweepStatsRead)
async def run_sweep(request: Request):
    """Run one reminder sweep now, serialised with the background loop."""
    scheduler = _scheduler(request)
    if scheduler is None:
        raise HTTPException(status_code=409, detail="Reminder scheduler is disabled in this process")
    stats = await scheduler.run_once()
    return SweepStatsRead(**stats.as_dict())
