"""Schedule router - day buckets per employee"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..audit import log_action
from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..schemas import ScheduleSave
from ..services.schedule_service import ScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Schedule"])


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    """Dependency injection for ScheduleService"""
    return ScheduleService(db)


@router.get("/schedule")
async def get_schedule(
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    """All buckets, optionally limited to a date range"""
    if (startDate is None) != (endDate is None):
        raise HTTPException(status_code=400, detail="startDate and endDate must be given together")
    return service.get_schedules(startDate, endDate)


@router.post("/schedule")
async def save_schedule(
    data: ScheduleSave,
    current_user: CurrentUser = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Replace one employee's bucket for one date"""
    logger.info(f"📥 Saving {len(data.items)} item(s) for employee {data.employeeId} on {data.date}")
    day = service.get_schedules(data.date, data.date).get(str(data.employeeId), {})
    before = day.get(data.date.isoformat(), [])
    result = service.save_day(data.employeeId, data.date, data.items)
    log_action(
        service.db,
        current_user,
        "UPDATE" if before else "CREATE",
        "employee_schedule",
        record_id=f"{data.employeeId}:{data.date.isoformat()}",
        before={"markers": before} if before else None,
        after={"markers": result["markers"]},
    )
    return result
