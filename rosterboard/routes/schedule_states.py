"""Schedule state router - lifecycle state and cancellation reasons"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..audit import log_action
from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..schemas import CancellationReasonSave, ScheduleStateClear, ScheduleStateSave
from ..services.state_service import StateService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Schedule States"])


def get_state_service(db: Session = Depends(get_db)) -> StateService:
    """Dependency injection for StateService"""
    return StateService(db)


def _parse_ids(raw: str) -> list[int]:
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise HTTPException(status_code=400, detail="employeeIds must be a comma-separated list of ids") from e


@router.get("/schedule-states/all")
async def get_all_states(
    current_user: CurrentUser = Depends(get_current_user),
    service: StateService = Depends(get_state_service),
):
    """State catalog with display names and icons"""
    return {"success": True, "states": service.all_states()}


@router.get("/schedule-states/bulk")
async def get_states_bulk(
    employeeIds: str = Query(...),
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    service: StateService = Depends(get_state_service),
):
    states = service.get_states(_parse_ids(employeeIds), startDate, endDate)
    return {"success": True, "states": states}


@router.get("/schedule-states")
async def get_states(
    employeeId: int = Query(...),
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    service: StateService = Depends(get_state_service),
):
    return {"success": True, "states": service.get_states([employeeId], startDate, endDate)}


@router.post("/schedule-state")
async def save_state(
    data: ScheduleStateSave,
    current_user: CurrentUser = Depends(get_current_user),
    service: StateService = Depends(get_state_service),
):
    result = service.set_state(data)
    log_action(
        service.db,
        current_user,
        "UPDATE",
        "employee_schedule",
        record_id=f"{data.employeeId}:{data.date.isoformat()}:{data.statusId}",
        after=data.model_dump(),
    )
    return result


@router.delete("/schedule-state")
async def clear_state(
    data: ScheduleStateClear,
    current_user: CurrentUser = Depends(get_current_user),
    service: StateService = Depends(get_state_service),
):
    result = service.clear_state(data)
    if result["cleared"]:
        log_action(
            service.db,
            current_user,
            "DELETE",
            "employee_schedule",
            record_id=f"{data.employeeId}:{data.date.isoformat()}:{data.statusId}",
            before=data.model_dump(),
        )
    return result


@router.post("/cancellation-reason")
async def save_cancellation_reason(
    data: CancellationReasonSave,
    current_user: CurrentUser = Depends(get_current_user),
    service: StateService = Depends(get_state_service),
):
    result = service.save_cancellation(data)
    log_action(
        service.db,
        current_user,
        "CREATE",
        "cancellation_reasons",
        record_id=result["cancellationReasonId"],
        after={**data.model_dump(), "cancelledAt": result["cancelledAt"]},
    )
    return result


@router.get("/cancellation-reasons")
async def get_cancellation_reasons(
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    service: StateService = Depends(get_state_service),
):
    return {"success": True, "data": service.list_cancellations(startDate, endDate)}
