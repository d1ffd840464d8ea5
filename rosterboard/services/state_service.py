"""State service - lifecycle state and cancellation detail of schedule rows"""

import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import CancellationReason, EmployeeSchedule, ScheduleState
from ..schemas import STATE_NAMES, CancellationReasonSave, ScheduleStateClear, ScheduleStateSave
from .schedule_service import ScheduleService, row_identifier

logger = logging.getLogger(__name__)

STATE_ICONS = {"completed": "✓", "cancelled": "✕", "postponed": "⏱"}


def state_row(row: EmployeeSchedule) -> dict:
    """Wire shape of one stateful schedule row"""
    reason = row.cancellation_reason
    return {
        "id": row.id,
        "employee_id": row.employee_id,
        "date": row.date.isoformat(),
        "status_id": row_identifier(row),
        "state_name": row.schedule_state.state_name if row.schedule_state else None,
        "cancellation_reason": reason.reason if reason else None,
        "cancellation_note": reason.note if reason else None,
        "cancelled_at": reason.created_at.isoformat() if reason and reason.created_at else None,
        "postponed_date": row.postponed_date.isoformat() if row.postponed_date else None,
        "is_tba": bool(row.is_tba),
    }


class StateService:
    """Service layer for lifecycle state"""

    def __init__(self, db: Session):
        self.db = db
        self.schedules = ScheduleService(db)

    def ensure_states(self) -> list[ScheduleState]:
        """Seed the state catalog"""
        existing = {s.state_name for s in self.db.query(ScheduleState).all()}
        for name in STATE_NAMES:
            if name not in existing:
                self.db.add(ScheduleState(state_name=name))
        if len(existing) < len(STATE_NAMES):
            self.db.commit()
        return self.db.query(ScheduleState).order_by(ScheduleState.id).all()

    def all_states(self) -> list[dict]:
        states = []
        for state in self.ensure_states():
            name = state.state_name.lower()
            states.append(
                {
                    "id": state.id,
                    "state_name": name,
                    "display_name": name.capitalize(),
                    "icon": STATE_ICONS.get(name, "•"),
                }
            )
        return states

    def get_states(
        self,
        employee_ids: Iterable[int],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[dict]:
        employee_ids = list(employee_ids)
        if not employee_ids:
            return []

        query = self.db.query(EmployeeSchedule).filter(
            EmployeeSchedule.employee_id.in_(employee_ids),
            EmployeeSchedule.schedule_state_id.isnot(None),
        )
        if start_date and end_date:
            query = query.filter(EmployeeSchedule.date >= start_date, EmployeeSchedule.date <= end_date)

        return [state_row(row) for row in query.order_by(EmployeeSchedule.date, EmployeeSchedule.id).all()]

    def _rows_or_404(self, employee_id: int, day: date, marker_id: str) -> list[EmployeeSchedule]:
        rows = self.schedules.matching_rows(employee_id, day, marker_id)
        if not rows:
            logger.warning(f"⚠️ No schedule entry {marker_id} for employee {employee_id} on {day}")
            raise HTTPException(status_code=404, detail="Schedule entry not found")
        return rows

    def _commit(self, action: str):
        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to {action}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to {action}") from e

    def set_state(self, data: ScheduleStateSave) -> dict:
        """Upsert the state on every row the marker id addresses"""
        if data.stateName == "postponed" and not data.isTBA and data.postponedDate is None:
            raise HTTPException(status_code=400, detail="postponedDate is required unless isTBA is set")

        rows = self._rows_or_404(data.employeeId, data.date, data.statusId)
        state = next(s for s in self.ensure_states() if s.state_name == data.stateName)

        for row in rows:
            row.schedule_state_id = state.id
            if data.stateName != "cancelled":
                row.cancellation_reason_id = None
            if data.stateName == "postponed":
                row.is_tba = data.isTBA
                row.postponed_date = None if data.isTBA else data.postponedDate
            else:
                row.is_tba = False
                row.postponed_date = None

        self._commit("save schedule state")
        logger.info(f"✅ {data.statusId} on {data.date} set to {data.stateName} ({len(rows)} row(s))")
        return {
            "success": True,
            "updated": len(rows),
            "states": [state_row(row) for row in rows],
        }

    def clear_state(self, data: ScheduleStateClear) -> dict:
        """Back to active. Nothing to clear is not an error."""
        rows = self.schedules.matching_rows(data.employeeId, data.date, data.statusId)
        for row in rows:
            row.schedule_state_id = None
            row.cancellation_reason_id = None
            row.postponed_date = None
            row.is_tba = False

        if rows:
            self._commit("clear schedule state")
        logger.info(f"🧹 Cleared state of {data.statusId} on {data.date} ({len(rows)} row(s))")
        return {"success": True, "cleared": len(rows)}

    def save_cancellation(self, data: CancellationReasonSave) -> dict:
        reason = (data.reason or "").strip()
        if not reason:
            raise HTTPException(status_code=400, detail="Cancellation reason is required")

        rows = self._rows_or_404(data.employeeId, data.date, data.statusId)

        cancellation = CancellationReason(
            reason=reason,
            note=data.note or "",
            created_at=data.cancelledAt or datetime.now(timezone.utc),
        )
        self.db.add(cancellation)
        self.db.flush()

        for row in rows:
            row.cancellation_reason_id = cancellation.id

        self._commit("save cancellation reason")
        self.db.refresh(cancellation)
        logger.info(f"✅ Cancellation reason saved for {data.statusId} on {data.date}")
        return {
            "success": True,
            "cancellationReasonId": cancellation.id,
            "cancelledAt": cancellation.created_at.isoformat() if cancellation.created_at else None,
        }

    def list_cancellations(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> list[dict]:
        query = self.db.query(EmployeeSchedule).filter(EmployeeSchedule.cancellation_reason_id.isnot(None))
        if start_date and end_date:
            query = query.filter(EmployeeSchedule.date >= start_date, EmployeeSchedule.date <= end_date)

        return [
            {
                "employee_id": row.employee_id,
                "employee_name": row.employee.name if row.employee else None,
                "date": row.date.isoformat(),
                "status_id": row_identifier(row),
                "reason": row.cancellation_reason.reason,
                "note": row.cancellation_reason.note,
                "cancelled_at": row.cancellation_reason.created_at.isoformat()
                if row.cancellation_reason.created_at
                else None,
            }
            for row in query.order_by(EmployeeSchedule.date, EmployeeSchedule.id).all()
        ]
