"""Schedule service - full-replace persistence of employee day buckets"""

import logging
from collections import defaultdict
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..engine.markers import (
    ClientMarker,
    StatusMarker,
    TypedClientMarker,
    WithEmployeeMarker,
    decode,
    identifier_for,
)
from ..models import Employee, EmployeeSchedule
from ..schemas import ScheduleItem

logger = logging.getLogger(__name__)


def _int(value) -> Optional[int]:
    value = str(value)
    return int(value) if value.isdigit() else None


def row_identifier(row: EmployeeSchedule) -> Optional[str]:
    return identifier_for(
        status_id=row.status_id,
        client_id=row.client_id,
        schedule_type_id=row.schedule_type_id,
        with_employee_id=row.with_employee_id,
    )


def _row_shape(row: EmployeeSchedule) -> tuple:
    return (row.status_id, row.client_id, row.schedule_type_id, row.with_employee_id)


def _item_shape(item: ScheduleItem) -> tuple:
    """(status_id, client_id, schedule_type_id, with_employee_id) of a save item"""
    if item.type == "status":
        marker = decode(item.id)
        status_id = _int(marker.status_id) if isinstance(marker, StatusMarker) else None
        if status_id is None:
            raise HTTPException(status_code=400, detail=f"Invalid status id: {item.id}")
        return (status_id, None, None, item.withEmployeeId)

    if item.clientId is None:
        raise HTTPException(status_code=400, detail="clientId is required for client items")
    if item.type == "client-with-type":
        if item.scheduleTypeId is None:
            raise HTTPException(status_code=400, detail="scheduleTypeId is required for typed client items")
        return (None, item.clientId, item.scheduleTypeId, None)
    return (None, item.clientId, None, None)


class ScheduleService:
    """Service layer for schedule rows"""

    def __init__(self, db: Session):
        self.db = db

    def get_schedules(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> dict:
        """``{employeeId: {date: [markerId, ...]}}`` in insertion order"""
        query = self.db.query(EmployeeSchedule).filter(EmployeeSchedule.employee_id.isnot(None))
        if start_date and end_date:
            query = query.filter(EmployeeSchedule.date >= start_date, EmployeeSchedule.date <= end_date)

        schedule = defaultdict(lambda: defaultdict(list))
        for row in query.order_by(EmployeeSchedule.id).all():
            identifier = row_identifier(row)
            if identifier is None:
                continue
            day = schedule[str(row.employee_id)][row.date.isoformat()]
            if identifier not in day:
                day.append(identifier)

        return {employee_id: dict(days) for employee_id, days in schedule.items()}

    def get_day(self, employee_id: int, day: date) -> list[EmployeeSchedule]:
        return (
            self.db.query(EmployeeSchedule)
            .filter(EmployeeSchedule.employee_id == employee_id, EmployeeSchedule.date == day)
            .order_by(EmployeeSchedule.id)
            .all()
        )

    def save_day(self, employee_id: int, day: date, items: list[ScheduleItem]) -> dict:
        """
        Replace the employee's bucket for ``day`` with ``items``.

        Existing rows are reused where possible so their lifecycle state
        survives: exact matches first, then any row of the same client (its
        type is rewritten). Rows left over are deleted.
        """
        if not self.db.query(Employee).filter(Employee.id == employee_id).first():
            raise HTTPException(status_code=404, detail="Employee not found")

        wanted = []
        for item in items:
            shape = _item_shape(item)
            if shape not in wanted:
                wanted.append(shape)

        existing = self.get_day(employee_id, day)
        unused = list(existing)
        assigned = {}

        # Exact matches
        for shape in wanted:
            for row in unused:
                if _row_shape(row) == shape:
                    assigned[shape] = row
                    unused.remove(row)
                    break

        # Same client, different type: keep the row and its state
        for shape in wanted:
            if shape in assigned or shape[1] is None:
                continue
            for row in unused:
                if row.client_id == shape[1]:
                    row.schedule_type_id = shape[2]
                    assigned[shape] = row
                    unused.remove(row)
                    break

        created = 0
        for shape in wanted:
            if shape in assigned:
                continue
            status_id, client_id, schedule_type_id, with_employee_id = shape
            row = EmployeeSchedule(
                employee_id=employee_id,
                date=day,
                status_id=status_id,
                client_id=client_id,
                schedule_type_id=schedule_type_id,
                with_employee_id=with_employee_id,
            )
            # Typed visits of one client share a single lifecycle state
            sibling = next(
                (
                    r
                    for r in assigned.values()
                    if client_id is not None and r.client_id == client_id and r.schedule_state_id
                ),
                None,
            )
            if sibling is not None:
                row.schedule_state_id = sibling.schedule_state_id
                row.cancellation_reason_id = sibling.cancellation_reason_id
                row.postponed_date = sibling.postponed_date
                row.is_tba = sibling.is_tba
            self.db.add(row)
            created += 1

        for row in unused:
            self.db.delete(row)

        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save schedule for employee {employee_id} on {day}: {e}")
            raise HTTPException(status_code=500, detail="Failed to save schedule") from e

        markers = [row_identifier(row) for row in self.get_day(employee_id, day)]
        logger.info(
            f"✅ Saved {len(markers)} marker(s) for employee {employee_id} on {day} "
            f"({created} created, {len(unused)} deleted)"
        )
        return {
            "success": True,
            "employeeId": employee_id,
            "date": day.isoformat(),
            "markers": markers,
            "created": created,
            "deleted": len(unused),
        }

    def matching_rows(self, employee_id: int, day: date, marker_id: str) -> list[EmployeeSchedule]:
        """
        Rows addressed by a marker id. A bare client id matches every row of
        that client on the date, typed or not.
        """
        marker = decode(marker_id)
        query = self.db.query(EmployeeSchedule).filter(
            EmployeeSchedule.employee_id == employee_id, EmployeeSchedule.date == day
        )

        if isinstance(marker, WithEmployeeMarker):
            status_id, with_employee_id = _int(marker.status_id), _int(marker.employee_id)
            if status_id is None or with_employee_id is None:
                return []
            query = query.filter(
                EmployeeSchedule.status_id == status_id,
                EmployeeSchedule.with_employee_id == with_employee_id,
            )
        elif isinstance(marker, TypedClientMarker):
            client_id, type_id = _int(marker.client_id), _int(marker.type_id)
            if client_id is None or type_id is None:
                return []
            query = query.filter(
                EmployeeSchedule.client_id == client_id,
                EmployeeSchedule.schedule_type_id == type_id,
            )
        elif isinstance(marker, ClientMarker):
            client_id = _int(marker.client_id)
            if client_id is None:
                return []
            query = query.filter(EmployeeSchedule.client_id == client_id)
        elif isinstance(marker, StatusMarker):
            status_id = _int(marker.status_id)
            if status_id is None:
                return []
            query = query.filter(
                EmployeeSchedule.status_id == status_id,
                EmployeeSchedule.with_employee_id.is_(None),
                EmployeeSchedule.client_id.is_(None),
            )
        else:
            return []

        return query.order_by(EmployeeSchedule.id).all()
