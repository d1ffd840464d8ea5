from datetime import date as date_type
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, field_validator

STATE_NAMES = ("completed", "cancelled", "postponed")


class EmployeeResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    ext: Optional[str] = None

    class Config:
        from_attributes = True


class StatusResponse(BaseModel):
    id: int
    label: str
    color: Optional[str] = None

    class Config:
        from_attributes = True


class ClientResponse(BaseModel):
    id: int
    name: str
    color: Optional[str] = None

    class Config:
        from_attributes = True


class ScheduleTypeResponse(BaseModel):
    id: int
    type_name: str

    class Config:
        from_attributes = True


class ScheduleItem(BaseModel):
    """One marker in a full-replace save"""

    type: str  # status, client, client-with-type
    id: Optional[Union[int, str]] = None
    clientId: Optional[int] = None
    scheduleTypeId: Optional[int] = None
    withEmployeeId: Optional[int] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in ("status", "client", "client-with-type"):
            raise ValueError(f"Unknown item type: {v}")
        return v


class ScheduleSave(BaseModel):
    employeeId: int
    date: date_type
    items: list[ScheduleItem] = []


class ScheduleStateClear(BaseModel):
    employeeId: int
    date: date_type
    statusId: str

    @field_validator("statusId", mode="before")
    @classmethod
    def coerce_status_id(cls, v):
        return str(v)


class ScheduleStateSave(ScheduleStateClear):
    stateName: str
    postponedDate: Optional[date_type] = None
    isTBA: bool = False

    @field_validator("stateName")
    @classmethod
    def validate_state_name(cls, v):
        v = v.lower()
        if v not in STATE_NAMES:
            raise ValueError(f"stateName must be one of: {', '.join(STATE_NAMES)}")
        return v


class CancellationReasonSave(ScheduleStateClear):
    reason: str = ""
    note: Optional[str] = ""
    cancelledAt: Optional[datetime] = None
