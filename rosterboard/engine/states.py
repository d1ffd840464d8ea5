"""
Lifecycle state records

A marker with no record is Active. The three stored states form a
discriminated union on ``state``; whatever shape the server returns is
normalized here, so nothing past the Lifecycle State Store sees raw dicts.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, model_validator

from .markers import MarkerLike, base_of, wire_id


class StateName(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


class CancelledAtPolicy(str, Enum):
    PRESERVE = "preserve"
    REFRESH = "refresh"


class Completed(BaseModel):
    state: Literal["completed"] = "completed"

    class Config:
        frozen = True


class Cancelled(BaseModel):
    state: Literal["cancelled"] = "cancelled"
    reason: str
    note: str = ""
    cancelled_at: Optional[datetime] = None

    class Config:
        frozen = True


class Postponed(BaseModel):
    """
    ``is_tba`` keeps the marker on its date with no destination. Otherwise
    ``postponed_date`` is the date the marker was moved *from*.
    """

    state: Literal["postponed"] = "postponed"
    is_tba: bool = False
    postponed_date: Optional[date] = None

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_destination(self):
        if self.is_tba and self.postponed_date is not None:
            raise ValueError("A TBA postponement cannot carry a date")
        if not self.is_tba and self.postponed_date is None:
            raise ValueError("postponed_date is required unless the postponement is TBA")
        return self


LifecycleState = Union[Completed, Cancelled, Postponed]


class StateKey(NamedTuple):
    employee_id: str
    date: date
    marker_id: str

    @classmethod
    def for_marker(cls, employee_id, day, marker: MarkerLike) -> "StateKey":
        """Typed siblings of a client all resolve to the client's base key"""
        return cls(str(employee_id), parse_date(day), base_of(marker))


def parse_date(value) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # Naive timestamps from the server are UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def parse_state(payload: Optional[dict]) -> Optional[LifecycleState]:
    """
    Normalize a server state row (snake_case or camelCase, string or nested
    state) into a record. Returns None for Active/unknown states.
    """
    if not payload:
        return None

    raw_state = payload.get("state_name") or payload.get("stateName") or payload.get("state")
    if isinstance(raw_state, dict):
        payload = {**payload, **raw_state}
        raw_state = raw_state.get("state")
    if not raw_state:
        return None

    name = str(raw_state).lower()
    if name == StateName.COMPLETED.value:
        return Completed()
    if name == StateName.CANCELLED.value:
        return Cancelled(
            reason=payload.get("cancellation_reason") or payload.get("reason") or "",
            note=payload.get("cancellation_note") or payload.get("note") or "",
            cancelled_at=parse_datetime(payload.get("cancelled_at") or payload.get("cancelledAt")),
        )
    if name == StateName.POSTPONED.value:
        postponed_date = parse_date(payload.get("postponed_date") or payload.get("postponedDate"))
        is_tba = payload.get("is_tba", payload.get("isTBA"))
        if is_tba or postponed_date is None:
            return Postponed(is_tba=True)
        return Postponed(is_tba=False, postponed_date=postponed_date)
    return None


def state_payload(key: StateKey, state: LifecycleState) -> dict:
    """Request body for the state upsert endpoint"""
    postponed_date = getattr(state, "postponed_date", None)
    return {
        "employeeId": wire_id(key.employee_id),
        "date": key.date.isoformat(),
        "statusId": key.marker_id,
        "stateName": state.state,
        "postponedDate": postponed_date.isoformat() if postponed_date else None,
        "isTBA": bool(getattr(state, "is_tba", False)),
    }
