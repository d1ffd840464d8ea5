"""
Marker identifiers

A marker is one occupancy entry in an employee's day. Internally markers are
explicit variants; the prefixed string form (``status-3``, ``client-5``,
``client-5_type-2``, ``with_7_status-3``) only exists at the encode/decode
boundary and on the wire.
"""

import re
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel


class MarkerKind(str, Enum):
    STATUS = "status"
    CLIENT = "client"
    TYPED_CLIENT = "typed_client"
    WITH_EMPLOYEE = "with_employee"
    UNKNOWN = "unknown"


class StatusMarker(BaseModel):
    """A fixed catalog status (Office, Sick Leave, ...)"""

    status_id: str

    class Config:
        frozen = True

    @property
    def kind(self) -> MarkerKind:
        return MarkerKind.STATUS


class ClientMarker(BaseModel):
    """A client visit with no schedule type"""

    client_id: str

    class Config:
        frozen = True

    @property
    def kind(self) -> MarkerKind:
        return MarkerKind.CLIENT


class TypedClientMarker(BaseModel):
    """A client visit qualified by a schedule type"""

    client_id: str
    type_id: str

    class Config:
        frozen = True

    @property
    def kind(self) -> MarkerKind:
        return MarkerKind.TYPED_CLIENT


class WithEmployeeMarker(BaseModel):
    """The "With ..." status paired with a second employee"""

    employee_id: str
    status_id: str

    class Config:
        frozen = True

    @property
    def kind(self) -> MarkerKind:
        return MarkerKind.WITH_EMPLOYEE


class UnknownMarker(BaseModel):
    """An identifier the codec does not recognize, kept verbatim"""

    raw: str

    class Config:
        frozen = True

    @property
    def kind(self) -> MarkerKind:
        return MarkerKind.UNKNOWN


Marker = Union[StatusMarker, ClientMarker, TypedClientMarker, WithEmployeeMarker, UnknownMarker]
MarkerLike = Union[Marker, str, int]

# Order matters: the more specific shapes are tried first
_WITH_RE = re.compile(r"^with_(?P<employee>[^_]+)_(?:status-)?(?P<status>[^_]+)$")
_TYPED_CLIENT_RE = re.compile(r"^client-(?P<client>[^_]+)_type-(?P<type>[^_]+)$")
_CLIENT_RE = re.compile(r"^client-(?P<client>[^_]+)$")
_STATUS_RE = re.compile(r"^status-(?P<status>[^_]+)$")
_BARE_ID_RE = re.compile(r"^\d+$")


def encode(marker: Marker) -> str:
    if isinstance(marker, StatusMarker):
        return f"status-{marker.status_id}"
    if isinstance(marker, TypedClientMarker):
        return f"client-{marker.client_id}_type-{marker.type_id}"
    if isinstance(marker, ClientMarker):
        return f"client-{marker.client_id}"
    if isinstance(marker, WithEmployeeMarker):
        return f"with_{marker.employee_id}_status-{marker.status_id}"
    return marker.raw


def decode(value: MarkerLike) -> Marker:
    """
    Parse an identifier into its variant.

    Never raises: anything unrecognized becomes an UnknownMarker. Bare numeric
    ids are treated as catalog status ids.
    """
    if isinstance(value, (StatusMarker, ClientMarker, TypedClientMarker, WithEmployeeMarker, UnknownMarker)):
        return value

    raw = "" if value is None else str(value).strip()

    match = _WITH_RE.match(raw)
    if match:
        return WithEmployeeMarker(employee_id=match["employee"], status_id=match["status"])

    match = _TYPED_CLIENT_RE.match(raw)
    if match:
        return TypedClientMarker(client_id=match["client"], type_id=match["type"])

    match = _CLIENT_RE.match(raw)
    if match:
        return ClientMarker(client_id=match["client"])

    match = _STATUS_RE.match(raw)
    if match:
        return StatusMarker(status_id=match["status"])

    if _BARE_ID_RE.match(raw):
        return StatusMarker(status_id=raw)

    return UnknownMarker(raw=raw)


def base_marker(marker: MarkerLike) -> Marker:
    """Typed client visits group under their bare client; everything else is its own base"""
    marker = decode(marker)
    if isinstance(marker, TypedClientMarker):
        return ClientMarker(client_id=marker.client_id)
    return marker


def base_of(value: MarkerLike) -> str:
    """Canonical base identifier: typed client visits lose their ``_type-<id>`` suffix"""
    return encode(base_marker(value))


def client_id_of(marker: MarkerLike) -> Optional[str]:
    marker = decode(marker)
    if isinstance(marker, (ClientMarker, TypedClientMarker)):
        return marker.client_id
    return None


def same_base(a: MarkerLike, b: MarkerLike) -> bool:
    return base_marker(a) == base_marker(b)


def identifier_for(
    status_id=None,
    client_id=None,
    schedule_type_id=None,
    with_employee_id=None,
) -> Optional[str]:
    """Build the identifier of a stored schedule row from its columns"""
    if with_employee_id is not None and status_id is not None:
        return encode(WithEmployeeMarker(employee_id=str(with_employee_id), status_id=str(status_id)))
    if client_id is not None and schedule_type_id is not None:
        return encode(TypedClientMarker(client_id=str(client_id), type_id=str(schedule_type_id)))
    if client_id is not None:
        return encode(ClientMarker(client_id=str(client_id)))
    if status_id is not None:
        return encode(StatusMarker(status_id=str(status_id)))
    return None


def wire_id(value):
    """Numeric ids travel as integers, anything else as-is"""
    value = str(value)
    return int(value) if value.isdigit() else value


def to_item(marker: MarkerLike) -> Optional[dict]:
    """
    Server-friendly shape of a marker for the full-replace schedule endpoint.
    Unknown markers have no server shape and return None.
    """
    marker = decode(marker)
    if isinstance(marker, WithEmployeeMarker):
        return {
            "type": "status",
            "id": wire_id(marker.status_id),
            "withEmployeeId": wire_id(marker.employee_id),
        }
    if isinstance(marker, TypedClientMarker):
        return {
            "type": "client-with-type",
            "clientId": wire_id(marker.client_id),
            "scheduleTypeId": wire_id(marker.type_id),
        }
    if isinstance(marker, ClientMarker):
        return {"type": "client", "clientId": wire_id(marker.client_id), "scheduleTypeId": None}
    if isinstance(marker, StatusMarker):
        return {"type": "status", "id": wire_id(marker.status_id)}
    return None
