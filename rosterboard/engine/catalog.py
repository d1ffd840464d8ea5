"""
Catalog projection

Merges raw status and client records into one list of assignable marker
definitions and resolves markers to display names and colors.
"""

from typing import Any, Iterable, Optional

from pydantic import BaseModel

from .markers import (
    ClientMarker,
    MarkerKind,
    MarkerLike,
    StatusMarker,
    TypedClientMarker,
    UnknownMarker,
    WithEmployeeMarker,
    decode,
    encode,
)

DEFAULT_COLOR = "#e5e7eb"
POSTPONED_COLOR = "#f97316"


class MarkerDefinition(BaseModel):
    id: str
    name: str
    color: Optional[str] = None
    kind: MarkerKind


def _field(record: Any, *names: str):
    for name in names:
        if isinstance(record, dict):
            if record.get(name) is not None:
                return record[name]
        elif getattr(record, name, None) is not None:
            return getattr(record, name)
    return None


def project_catalog(statuses: Iterable[Any] = (), clients: Iterable[Any] = ()) -> list[MarkerDefinition]:
    """Statuses first, then clients, each keyed by its encoded marker id"""
    projection = []
    for status in statuses or []:
        projection.append(
            MarkerDefinition(
                id=encode(StatusMarker(status_id=str(_field(status, "id")))),
                name=_field(status, "label", "name") or "",
                color=_field(status, "color"),
                kind=MarkerKind.STATUS,
            )
        )
    for client in clients or []:
        projection.append(
            MarkerDefinition(
                id=encode(ClientMarker(client_id=str(_field(client, "id")))),
                name=_field(client, "name", "label") or "",
                color=_field(client, "color"),
                kind=MarkerKind.CLIENT,
            )
        )
    return projection


class Catalog:
    """Read-only view over the catalogs the engine consumes"""

    def __init__(
        self,
        statuses: Iterable[Any] = (),
        clients: Iterable[Any] = (),
        employees: Iterable[Any] = (),
        schedule_types: Iterable[Any] = (),
        with_status_label: str = "With ...",
    ):
        self.with_status_label = with_status_label
        self.update(statuses, clients, employees, schedule_types)

    def update(self, statuses=(), clients=(), employees=(), schedule_types=()):
        """Recompute the projection whenever the underlying catalogs change"""
        self.definitions = project_catalog(statuses, clients)
        self._by_id = {d.id: d for d in self.definitions}
        self._employees = {str(_field(e, "id")): _field(e, "name") for e in employees or []}
        self._schedule_types = {
            str(_field(t, "id")): _field(t, "type_name", "name") for t in schedule_types or []
        }

    def get(self, marker: MarkerLike) -> Optional[MarkerDefinition]:
        marker = decode(marker)
        if isinstance(marker, TypedClientMarker):
            marker = ClientMarker(client_id=marker.client_id)
        elif isinstance(marker, WithEmployeeMarker):
            marker = StatusMarker(status_id=marker.status_id)
        if isinstance(marker, UnknownMarker):
            return None
        return self._by_id.get(encode(marker))

    @property
    def with_status_id(self) -> Optional[str]:
        for definition in self.definitions:
            if definition.kind == MarkerKind.STATUS and definition.name == self.with_status_label:
                return decode(definition.id).status_id
        return None

    def employee_name(self, employee_id) -> Optional[str]:
        return self._employees.get(str(employee_id))

    def schedule_type_name(self, type_id) -> Optional[str]:
        return self._schedule_types.get(str(type_id))

    def describe(self, marker: MarkerLike) -> str:
        marker = decode(marker)
        if isinstance(marker, WithEmployeeMarker):
            return f"With {self.employee_name(marker.employee_id) or 'Unknown'}"
        if isinstance(marker, TypedClientMarker):
            client = self.get(marker)
            type_name = self.schedule_type_name(marker.type_id)
            return f"{client.name if client else 'Client'} ({type_name or 'Type'})"
        if isinstance(marker, ClientMarker):
            client = self.get(marker)
            return client.name if client else "Client"
        if isinstance(marker, StatusMarker):
            status = self.get(marker)
            return status.name if status else "Status"
        return "Unknown"

    def color_of(self, marker: MarkerLike, state=None) -> str:
        if state is not None and getattr(state, "state", None) == "postponed":
            return POSTPONED_COLOR
        definition = self.get(marker)
        return (definition.color if definition else None) or DEFAULT_COLOR
