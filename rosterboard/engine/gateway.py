"""
Sync Gateway

Turns store mutations into authenticated requests against the persistence
endpoints. One request per operation: no batching, queuing or retries.
"""

import logging
from datetime import date, datetime
from typing import Any, Iterable, Optional, Protocol

import httpx
from pydantic import BaseModel

from ..config import API_BASE_URL, HTTP_TIMEOUT_SECONDS
from .errors import AuthError, PersistenceError
from .markers import MarkerLike, to_item, wire_id
from .states import LifecycleState, StateKey, state_payload

logger = logging.getLogger(__name__)


class Operation(BaseModel):
    """Descriptor of one persistence request"""

    name: str
    method: str
    path: str
    body: Optional[dict] = None
    params: Optional[dict] = None


def save_bucket_operation(employee_id, day: date, markers: Iterable[MarkerLike]) -> Operation:
    """Full replace of one employee's day; always carries the complete bucket"""
    items = [item for item in (to_item(m) for m in markers) if item is not None]
    return Operation(
        name="save_bucket",
        method="POST",
        path="/api/schedule",
        body={"employeeId": wire_id(employee_id), "date": day.isoformat(), "items": items},
    )


def save_state_operation(key: StateKey, state: LifecycleState) -> Operation:
    return Operation(
        name="save_state",
        method="POST",
        path="/api/schedule-state",
        body=state_payload(key, state),
    )


def clear_state_operation(key: StateKey) -> Operation:
    return Operation(
        name="clear_state",
        method="DELETE",
        path="/api/schedule-state",
        body={
            "employeeId": wire_id(key.employee_id),
            "date": key.date.isoformat(),
            "statusId": key.marker_id,
        },
    )


def cancellation_operation(
    key: StateKey, reason: str, note: str = "", cancelled_at: Optional[datetime] = None
) -> Operation:
    return Operation(
        name="save_cancellation",
        method="POST",
        path="/api/cancellation-reason",
        body={
            "employeeId": wire_id(key.employee_id),
            "date": key.date.isoformat(),
            "statusId": key.marker_id,
            "reason": reason,
            "note": note or "",
            "cancelledAt": cancelled_at.isoformat() if cancelled_at else None,
        },
    )


class SessionProvider(Protocol):
    async def get_access_token(self) -> Optional[str]: ...


class StaticSessionProvider:
    """Session provider for a token obtained elsewhere (CLI, tests, service accounts)"""

    def __init__(self, token: Optional[str] = None):
        self.token = token

    async def get_access_token(self) -> Optional[str]:
        return self.token


def _error_message(response: httpx.Response) -> str:
    """Prefer the server-provided message; fall back to the raw body"""
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        for field in ("detail", "error", "message"):
            value = data.get(field)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, list) and value:
                return "; ".join(str(v.get("msg", v)) if isinstance(v, dict) else str(v) for v in value)

    return response.text or response.reason_phrase or f"HTTP {response.status_code}"


class SyncGateway:
    """Authenticated HTTP channel to the persistence and read endpoints"""

    def __init__(
        self,
        session_provider: SessionProvider,
        base_url: str = API_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_provider = session_provider
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _headers(self) -> dict:
        token = await self.session_provider.get_access_token()
        if not token:
            logger.error("❌ No authentication token, request not sent")
            raise AuthError("No authentication token")
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    async def _send(self, method: str, path: str, body: Optional[dict] = None, params: Optional[dict] = None) -> Any:
        headers = await self._headers()

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(method, path, json=body, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"❌ {method} {path} failed: {e}")
            raise PersistenceError(f"Request failed: {e}") from e

        if response.status_code in (401, 403):
            message = _error_message(response)
            logger.error(f"❌ {method} {path} rejected credentials: {message}")
            raise AuthError(message)

        if not response.is_success:
            message = _error_message(response)
            logger.error(f"❌ {method} {path} returned {response.status_code}: {message}")
            raise PersistenceError(message, status_code=response.status_code)

        if not response.content:
            return {}

        try:
            data = response.json()
        except ValueError as e:
            raise PersistenceError(f"Invalid JSON from {path}", status_code=response.status_code) from e

        if isinstance(data, dict) and data.get("success") is False:
            raise PersistenceError(data.get("error") or "Save failed", status_code=response.status_code)

        return data

    async def persist(self, operation: Operation) -> Any:
        logger.info(f"📤 {operation.name}: {operation.method} {operation.path}")
        return await self._send(operation.method, operation.path, operation.body, operation.params)

    async def fetch(self, path: str, params: Optional[dict] = None) -> Any:
        return await self._send("GET", path, params=params)

    # Read endpoints

    async def load_employees(self) -> list:
        return _rows(await self.fetch("/api/employees"))

    async def load_statuses(self) -> list:
        return _rows(await self.fetch("/api/statuses"))

    async def load_clients(self) -> list:
        return _rows(await self.fetch("/api/clients"))

    async def load_schedule_types(self) -> list:
        return _rows(await self.fetch("/api/schedule-types"))

    async def load_schedule(self, start: Optional[date] = None, end: Optional[date] = None) -> dict:
        params = {}
        if start and end:
            params = {"startDate": start.isoformat(), "endDate": end.isoformat()}
        return await self.fetch("/api/schedule", params=params or None)

    async def load_states(self, employee_ids: Iterable, start: date, end: date) -> list:
        ids = ",".join(str(e) for e in employee_ids)
        if not ids:
            return []
        data = await self.fetch(
            "/api/schedule-states/bulk",
            params={"employeeIds": ids, "startDate": start.isoformat(), "endDate": end.isoformat()},
        )
        return data.get("states", []) if isinstance(data, dict) else []


def _rows(data) -> list:
    if isinstance(data, dict):
        return data.get("data", [])
    return data or []
