import asyncio
import json
from datetime import date

import httpx
import pytest

from rosterboard.engine.errors import AuthError, PersistenceError
from rosterboard.engine.gateway import (
    StaticSessionProvider,
    SyncGateway,
    cancellation_operation,
    clear_state_operation,
    save_bucket_operation,
)
from rosterboard.engine.states import StateKey

KEY = StateKey.for_marker(1, "2025-01-10", "client-5_type-2")


def make_gateway(handler, token="token-123"):
    return SyncGateway(
        StaticSessionProvider(token),
        base_url="http://rosterboard.test",
        transport=httpx.MockTransport(handler),
    )


def test_persist_sends_bearer_token_and_json_body():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"success": True, "markers": ["client-5"]})

    gateway = make_gateway(handler)
    result = asyncio.run(gateway.persist(save_bucket_operation("1", date(2025, 1, 10), ["client-5", "junk"])))

    assert result["markers"] == ["client-5"]
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/api/schedule"
    assert request.headers["Authorization"] == "Bearer token-123"
    assert json.loads(request.content) == {
        "employeeId": 1,
        "date": "2025-01-10",
        "items": [{"type": "client", "clientId": 5, "scheduleTypeId": None}],
    }


def test_clear_state_is_a_delete_with_body():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"success": True, "cleared": 1})

    asyncio.run(make_gateway(handler).persist(clear_state_operation(KEY)))

    assert requests[0].method == "DELETE"
    assert json.loads(requests[0].content) == {"employeeId": 1, "date": "2025-01-10", "statusId": "client-5"}


def test_missing_token_fails_without_a_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(AuthError):
        asyncio.run(make_gateway(handler, token=None).persist(clear_state_operation(KEY)))

    assert calls == []


@pytest.mark.parametrize("status_code", [401, 403])
def test_rejected_credentials_raise_auth_error(status_code):
    gateway = make_gateway(lambda request: httpx.Response(status_code, json={"detail": "Invalid or expired session"}))

    with pytest.raises(AuthError, match="Invalid or expired session"):
        asyncio.run(gateway.persist(clear_state_operation(KEY)))


def test_server_message_is_carried_by_persistence_error():
    gateway = make_gateway(lambda request: httpx.Response(404, json={"detail": "Schedule entry not found"}))

    with pytest.raises(PersistenceError) as exc_info:
        asyncio.run(gateway.persist(cancellation_operation(KEY, "Closed")))

    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Schedule entry not found"


def test_plain_text_errors_are_kept():
    gateway = make_gateway(lambda request: httpx.Response(502, text="Bad gateway"))

    with pytest.raises(PersistenceError, match="Bad gateway"):
        asyncio.run(gateway.persist(clear_state_operation(KEY)))


def test_unsuccessful_body_is_an_error():
    gateway = make_gateway(lambda request: httpx.Response(200, json={"success": False, "error": "Database error"}))

    with pytest.raises(PersistenceError, match="Database error"):
        asyncio.run(gateway.persist(clear_state_operation(KEY)))


def test_transport_failure_is_a_persistence_error():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(PersistenceError):
        asyncio.run(make_gateway(handler).persist(clear_state_operation(KEY)))


def test_read_endpoints():
    seen = []

    def handler(request):
        seen.append(request.url)
        if request.url.path == "/api/schedule-states/bulk":
            return httpx.Response(200, json={"success": True, "states": [{"id": 1}]})
        if request.url.path == "/api/schedule":
            return httpx.Response(200, json={"1": {"2025-01-10": ["client-5"]}})
        return httpx.Response(200, json={"success": True, "data": [{"id": 1, "name": "Alice"}]})

    gateway = make_gateway(handler)

    assert asyncio.run(gateway.load_employees()) == [{"id": 1, "name": "Alice"}]
    assert asyncio.run(gateway.load_schedule(date(2025, 1, 1), date(2025, 1, 31))) == {
        "1": {"2025-01-10": ["client-5"]}
    }
    assert asyncio.run(gateway.load_states([1, 2], date(2025, 1, 1), date(2025, 1, 31))) == [{"id": 1}]
    assert asyncio.run(gateway.load_states([], date(2025, 1, 1), date(2025, 1, 31))) == []

    assert seen[1].params["startDate"] == "2025-01-01"
    assert seen[2].params["employeeIds"] == "1,2"
    assert len(seen) == 3


def test_cancellation_operation_carries_timestamp():
    operation = cancellation_operation(KEY, "Closed", None)

    assert operation.body["note"] == ""
    assert operation.body["cancelledAt"] is None
    assert operation.path == "/api/cancellation-reason"
