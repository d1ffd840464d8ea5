import asyncio
from datetime import date, datetime, timezone

import pytest

from rosterboard.engine.assignments import AssignmentStore
from rosterboard.engine.errors import PersistenceError, ValidationError
from rosterboard.engine.lifecycle import LifecycleStateStore
from rosterboard.engine.states import (
    Cancelled,
    CancelledAtPolicy,
    Completed,
    Postponed,
    StateKey,
    parse_state,
)

DAY = date(2025, 1, 10)
OLD_STAMP = datetime(2024, 12, 1, 8, 30, tzinfo=timezone.utc)


def make_stores(gateway, bucket=("client-5_type-2", "client-5_type-3", "status-1"), policy="preserve"):
    assignments = AssignmentStore(gateway)
    assignments.hydrate({"1": {DAY.isoformat(): list(bucket)}})
    lifecycle = LifecycleStateStore(gateway, assignments=assignments, cancelled_at_policy=policy)
    assignments.on_orphaned(lifecycle.discard)
    return assignments, lifecycle


def test_typed_siblings_share_one_record(gateway):
    _, lifecycle = make_stores(gateway)

    asyncio.run(lifecycle.set_state(1, DAY, "client-5_type-2", Completed()))

    assert lifecycle.get(1, DAY, "client-5_type-3") == Completed()
    assert lifecycle.get(1, DAY, "client-5") == Completed()
    assert list(lifecycle.states_for(1, DAY)) == ["client-5"]
    assert gateway.operations[0].body["statusId"] == "client-5"


def test_completed_payload(gateway):
    _, lifecycle = make_stores(gateway)

    asyncio.run(lifecycle.set_state(1, DAY, "status-1", Completed()))

    assert gateway.operations[0].body == {
        "employeeId": 1,
        "date": "2025-01-10",
        "statusId": "status-1",
        "stateName": "completed",
        "postponedDate": None,
        "isTBA": False,
    }


@pytest.mark.parametrize("reason", ["", "   "])
def test_cancellation_without_reason_is_rejected_before_any_request(gateway, reason):
    _, lifecycle = make_stores(gateway)

    with pytest.raises(ValidationError):
        asyncio.run(lifecycle.set_state(1, DAY, "client-5", Cancelled(reason=reason)))

    assert gateway.operations == []
    assert lifecycle.get(1, DAY, "client-5") is None


def test_cancellation_is_saved_as_state_then_reason(gateway):
    _, lifecycle = make_stores(gateway)

    state = asyncio.run(lifecycle.set_state(1, DAY, "client-5", Cancelled(reason=" Client closed ", note="Flu")))

    assert gateway.names == ["save_state", "save_cancellation"]
    assert state.reason == "Client closed"
    assert state.cancelled_at is not None
    body = gateway.operations[1].body
    assert body["reason"] == "Client closed"
    assert body["note"] == "Flu"
    assert body["cancelledAt"] == state.cancelled_at.isoformat()


def test_server_cancellation_timestamp_is_adopted(gateway):
    _, lifecycle = make_stores(gateway)
    gateway.responses["save_cancellation"] = {"success": True, "cancelledAt": "2025-01-10T09:00:00+00:00"}

    asyncio.run(lifecycle.set_state(1, DAY, "client-5", Cancelled(reason="Closed")))

    assert lifecycle.get(1, DAY, "client-5").cancelled_at == datetime(2025, 1, 10, 9, tzinfo=timezone.utc)


def test_naive_server_timestamp_is_read_as_utc(gateway):
    _, lifecycle = make_stores(gateway)
    stamped = asyncio.run(lifecycle.set_state(1, DAY, "status-1", Cancelled(reason="Sick")))
    gateway.responses["save_cancellation"] = {"success": True, "cancelledAt": "2025-01-10T09:00:00"}

    echoed = asyncio.run(lifecycle.set_state(1, DAY, "client-5", Cancelled(reason="Closed")))

    assert echoed.cancelled_at == datetime(2025, 1, 10, 9, tzinfo=timezone.utc)
    assert echoed.cancelled_at < stamped.cancelled_at


def _with_old_cancellation(lifecycle):
    lifecycle.hydrate(
        [
            {
                "employee_id": 1,
                "date": "2025-01-10",
                "status_id": "client-5_type-2",
                "state_name": "cancelled",
                "cancellation_reason": "Closed",
                "cancelled_at": OLD_STAMP.isoformat(),
            }
        ]
    )


def test_preserve_policy_keeps_original_timestamp_when_editing(gateway):
    _, lifecycle = make_stores(gateway, policy=CancelledAtPolicy.PRESERVE)
    _with_old_cancellation(lifecycle)

    state = asyncio.run(lifecycle.set_state(1, DAY, "client-5", Cancelled(reason="Closed for holidays")))

    assert state.cancelled_at == OLD_STAMP
    assert state.reason == "Closed for holidays"


def test_refresh_policy_restamps_on_edit(gateway):
    _, lifecycle = make_stores(gateway, policy="refresh")
    _with_old_cancellation(lifecycle)

    state = asyncio.run(lifecycle.set_state(1, DAY, "client-5", Cancelled(reason="Closed for holidays")))

    assert state.cancelled_at > OLD_STAMP


def test_recancel_after_clear_gets_fresh_timestamp(gateway):
    _, lifecycle = make_stores(gateway)
    _with_old_cancellation(lifecycle)

    asyncio.run(lifecycle.clear_state(1, DAY, "client-5"))
    state = asyncio.run(lifecycle.set_state(1, DAY, "client-5", Cancelled(reason="Closed")))

    assert state.cancelled_at > OLD_STAMP


def test_failed_reason_save_rolls_back_the_compound_action(gateway):
    _, lifecycle = make_stores(gateway)
    asyncio.run(lifecycle.set_state(1, DAY, "client-5", Completed()))
    gateway.operations.clear()
    gateway.fail("save_cancellation")

    with pytest.raises(PersistenceError):
        asyncio.run(lifecycle.set_state(1, DAY, "client-5", Cancelled(reason="Closed")))

    assert lifecycle.get(1, DAY, "client-5") == Completed()
    assert gateway.names == ["save_state", "save_cancellation", "save_state"]
    assert gateway.operations[-1].body["stateName"] == "completed"


def test_failed_state_save_restores_previous_record(gateway):
    _, lifecycle = make_stores(gateway)
    asyncio.run(lifecycle.set_state(1, DAY, "status-1", Completed()))
    gateway.fail("save_state")

    with pytest.raises(PersistenceError):
        asyncio.run(lifecycle.set_state(1, DAY, "status-1", Postponed(is_tba=True)))

    assert lifecycle.get(1, DAY, "status-1") == Completed()


def test_setting_none_clears_and_always_tells_the_server(gateway):
    _, lifecycle = make_stores(gateway)

    result = asyncio.run(lifecycle.set_state(1, DAY, "client-5_type-3", None))

    assert result is None
    assert gateway.names == ["clear_state"]
    assert gateway.operations[0].method == "DELETE"
    assert gateway.operations[0].body == {"employeeId": 1, "date": "2025-01-10", "statusId": "client-5"}


def test_failed_clear_restores_record(gateway):
    _, lifecycle = make_stores(gateway)
    asyncio.run(lifecycle.set_state(1, DAY, "status-1", Completed()))
    gateway.fail("clear_state")

    with pytest.raises(PersistenceError):
        asyncio.run(lifecycle.clear_state(1, DAY, "status-1"))

    assert lifecycle.get(1, DAY, "status-1") == Completed()


def test_transitions_between_states_are_direct(gateway):
    _, lifecycle = make_stores(gateway)

    asyncio.run(lifecycle.set_state(1, DAY, "status-1", Completed()))
    asyncio.run(lifecycle.set_state(1, DAY, "status-1", Postponed(is_tba=True)))

    assert lifecycle.get(1, DAY, "status-1") == Postponed(is_tba=True)
    assert gateway.names == ["save_state", "save_state"]


def test_state_requires_the_marker_on_that_date(gateway):
    _, lifecycle = make_stores(gateway)

    with pytest.raises(ValidationError):
        asyncio.run(lifecycle.set_state(1, DAY, "client-6", Completed()))

    assert gateway.operations == []


def test_removing_last_sibling_drops_the_record(gateway):
    assignments, lifecycle = make_stores(gateway)
    asyncio.run(lifecycle.set_state(1, DAY, "client-5", Completed()))

    asyncio.run(assignments.remove(1, DAY, ["client-5"]))

    assert lifecycle.get(1, DAY, "client-5") is None
    assert StateKey.for_marker(1, DAY, "client-5") not in lifecycle.keys()


def test_dict_payloads_are_normalized():
    assert parse_state({"state_name": "completed"}) == Completed()
    assert parse_state({"state": {"state": "postponed", "postponedDate": "2025-01-10"}}) == Postponed(
        postponed_date=date(2025, 1, 10)
    )
    assert parse_state({"stateName": "postponed", "isTBA": True}) == Postponed(is_tba=True)
    assert parse_state({"state_name": "postponed"}) == Postponed(is_tba=True)
    assert parse_state({"state_name": "CANCELLED", "cancellation_reason": "Closed"}).reason == "Closed"
    assert parse_state({"state_name": "active"}) is None
    assert parse_state({}) is None


def test_postponed_state_validation():
    with pytest.raises(ValueError):
        Postponed(is_tba=True, postponed_date=date(2025, 1, 10))
    with pytest.raises(ValueError):
        Postponed(is_tba=False)
