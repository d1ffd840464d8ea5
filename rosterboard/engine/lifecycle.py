"""
Lifecycle State Store

One optional record per (employee, date, base marker). Absence of a record
means Active. Typed visits of a client share the record stored under the
client's base identifier.
"""

import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Union

from ..config import CANCELLED_AT_POLICY
from .errors import ValidationError
from .gateway import cancellation_operation, clear_state_operation, save_state_operation
from .markers import MarkerLike
from .optimistic import ObservableStore, commit_or_revert
from .states import (
    Cancelled,
    CancelledAtPolicy,
    LifecycleState,
    StateKey,
    parse_datetime,
    parse_date,
    parse_state,
)

logger = logging.getLogger(__name__)


class LifecycleStateStore(ObservableStore):
    def __init__(
        self,
        gateway,
        assignments=None,
        cancelled_at_policy: Union[CancelledAtPolicy, str] = CANCELLED_AT_POLICY,
    ):
        super().__init__()
        self.gateway = gateway
        self.assignments = assignments
        self.cancelled_at_policy = CancelledAtPolicy(cancelled_at_policy)
        self._records: dict[StateKey, LifecycleState] = {}

    def _tables(self) -> list[dict]:
        return [self._records]

    # Reads

    def get(self, employee_id, day, marker: MarkerLike) -> Optional[LifecycleState]:
        """None means Active"""
        return self._records.get(StateKey.for_marker(employee_id, day, marker))

    def states_for(self, employee_id, day) -> dict[str, LifecycleState]:
        day = parse_date(day)
        return {
            key.marker_id: state
            for key, state in self._records.items()
            if key.employee_id == str(employee_id) and key.date == day
        }

    def keys(self) -> list[StateKey]:
        return list(self._records.keys())

    def hydrate(
        self,
        rows: Iterable[dict],
        start: Optional[date] = None,
        end: Optional[date] = None,
        employee_ids: Optional[Iterable] = None,
    ) -> None:
        """
        Load state rows from the bulk read endpoint. With a range, cached
        records in it are replaced, limited to ``employee_ids`` when given.
        """
        touched = set()
        if start and end:
            scope = None if employee_ids is None else {str(e) for e in employee_ids}
            stale = [
                k for k in self._records
                if start <= k.date <= end and (scope is None or k.employee_id in scope)
            ]
            for key in stale:
                del self._records[key]
                touched.add(key)

        for row in rows or []:
            employee_id = row.get("employee_id", row.get("employeeId"))
            marker_id = row.get("status_id", row.get("statusId"))
            day = row.get("date")
            if employee_id is None or marker_id is None or not day:
                continue
            key = StateKey.for_marker(employee_id, day, str(marker_id))
            state = parse_state(row)
            if state is None:
                continue
            self._records[key] = state
            touched.add(key)

        logger.info(f"📥 Hydrated {len(touched)} lifecycle records")
        self._notify(touched)

    # Mutations

    def _stamp(self, key: StateKey, state: Cancelled) -> Cancelled:
        previous = self._records.get(key)
        cancelled_at = None
        if (
            self.cancelled_at_policy == CancelledAtPolicy.PRESERVE
            and isinstance(previous, Cancelled)
            and previous.cancelled_at is not None
        ):
            cancelled_at = previous.cancelled_at
        return state.model_copy(
            update={
                "reason": state.reason.strip(),
                "cancelled_at": cancelled_at or datetime.now(timezone.utc),
            }
        )

    async def set_state(
        self, employee_id, day, marker: MarkerLike, state: Optional[Union[LifecycleState, dict]]
    ) -> Optional[LifecycleState]:
        """
        Transition a marker to ``state``; None clears it back to Active.

        A cancellation is persisted as two requests (state, then reason) and
        rolled back as one.
        """
        if isinstance(state, dict):
            state = parse_state(state)
        if state is None:
            await self.clear_state(employee_id, day, marker)
            return None

        key = StateKey.for_marker(employee_id, day, marker)

        if isinstance(state, Cancelled) and not state.reason.strip():
            raise ValidationError("A cancellation reason is required")
        if self.assignments is not None and not self.assignments.has_base(employee_id, key.date, marker):
            raise ValidationError(f"{key.marker_id} is not assigned on {key.date} for employee {key.employee_id}")

        if isinstance(state, Cancelled):
            state = self._stamp(key, state)

        previous = self._records.get(key)

        def apply():
            self._records[key] = state

        async def persist():
            await self.gateway.persist(save_state_operation(key, state))
            if not isinstance(state, Cancelled):
                return None
            try:
                return await self.gateway.persist(
                    cancellation_operation(key, state.reason, state.note, state.cancelled_at)
                )
            except Exception:
                await self._restore_server(key, previous)
                raise

        result = await commit_or_revert(self, [key], apply, persist, f"set {state.state} on {key.marker_id}")
        logger.info(f"✅ {key.marker_id} on {key.date} is now {state.state} (employee {key.employee_id})")

        if isinstance(state, Cancelled) and isinstance(result, dict):
            confirmed = parse_datetime(result.get("cancelledAt") or result.get("cancelled_at"))
            if confirmed is not None and confirmed != state.cancelled_at:
                state = state.model_copy(update={"cancelled_at": confirmed})
                self._records[key] = state
                self._notify([key])

        return state

    async def clear_state(self, employee_id, day, marker: MarkerLike) -> None:
        """Back to Active. The server is always told, even when nothing is cached locally."""
        key = StateKey.for_marker(employee_id, day, marker)

        def apply():
            self._records.pop(key, None)

        await commit_or_revert(
            self,
            [key],
            apply,
            lambda: self.gateway.persist(clear_state_operation(key)),
            f"clear state on {key.marker_id}",
        )
        logger.info(f"🧹 Cleared state of {key.marker_id} on {key.date} (employee {key.employee_id})")

    def discard(self, employee_id, day, base_id: str) -> None:
        """
        Drop a record locally once its last marker is gone. The server removed
        it together with the schedule rows.
        """
        key = StateKey(str(employee_id), parse_date(day), base_id)
        if self._records.pop(key, None) is not None:
            logger.info(f"🧹 Dropped orphaned state of {base_id} on {key.date}")
            self._notify([key])

    async def _restore_server(self, key: StateKey, previous: Optional[LifecycleState]) -> None:
        """Undo the first half of a failed compound save"""
        try:
            if previous is None:
                await self.gateway.persist(clear_state_operation(key))
            else:
                await self.gateway.persist(save_state_operation(key, previous))
        except Exception as e:
            logger.error(f"❌ Could not restore server state of {key.marker_id} on {key.date}: {e}")
