"""
Schedule session

One authoritative pair of stores per signed-in session. Views read through
subscriptions instead of keeping their own copies, and interactive triggers
go through ``run`` so only one mutation is in flight at a time.
"""

import logging
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, Optional

from ..config import CANCELLED_AT_POLICY, POSTPONE_COMPENSATION, WITH_STATUS_LABEL
from .assignments import AssignmentStore
from .catalog import Catalog
from .errors import EngineError
from .lifecycle import LifecycleStateStore
from .markers import MarkerLike
from .postponement import PostponementCoordinator
from .states import LifecycleState

logger = logging.getLogger(__name__)


class ScheduleSession:
    def __init__(
        self,
        gateway,
        cancelled_at_policy: str = CANCELLED_AT_POLICY,
        compensate: bool = POSTPONE_COMPENSATION,
        with_status_label: str = WITH_STATUS_LABEL,
    ):
        self.gateway = gateway
        self.catalog = Catalog(with_status_label=with_status_label)
        self.assignments = AssignmentStore(gateway)
        self.lifecycle = LifecycleStateStore(
            gateway, assignments=self.assignments, cancelled_at_policy=cancelled_at_policy
        )
        self.postponements = PostponementCoordinator(self.assignments, self.lifecycle, compensate=compensate)
        self.assignments.on_orphaned(self.lifecycle.discard)

        self.saving = False
        self._error_listeners: list[Callable[[Exception], None]] = []

    def subscribe(self, listener: Callable[[Any, tuple], None]) -> Callable[[], None]:
        """``listener(store, keys)`` runs after every change to either store"""
        unsubscribers = [self.assignments.subscribe(listener), self.lifecycle.subscribe(listener)]

        def unsubscribe():
            for fn in unsubscribers:
                fn()

        return unsubscribe

    def on_error(self, listener: Callable[[Exception], None]) -> None:
        self._error_listeners.append(listener)

    async def load(self, start: date, end: date, employee_ids: Optional[Iterable] = None) -> None:
        """Hydrate catalogs, the schedule and lifecycle states for a date range"""
        employees = await self.gateway.load_employees()
        statuses = await self.gateway.load_statuses()
        clients = await self.gateway.load_clients()
        schedule_types = await self.gateway.load_schedule_types()
        self.catalog.update(statuses, clients, employees, schedule_types)
        self.assignments.with_status_id = self.catalog.with_status_id

        schedule = await self.gateway.load_schedule(start, end)
        self.assignments.hydrate(schedule, start, end)

        # A partial reload only replaces the states of the employees asked for
        scope = None if employee_ids is None else list(employee_ids)
        requested = [e["id"] for e in employees] if scope is None else scope
        rows = await self.gateway.load_states(requested, start, end)
        self.lifecycle.hydrate(rows, start, end, scope)
        logger.info(f"✅ Session loaded {start} to {end}: {len(employees)} employees, {len(rows)} states")

    async def run(self, operation: Callable[[], Awaitable]) -> Any:
        """
        Run one mutation behind the ``saving`` flag. Returns None without
        running it while another mutation is in flight.
        """
        if self.saving:
            logger.info("⏳ Save in progress, ignoring trigger")
            return None

        self.saving = True
        try:
            return await operation()
        except EngineError as e:
            for listener in list(self._error_listeners):
                listener(e)
            raise
        finally:
            self.saving = False

    # Interactive triggers

    async def toggle(self, employee_id, day, marker: MarkerLike, paired_employee_id=None):
        return await self.run(
            lambda: self.assignments.toggle(employee_id, day, marker, paired_employee_id)
        )

    async def remove(self, employee_id, day, markers: Iterable[MarkerLike]):
        return await self.run(lambda: self.assignments.remove(employee_id, day, markers))

    async def set_state(self, employee_id, day, marker: MarkerLike, state: Optional[LifecycleState]):
        return await self.run(lambda: self.lifecycle.set_state(employee_id, day, marker, state))

    async def clear_state(self, employee_id, day, marker: MarkerLike):
        return await self.run(lambda: self.lifecycle.clear_state(employee_id, day, marker))

    async def postpone(self, employee_id, origin_date, marker: MarkerLike, destination_date=None, is_tba=False):
        return await self.run(
            lambda: self.postponements.postpone(employee_id, origin_date, marker, destination_date, is_tba)
        )
