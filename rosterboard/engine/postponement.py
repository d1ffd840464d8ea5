"""
Postponement Coordinator

Moves a marker (with every typed visit of the same client) to another date
and carries its lifecycle state along, or annotates it as TBA in place.
Each step is rolled back by the store that owns it; the coordinator only
sequences them.
"""

import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel

from ..config import POSTPONE_COMPENSATION
from .errors import PartialOperationError, ValidationError
from .markers import MarkerLike, base_of, decode, encode
from .states import Postponed, parse_date

logger = logging.getLogger(__name__)


class PostponementResult(BaseModel):
    employee_id: str
    origin_date: date
    destination_date: Optional[date] = None
    base_id: str
    moved: list[str] = []
    state: Postponed


class PostponementCoordinator:
    def __init__(self, assignments, lifecycle, compensate: bool = POSTPONE_COMPENSATION):
        self.assignments = assignments
        self.lifecycle = lifecycle
        self.compensate = compensate

    async def postpone(
        self,
        employee_id,
        origin_date,
        marker: MarkerLike,
        destination_date=None,
        is_tba: bool = False,
    ) -> PostponementResult:
        """
        Postpone ``marker`` from ``origin_date``.

        TBA keeps the marker where it is. A concrete date moves every sibling
        sharing the marker's base, one ``move_range`` per id, then records
        ``Postponed(postponed_date=origin)`` at the destination and clears the
        origin record. A failure after earlier steps succeeded raises
        PartialOperationError.
        """
        employee_id = str(employee_id)
        origin = parse_date(origin_date)
        destination = parse_date(destination_date)
        base_id = base_of(decode(marker))

        if is_tba:
            if destination is not None:
                raise ValidationError("A TBA postponement cannot have a destination date")
            state = await self.lifecycle.set_state(employee_id, origin, marker, Postponed(is_tba=True))
            logger.info(f"⏱️ {base_id} on {origin} postponed to TBA (employee {employee_id})")
            return PostponementResult(employee_id=employee_id, origin_date=origin, base_id=base_id, state=state)

        if destination is None:
            raise ValidationError("A destination date is required unless the postponement is TBA")
        if destination < origin:
            raise ValidationError(f"Cannot postpone {base_id} from {origin} back to {destination}")

        siblings = self.assignments.siblings(employee_id, origin, marker)
        if not siblings:
            raise ValidationError(f"{base_id} is not assigned on {origin} for employee {employee_id}")

        state = Postponed(is_tba=False, postponed_date=origin)

        if destination == origin:
            state = await self.lifecycle.set_state(employee_id, origin, base_id, state)
            return PostponementResult(
                employee_id=employee_id,
                origin_date=origin,
                destination_date=destination,
                base_id=base_id,
                state=state,
            )

        completed = []
        moved = []
        merged = []
        step = None
        try:
            for sibling in siblings:
                step = f"move {encode(sibling)}"
                arrived = await self.assignments.move_range(employee_id, origin, destination, [sibling])
                if arrived:
                    moved.extend(arrived)
                else:
                    merged.append(sibling)
                completed.append(step)

            step = f"set postponed on {destination}"
            state = await self.lifecycle.set_state(employee_id, destination, base_id, state)
            completed.append(step)

            step = f"clear state on {origin}"
            await self.lifecycle.clear_state(employee_id, origin, base_id)
            completed.append(step)
        except Exception as e:
            if not completed:
                raise
            logger.error(f"❌ Postponement of {base_id} stopped at '{step}' after {len(completed)} step(s): {e}")
            compensated = False
            if self.compensate:
                compensated = await self._compensate(
                    employee_id, origin, destination, base_id, moved, merged, completed
                )
            raise PartialOperationError(
                f"Postponement of {base_id} partially applied: {step} failed",
                completed_steps=completed,
                failed_step=step,
                cause=e,
                compensated=compensated,
            ) from e

        logger.info(f"📅 {base_id} postponed from {origin} to {destination} (employee {employee_id})")
        return PostponementResult(
            employee_id=employee_id,
            origin_date=origin,
            destination_date=destination,
            base_id=base_id,
            moved=[encode(m) for m in moved],
            state=state,
        )

    async def _compensate(self, employee_id, origin, destination, base_id, moved, merged, completed) -> bool:
        """
        Move already-moved siblings back, newest first. Siblings the
        destination already held stay there and are re-added at the origin.
        Returns True when everything was undone.
        """
        try:
            if any(step.startswith("set postponed") for step in completed):
                await self.lifecycle.clear_state(employee_id, destination, base_id)
            for sibling in reversed(moved):
                await self.assignments.move_range(employee_id, destination, origin, [sibling])
            for sibling in merged:
                if sibling not in self.assignments.get(employee_id, origin):
                    await self.assignments.toggle(employee_id, origin, sibling)
        except Exception as e:
            logger.error(f"❌ Could not undo postponement of {base_id}: {e}")
            return False
        logger.info(f"↩️ Undid partial postponement of {base_id} back to {origin}")
        return True
