"""
Assignment Store

Per employee and per date, an ordered list of markers. Owns the toggle,
remove and move semantics, including the rule that a client is held either
bare or as one-or-more typed visits in a bucket, never both.
"""

import logging
from datetime import date
from typing import Callable, Iterable, Optional

from .errors import ValidationError
from .gateway import save_bucket_operation
from .markers import (
    ClientMarker,
    Marker,
    MarkerLike,
    StatusMarker,
    TypedClientMarker,
    WithEmployeeMarker,
    base_of,
    client_id_of,
    decode,
    encode,
)
from .optimistic import ObservableStore, commit_or_revert
from .states import parse_date

logger = logging.getLogger(__name__)

BucketKey = tuple  # (employee_id: str, date)


def _dedupe(markers: Iterable[Marker]) -> list[Marker]:
    result = []
    for marker in markers:
        if marker not in result:
            result.append(marker)
    return result


class AssignmentStore(ObservableStore):
    def __init__(self, gateway, with_status_id: Optional[str] = None):
        super().__init__()
        self.gateway = gateway
        self.with_status_id = with_status_id
        self._buckets: dict[BucketKey, list[Marker]] = {}
        # Clients whose bare entry was replaced by a typed visit, per bucket
        self._displaced: dict[BucketKey, set[str]] = {}
        self._orphan_handlers: list[Callable] = []

    def _tables(self) -> list[dict]:
        return [self._buckets, self._displaced]

    @staticmethod
    def key(employee_id, day) -> BucketKey:
        return (str(employee_id), parse_date(day))

    # Reads

    def get(self, employee_id, day) -> list[Marker]:
        return list(self._buckets.get(self.key(employee_id, day), []))

    def ids(self, employee_id, day) -> list[str]:
        return [encode(m) for m in self.get(employee_id, day)]

    def keys(self) -> list[BucketKey]:
        return list(self._buckets.keys())

    def siblings(self, employee_id, day, marker: MarkerLike) -> list[Marker]:
        """Every entry in the bucket sharing the marker's base identifier"""
        base_id = base_of(decode(marker))
        return [m for m in self.get(employee_id, day) if base_of(m) == base_id]

    def has_base(self, employee_id, day, marker: MarkerLike) -> bool:
        return bool(self.siblings(employee_id, day, marker))

    def on_orphaned(self, handler: Callable[[str, date, str], None]) -> None:
        """``handler(employee_id, date, base_id)`` runs once a base has no entry left in its bucket"""
        self._orphan_handlers.append(handler)

    def hydrate(self, schedule: dict, start: Optional[date] = None, end: Optional[date] = None) -> None:
        """
        Load ``{employeeId: {date: [markerId, ...]}}`` from the read endpoint.
        With a range, buckets inside it that the payload does not mention are dropped.
        """
        touched = set()
        if start and end:
            for key in [k for k in self._buckets if start <= k[1] <= end]:
                self._buckets.pop(key, None)
                self._displaced.pop(key, None)
                touched.add(key)

        for employee_id, days in (schedule or {}).items():
            for day, markers in (days or {}).items():
                key = self.key(employee_id, day)
                self._buckets[key] = _dedupe(decode(m) for m in markers or [])
                self._displaced.pop(key, None)
                touched.add(key)

        logger.info(f"📥 Hydrated {len(touched)} schedule buckets")
        self._notify(touched)

    # Helpers

    def _is_with(self, marker: Marker) -> bool:
        if isinstance(marker, WithEmployeeMarker):
            return True
        return (
            isinstance(marker, StatusMarker)
            and self.with_status_id is not None
            and marker.status_id == str(self.with_status_id)
        )

    def _bases(self, key: BucketKey) -> set[str]:
        return {base_of(m) for m in self._buckets.get(key, [])}

    def _store(self, key: BucketKey, bucket: list[Marker], displaced: set[str]) -> None:
        if bucket:
            self._buckets[key] = bucket
        else:
            self._buckets.pop(key, None)
        if displaced:
            self._displaced[key] = displaced
        else:
            self._displaced.pop(key, None)

    async def _save(self, key: BucketKey, markers: Optional[list[Marker]] = None):
        if markers is None:
            markers = self._buckets.get(key, [])
        return await self.gateway.persist(save_bucket_operation(key[0], key[1], markers))

    def _signal_orphans(self, key: BucketKey, before: set[str]) -> None:
        for base_id in sorted(before - self._bases(key)):
            logger.info(f"🧹 Last entry for {base_id} removed on {key[1]} (employee {key[0]})")
            for handler in list(self._orphan_handlers):
                handler(key[0], key[1], base_id)

    def _paired(self, bucket: list[Marker], marker: Marker, paired_employee_id) -> list[Marker]:
        paired = WithEmployeeMarker(employee_id=str(paired_employee_id), status_id=marker.status_id)
        positions = [i for i, m in enumerate(bucket) if self._is_with(m)]
        bucket = [m for m in bucket if not self._is_with(m)]
        if positions:
            bucket.insert(min(positions[0], len(bucket)), paired)
        else:
            bucket.append(paired)
        return bucket

    # Mutations

    async def toggle(self, employee_id, day, marker: MarkerLike, paired_employee_id=None) -> list[Marker]:
        """
        Flip a marker in the bucket.

        The "With ..." status with a paired employee replaces any existing
        "With ..." entry in place. A typed visit swaps with the bare client.
        A bare client toggles every representation of that client.
        """
        marker = decode(marker)
        key = self.key(employee_id, day)
        before = self._bases(key)

        def apply():
            bucket = list(self._buckets.get(key, []))
            displaced = set(self._displaced.get(key, set()))

            if paired_employee_id is not None and self._is_with(marker):
                bucket = self._paired(bucket, marker, paired_employee_id)

            elif isinstance(marker, TypedClientMarker):
                bare = ClientMarker(client_id=marker.client_id)
                if marker in bucket:
                    index = bucket.index(marker)
                    bucket.remove(marker)
                    remaining = [m for m in bucket if client_id_of(m) == marker.client_id]
                    if not remaining and marker.client_id in displaced:
                        bucket.insert(index, bare)
                        displaced.discard(marker.client_id)
                elif bare in bucket:
                    index = bucket.index(bare)
                    bucket[index] = marker
                    displaced.add(marker.client_id)
                else:
                    bucket.append(marker)

            elif isinstance(marker, ClientMarker):
                existing = [m for m in bucket if client_id_of(m) == marker.client_id]
                if existing:
                    bucket = [m for m in bucket if client_id_of(m) != marker.client_id]
                else:
                    bucket.append(marker)
                displaced.discard(marker.client_id)

            elif marker in bucket:
                bucket.remove(marker)
            else:
                bucket.append(marker)

            self._store(key, bucket, displaced)

        await commit_or_revert(self, [key], apply, lambda: self._save(key), f"toggle {encode(marker)}")
        logger.info(f"✅ Toggled {encode(marker)} on {key[1]} for employee {key[0]}")
        self._signal_orphans(key, before)
        return self.get(employee_id, day)

    async def remove(self, employee_id, day, markers: Iterable[MarkerLike]) -> list[Marker]:
        """Remove markers; a client target takes every bare and typed entry of that client with it"""
        targets = [decode(m) for m in markers]
        key = self.key(employee_id, day)
        before = self._bases(key)
        client_ids = {client_id_of(t) for t in targets} - {None}

        def matches(entry: Marker) -> bool:
            if client_id_of(entry) is not None:
                return client_id_of(entry) in client_ids
            return entry in targets

        def apply():
            bucket = [m for m in self._buckets.get(key, []) if not matches(m)]
            displaced = set(self._displaced.get(key, set())) - client_ids
            self._store(key, bucket, displaced)

        description = f"remove {', '.join(encode(t) for t in targets)}"
        await commit_or_revert(self, [key], apply, lambda: self._save(key), description)
        logger.info(f"🗑️ Removed {len(targets)} marker(s) on {key[1]} for employee {key[0]}")
        self._signal_orphans(key, before)
        return self.get(employee_id, day)

    async def move_range(self, employee_id, from_day, to_day, markers: Iterable[MarkerLike]) -> list[Marker]:
        """
        Move markers from one day to another for the same employee.

        The destination is saved first, then the origin. If the origin save
        fails, the destination is put back on the server before both buckets
        are restored locally. Lifecycle records are not touched here.

        Returns the markers appended at the destination. Markers it already
        held, or that would break client exclusivity there, leave the origin
        without being added again.
        """
        source = self.key(employee_id, from_day)
        target = self.key(employee_id, to_day)
        if source == target:
            raise ValidationError("Origin and destination dates are the same")

        requested = [decode(m) for m in markers]
        moving = [m for m in self._buckets.get(source, []) if m in requested]
        if not moving:
            raise ValidationError(
                f"None of {', '.join(encode(m) for m in requested)} is assigned on {source[1]}"
            )

        target_before = list(self._buckets.get(target, []))
        arrived = []

        def apply():
            arrived.clear()
            origin = [m for m in self._buckets.get(source, []) if m not in moving]
            origin_displaced = {
                c for c in self._displaced.get(source, set())
                if any(client_id_of(m) == c for m in origin)
            }

            destination = list(self._buckets.get(target, []))
            destination_displaced = set(self._displaced.get(target, set()))
            for marker in moving:
                if marker in destination:
                    continue
                if isinstance(marker, TypedClientMarker):
                    bare = ClientMarker(client_id=marker.client_id)
                    if bare in destination:
                        destination.remove(bare)
                        destination_displaced.add(marker.client_id)
                elif isinstance(marker, ClientMarker):
                    if any(client_id_of(m) == marker.client_id for m in destination):
                        continue
                destination.append(marker)
                arrived.append(marker)

            self._store(source, origin, origin_displaced)
            self._store(target, destination, destination_displaced)

        async def persist():
            await self._save(target)
            try:
                await self._save(source)
            except Exception:
                try:
                    await self._save(target, target_before)
                except Exception as e:
                    logger.error(f"❌ Could not restore {target[1]} on the server after a failed move: {e}")
                raise

        description = f"move {', '.join(encode(m) for m in moving)} {source[1]} -> {target[1]}"
        await commit_or_revert(self, [source, target], apply, persist, description)
        logger.info(
            f"📅 Moved {len(moving)} marker(s) from {source[1]} to {target[1]} for employee {source[0]}"
            f" ({len(arrived)} new at destination)"
        )
        return list(arrived)
