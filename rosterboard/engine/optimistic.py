"""
Optimistic mutation helper shared by the stores.

Every mutation follows the same shape: snapshot the touched keys, apply the
change to memory, persist through the gateway, and restore the snapshot if
persisting fails.
"""

import logging
from copy import deepcopy
from typing import Any, Awaitable, Callable, Hashable, Iterable

logger = logging.getLogger(__name__)

_MISSING = object()


class ObservableStore:
    """Keyed in-memory tables with read subscriptions"""

    def __init__(self):
        self._listeners: list[Callable] = []

    def _tables(self) -> list[dict]:
        """Dicts whose entries are captured by snapshots"""
        raise NotImplementedError

    def subscribe(self, listener: Callable[[Any, tuple], None]) -> Callable[[], None]:
        """Register ``listener(store, keys)``; returns a function that unsubscribes it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, keys: Iterable[Hashable]):
        keys = tuple(keys)
        for listener in list(self._listeners):
            listener(self, keys)

    def _snapshot(self, keys: Iterable[Hashable]) -> list[dict]:
        return [
            {key: deepcopy(table[key]) if key in table else _MISSING for key in keys}
            for table in self._tables()
        ]

    def _restore(self, snapshot: list[dict]):
        for table, saved in zip(self._tables(), snapshot):
            for key, value in saved.items():
                if value is _MISSING:
                    table.pop(key, None)
                else:
                    table[key] = value


async def commit_or_revert(
    store: ObservableStore,
    keys: Iterable[Hashable],
    apply: Callable[[], None],
    persist: Callable[[], Awaitable[Any]],
    description: str = "mutation",
):
    """
    Apply ``apply()`` to memory immediately, then await ``persist()``.
    On any failure the touched keys are restored exactly and the error re-raised.
    """
    keys = list(keys)
    snapshot = store._snapshot(keys)
    apply()
    store._notify(keys)
    try:
        return await persist()
    except Exception as e:
        store._restore(snapshot)
        store._notify(keys)
        logger.warning(f"↩️ Rolled back {description}: {e}")
        raise
