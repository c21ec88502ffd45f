import threading
from contextlib import ExitStack, contextmanager
from typing import Dict, Iterator


class OutletLocks:
    """One re-entrant lock per outlet.

    Mutating operations hold the lock of every outlet they touch for the whole
    check-then-write sequence. Locks are always acquired in sorted outlet id
    order so two transfers in opposite directions cannot deadlock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def _lock_for(self, outlet_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(outlet_id)
            if lock is None:
                lock = self._locks[outlet_id] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, *outlet_ids: str) -> Iterator[None]:
        with ExitStack() as stack:
            for outlet_id in sorted(set(outlet_ids)):
                stack.enter_context(self._lock_for(outlet_id))
            yield
