"""Per-room mutual exclusion for the store's load -> mutate -> persist cycle.

Process-local: rooms are locked independently of each other, and other
processes are kept honest by the store's revision compare-and-swap.
"""
from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterator, Optional

from .results import StoreError


class RoomLocks:
    def __init__(self):
        self._guard = Lock()
        self._locks: Dict[str, RLock] = {}

    def _lock_for(self, room_id: str) -> RLock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = self._locks[room_id] = RLock()
            return lock

    def discard(self, room_id: str) -> None:
        with self._guard:
            self._locks.pop(room_id, None)

    @contextmanager
    def hold(self, room_id: str, timeout_s: Optional[float] = None) -> Iterator[None]:
        """Hold the lock for one room.

        Reentrant, so a store method may call another while holding it.
        Raises StoreError when ``timeout_s`` elapses first; None or 0 waits
        forever.
        """
        lock = self._lock_for(room_id)
        if timeout_s:
            acquired = lock.acquire(timeout=timeout_s)
        else:
            acquired = lock.acquire()
        if not acquired:
            raise StoreError(f'room {room_id}: lock not acquired within {timeout_s}s')
        try:
            yield
        finally:
            lock.release()
