"""
Apparatus Checkout — Per-Apparatus Write Locks

Serializes ledger writes for one apparatus inside this process so two
submissions for the same apparatus cannot both decide to create the same
defect. Submissions from other processes are not covered.
"""
import threading
from contextlib import contextmanager
from typing import Dict


class ApparatusLocks:
    """
    State:
        _locks: {apparatus -> threading.Lock}, created on first use
        _guard: protects _locks
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, apparatus: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(apparatus)
            if lock is None:
                lock = threading.Lock()
                self._locks[apparatus] = lock
            return lock

    @contextmanager
    def hold(self, apparatus: str):
        lock = self.get(apparatus)
        with lock:
            yield
