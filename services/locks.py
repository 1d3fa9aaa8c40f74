"""
Per-instrument in-process locks.
Operations on the same instrument run one at a time within this process;
operations on different instruments never wait on each other.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class InstrumentLocks:
    """Registry of one lock per instrument ID, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    def _lock_for(self, instrument_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(instrument_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[instrument_id] = lock
            return lock

    @contextmanager
    def hold(self, instrument_id: int) -> Iterator[None]:
        """Hold the lock of an instrument for the duration of the block."""
        lock = self._lock_for(instrument_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
