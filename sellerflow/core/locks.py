"""
SellerFlow — Per-account locks
Serializes forecast regeneration for one account while letting
different accounts proceed in parallel.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class AccountLockRegistry:
    """Thread-safe registry handing out one re-entrant lock per account id."""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, account_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[account_id] = lock
            return lock

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        lock = self.get(account_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Module-level default registry shared by all forecast service instances
account_locks = AccountLockRegistry()
