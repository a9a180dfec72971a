"""Per-symbol lock table.

Writers and readers of one symbol's history/cache serialize on that symbol's lock;
different symbols never contend with each other.
"""
import threading
from typing import Dict


class SymbolLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def lock_for(self, symbol: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(symbol)
            if lock is None:
                lock = threading.RLock()
                self._locks[symbol] = lock
            return lock
