from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Optional, Set

from src.schemas import WorkItem


class WorkQueue:
    """Thread-safe crawl frontier with dedup by WorkItem.dedup_key.

    get() blocks until an item is available, and returns None once the queue
    is drained: nothing pending and nothing in flight. After close() it
    returns None at once, even with items still pending. Workers must call
    task_done() for every item they received.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending: Deque[WorkItem] = deque()
        self._seen: Set[str] = set()
        self._in_flight = 0
        self._closed = False

    def enqueue(self, item: WorkItem) -> bool:
        """Add an item unless its key was already seen. Returns True if added."""
        key = item.dedup_key
        with self._cond:
            if self._closed or key in self._seen:
                return False
            self._seen.add(key)
            self._pending.append(item)
            self._cond.notify()
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[WorkItem]:
        with self._cond:
            while not self._pending or self._closed:
                if self._closed or self._in_flight == 0:
                    return None
                if not self._cond.wait(timeout=timeout) and timeout is not None:
                    return None
            item = self._pending.popleft()
            self._in_flight += 1
            return item

    def task_done(self) -> None:
        with self._cond:
            self._in_flight = max(0, self._in_flight - 1)
            # Wake idle workers so they can notice a drained queue
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._pending)

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight
