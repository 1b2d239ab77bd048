from __future__ import annotations

import threading
from typing import Optional, Set


class CrawlBudget:
    """Process-wide crawl counters shared by all workers.

    - records_emitted counts appended records
    - stop_requested latches once records_emitted reaches max_records
    - numeric pagination seeding and the first-listing debug dump are
      one-shot latches claimed with an atomic test-and-set
    """

    RUN_SCOPE = "__run__"

    def __init__(self, max_records: Optional[int] = None, seed_scope: str = "run") -> None:
        self.max_records = int(max_records) if max_records else None
        self.seed_scope = seed_scope
        self._lock = threading.Lock()
        self._records_emitted = 0
        self._stop_requested = False
        self._seeded: Set[str] = set()
        self._first_listing_claimed = False

    @property
    def records_emitted(self) -> int:
        with self._lock:
            return self._records_emitted

    @property
    def stop_requested(self) -> bool:
        with self._lock:
            return self._stop_requested

    @property
    def numeric_pagination_seeded(self) -> bool:
        with self._lock:
            return bool(self._seeded)

    def record_emitted(self, n: int = 1) -> int:
        """Count emitted records; returns the new total."""
        with self._lock:
            self._records_emitted += n
            if self.max_records is not None and self._records_emitted >= self.max_records:
                self._stop_requested = True
            return self._records_emitted

    def request_stop(self) -> None:
        with self._lock:
            self._stop_requested = True

    def claim_numeric_seeding(self, listing_root: str = "") -> bool:
        """True exactly once per run (or once per listing root with seed_scope='root')."""
        key = listing_root if self.seed_scope == "root" else self.RUN_SCOPE
        with self._lock:
            if key in self._seeded:
                return False
            self._seeded.add(key)
            return True

    def claim_first_listing(self) -> bool:
        with self._lock:
            if self._first_listing_claimed:
                return False
            self._first_listing_claimed = True
            return True
