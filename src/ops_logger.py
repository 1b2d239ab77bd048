from __future__ import annotations

import json
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


class OpsLogger:
    """Append-only JSONL log of crawl operations.

    - One JSON object per line: one per processed work item, one run summary
    - Thread-safe (coarse lock), shared by all workers
    - Best-effort: never raises to caller
    """

    def __init__(self, file_path: Path, also_stdout: bool = False) -> None:
        self.file_path = Path(file_path)
        self.also_stdout = bool(also_stdout)
        self._lock = threading.Lock()
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            print(f"ops log: cannot create {self.file_path.parent}: {e}", file=sys.stderr)

    def emit(self, record: Dict[str, Any]) -> None:
        payload = {"roster_ops": 1, "ts": datetime.now(timezone.utc).isoformat()}
        payload.update(record)
        try:
            line = json.dumps(payload, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            line = json.dumps({"roster_ops": 1, "_serialization_error": True, "record_str": str(record)})
        try:
            with self._lock:
                with self.file_path.open("a", encoding="utf-8") as f:
                    f.write(line)
                    f.write("\n")
        except OSError:
            # Never propagate logging errors
            pass
        if self.also_stdout:
            print(line)

    def item(
        self,
        *,
        url: str,
        kind: str,
        outcome: str,
        duration_s: float,
        worker: Optional[int] = None,
        **extra: Any,
    ) -> None:
        record: Dict[str, Any] = {
            "url": url,
            "kind": kind,
            "outcome": outcome,
            "duration_s": round(max(0.0, duration_s), 3),
        }
        if worker is not None:
            record["worker"] = worker
        record.update(extra)
        self.emit(record)
