from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import Dict, Optional

SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
INDEX_FILE = "_content_types.json"


class FileKeyValueStore:
    """Directory-backed key-value store for run artifacts.

    - put(name, bytes, content_type) writes <root>/<name>
    - content types are kept in a small JSON index next to the files
    - used for the exported CSV and for debug snapshots
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, name: str) -> Path:
        if not SAFE_NAME_RE.match(name or "") or name == INDEX_FILE:
            raise ValueError(f"invalid artifact name: {name!r}")
        return self.root / name

    def _read_index(self) -> Dict[str, str]:
        idx = self.root / INDEX_FILE
        if not idx.exists():
            return {}
        try:
            return json.loads(idx.read_text(encoding="utf-8"))
        except ValueError:
            return {}

    def put(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> Path:
        path = self._path(name)
        with self._lock:
            path.write_bytes(data)
            index = self._read_index()
            index[name] = content_type
            (self.root / INDEX_FILE).write_text(json.dumps(index, indent=2, sort_keys=True), encoding="utf-8")
        return path

    def get(self, name: str) -> Optional[bytes]:
        path = self._path(name)
        if not path.exists():
            return None
        return path.read_bytes()

    def content_type(self, name: str) -> Optional[str]:
        with self._lock:
            return self._read_index().get(name)
