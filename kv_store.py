"""File-backed key-value blob store."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional


class JSONFileKeyValueStore:
    """String blobs keyed by name, kept in a single JSON object file."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._values: Dict[str, str] = {}
        self._load_sync()

    def _load_sync(self) -> None:
        self._values.clear()
        if not self._path.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
            return
        try:
            raw = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            print(f"[kv_store] could not read {self._path}: {exc}")
            return
        if not isinstance(raw, dict):
            return
        for key, value in raw.items():
            if isinstance(value, str):
                self._values[key] = value

    def _persist(self) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(self._values, indent=2, sort_keys=True))
        tmp_path.replace(self._path)

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
        self._persist()

    def remove(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            self._persist()


__all__ = ["JSONFileKeyValueStore"]
