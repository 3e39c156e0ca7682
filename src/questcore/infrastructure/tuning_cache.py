import json
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any


DEFAULT_CONTENT_DATA_VERSION = "0.1.0"
_VERSION_FILENAME = "VERSION"
_UNSAFE_NAME_CHARS = re.compile(r"[^a-z0-9_]+")


@dataclass(frozen=True)
class CachedTable:
    name: str
    payload: dict[str, Any]
    stored_at: float

    def age_seconds(self, now: float | None = None) -> float:
        current = time.time() if now is None else now
        return max(0.0, current - self.stored_at)

    def is_fresh(self, ttl_seconds: int | None, now: float | None = None) -> bool:
        if ttl_seconds is None:
            return True
        return self.age_seconds(now) <= max(0, int(ttl_seconds))


def _write_atomic(path: Path, text: str) -> None:
    partial = path.with_name(path.name + ".part")
    partial.write_text(text, encoding="utf-8")
    os.replace(partial, path)


class TuningTableCache:
    """One JSON file per tuning table.

    Every cached table is dropped when ``QUEST_CONTENT_DATA_VERSION`` (or the
    explicit ``data_version``) differs from the version recorded on disk.
    """

    def __init__(self, root_dir: str | Path, *, data_version: str | None = None) -> None:
        self.root_dir = Path(root_dir)
        version = str(data_version or os.getenv("QUEST_CONTENT_DATA_VERSION") or "").strip()
        self.data_version = version or DEFAULT_CONTENT_DATA_VERSION
        self._version_path = self.root_dir / _VERSION_FILENAME
        self._reset_if_version_changed()

    def _recorded_version(self) -> str | None:
        try:
            return self._version_path.read_text(encoding="utf-8").strip() or None
        except OSError:
            return None

    def _reset_if_version_changed(self) -> None:
        if self._recorded_version() == self.data_version:
            return
        self.root_dir.mkdir(parents=True, exist_ok=True)
        for path in self.root_dir.glob("*.json"):
            path.unlink(missing_ok=True)
        _write_atomic(self._version_path, self.data_version)

    def path_for(self, name: str) -> Path:
        slug = _UNSAFE_NAME_CHARS.sub("_", name.strip().lower()).strip("_") or "table"
        return self.root_dir / f"{slug}.json"

    def store(self, name: str, payload: dict[str, Any], *, now: float | None = None) -> None:
        record = {
            "name": name,
            "stored_at": time.time() if now is None else now,
            "payload": payload,
        }
        _write_atomic(self.path_for(name), json.dumps(record, sort_keys=True, ensure_ascii=False))

    def load(self, name: str) -> CachedTable | None:
        try:
            record = json.loads(self.path_for(name).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(record, dict) or not isinstance(record.get("payload"), dict):
            return None
        try:
            stored_at = float(record.get("stored_at"))
        except (TypeError, ValueError):
            return None
        return CachedTable(name=name, payload=record["payload"], stored_at=stored_at)

    def fresh(self, name: str, ttl_seconds: int | None) -> dict[str, Any] | None:
        cached = self.load(name)
        if cached is None or not cached.is_fresh(ttl_seconds):
            return None
        return cached.payload

    def stale(self, name: str) -> dict[str, Any] | None:
        cached = self.load(name)
        return cached.payload if cached is not None else None

    def purge_older_than(self, max_age_seconds: int, *, now: float | None = None) -> list[str]:
        """Remove unreadable tables and tables older than ``max_age_seconds``."""
        removed = []
        for path in sorted(self.root_dir.glob("*.json")):
            cached = self.load(path.stem)
            if cached is None or not cached.is_fresh(max_age_seconds, now):
                path.unlink(missing_ok=True)
                removed.append(path.stem)
        return removed
