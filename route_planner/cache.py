from __future__ import annotations
import json
import logging
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import CACHE_TTL_SECONDS, cache_dir

logger = logging.getLogger(__name__)


def _utc_iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class FileCache:
    """
    JSON-file key/value store with a logical TTL.

    One file per key; writes go through a temp file and os.replace so a
    concurrent reader sees either the old or the new entry (last writer wins).
    """

    def __init__(self, root: Optional[Path] = None, ttl_seconds: int = CACHE_TTL_SECONDS):
        self.root = Path(root) if root is not None else cache_dir()
        self.ttl_seconds = int(ttl_seconds)

    def _path(self, key: str) -> Path:
        safe = key.replace(":", "_").replace("/", "_")
        return self.root / f"{safe}.json"

    def get_entry(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Cache entry %s unreadable: %s", key, e)
            return None
        if time.time() > float(entry.get("expires_at", 0)):
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        entry = self.get_entry(key)
        return entry["data"] if entry else None

    def set(self, key: str, value: Any) -> None:
        now = time.time()
        entry = {
            "data": value,
            "stored_at": _utc_iso(now),
            "expires_at": now + self.ttl_seconds,
        }
        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.root, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entry, f)
            os.replace(tmp, self._path(key))
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def clear_by_prefix(self, prefix: str) -> int:
        if not self.root.exists():
            return 0
        safe = prefix.replace(":", "_").replace("/", "_")
        deleted = 0
        for path in self.root.glob(f"{safe}*.json"):
            try:
                path.unlink()
                deleted += 1
            except FileNotFoundError:
                continue
        logger.info("Cache: cleared %d entries with prefix %r", deleted, prefix)
        return deleted
