# =============================================================================
# history.py
# Append-only analysis history persisted as a JSON file, one list per user,
# newest first, capped at HISTORY_LIMIT entries.
# =============================================================================

import datetime
import json
import threading
import uuid
from pathlib import Path
from typing import List, Optional

from constants import HISTORY_LIMIT
from json_export import data_url
from models import RunResult


class HistoryStore:
    def __init__(self, path: str, limit: int = HISTORY_LIMIT):
        self.path  = Path(path).expanduser().resolve()
        self.limit = limit
        self._lock = threading.Lock()

    def _read(self) -> dict:
        if not self.path.exists():
            return {"users": {}}
        with self.path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, data: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp.replace(self.path)

    def add(self, user_key: str, result: RunResult) -> dict:
        """Prepend an entry for `result` and drop anything past the cap."""
        entry = {
            "id":          uuid.uuid4().hex,
            "date":        datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "fileName":    result.file_name,
            "duration":    result.duration,
            "objectCount": result.object_count,
            "thumbnail":   data_url(result.thumbnail),
            "objects": [
                {"className":  o.label,
                 "confidence": o.confidence,
                 "frameTime":  o.frame_time,
                 "bbox":       list(o.bbox),
                 "thumbnail":  data_url(o.image)}
                for o in result.objects
            ],
        }
        with self._lock:
            data = self._read()
            user = data.setdefault("users", {}).setdefault(user_key, {"history": []})
            user["history"].insert(0, entry)
            del user["history"][self.limit:]
            self._write(data)
        return entry

    def list(self, user_key: str) -> List[dict]:
        with self._lock:
            user = self._read().get("users", {}).get(user_key)
        return user["history"] if user else []

    def get(self, user_key: str, entry_id: str) -> Optional[dict]:
        return next((e for e in self.list(user_key) if e["id"] == entry_id), None)
