from __future__ import annotations

import json
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


def default_log_dir() -> Path:
    """
    LOGS_DIR when set (absolute, or relative to the project root),
    otherwise <tmp>/therapy_canvas/logs.
    """
    root = Path(__file__).resolve().parents[1]
    env = os.getenv("LOGS_DIR", "").strip()
    if env:
        p = Path(env)
        return p if p.is_absolute() else (root / p)
    return Path(tempfile.gettempdir()) / "therapy_canvas" / "logs"


class ActivityLogger:
    """
    JSON-lines logger for session and drawing activity.
    Each entry is appended to <base_dir>/activity-YYYYMMDD.log.
    """

    def __init__(self, *, base_dir: Optional[Path] = None, session_id: Optional[str] = None) -> None:
        self.base_dir = base_dir or default_log_dir()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.session_id = session_id
        self._lock = threading.Lock()

    def for_session(self, session_id: str) -> "ActivityLogger":
        child = ActivityLogger(base_dir=self.base_dir, session_id=session_id)
        child._lock = self._lock
        return child

    def log(self, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "ts": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            "event": event,
        }
        if self.session_id:
            entry["session"] = self.session_id
        entry.update(payload or {})
        line = json.dumps(entry, ensure_ascii=False, default=str)
        filename = "activity-" + datetime.utcnow().strftime("%Y%m%d") + ".log"
        path = self.base_dir / filename
        with self._lock, path.open("a", encoding="utf-8") as fp:
            fp.write(line + "\n")
