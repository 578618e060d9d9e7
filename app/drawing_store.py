# -*- coding: utf-8 -*-
from __future__ import annotations
import json
import os
import random
import string
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from time import time
from typing import Any, Dict, List, Optional

from app.schemas import DRAWING_SCHEMA_VERSION, DrawingRecord

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Date formats seen in legacy records (browser toLocaleDateString output and ISO).
_LEGACY_DATE_FORMATS = ("%m/%d/%Y", "%d/%m/%Y", "%d.%m.%Y", "%Y-%m-%d", "%Y/%m/%d")


def default_drawings_dir() -> Path:
    """
    DRAWINGS_DIR when set (absolute, or relative to the project root),
    otherwise <tmp>/therapy_canvas/drawings.
    """
    root = Path(__file__).resolve().parents[1]
    env = os.getenv("DRAWINGS_DIR", "").strip()
    if env:
        p = Path(env)
        return p if p.is_absolute() else (root / p)
    return Path(tempfile.gettempdir()) / "therapy_canvas" / "drawings"


def _gen_drawing_id() -> str:
    suf = ''.join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"drw_{int(time() * 1000)}_{suf}"


def _legacy_timestamp(raw: Dict[str, Any]) -> datetime:
    # Legacy ids are Date.now() milliseconds.
    rid = str(raw.get("id") or "").strip()
    if rid.isdigit():
        try:
            return datetime.fromtimestamp(int(rid) / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            pass
    date_s = str(raw.get("date") or "").strip()
    if date_s:
        try:
            parsed = datetime.fromisoformat(date_s)
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            pass
        for fmt in _LEGACY_DATE_FORMATS:
            try:
                return datetime.strptime(date_s, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
    return _EPOCH


def _read_json_or_quarantine(path: Path, expected: tuple) -> Optional[Any]:
    """
    Parse a JSON file. An unreadable file, or one whose top level is not of the
    expected type, is renamed to <name>.corrupt-<epoch ms> and None is returned.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, expected):
            return data
        problem = f"unexpected top-level {type(data).__name__}"
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        problem = str(e)
    aside = path.with_name(f"{path.name}.corrupt-{int(time() * 1000)}")
    path.replace(aside)
    print(f"[store] {path.name} unreadable ({problem}); moved to {aside.name}")
    return None


def migrate_record(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Bring a stored record up to the current schema.

    Version 1 is the browser-storage shape {id, date, image, childId, analysis?};
    records without a schema_version are treated as version 1.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"record is not an object: {type(raw).__name__}")
    version = raw.get("schema_version", 1)
    if version == DRAWING_SCHEMA_VERSION:
        return raw
    if version != 1:
        raise ValueError(f"unsupported drawing schema_version: {version!r}")
    analysis = raw.get("analysis")
    if analysis is None:
        analysis = raw.get("analysis_text")
    return {
        "schema_version": DRAWING_SCHEMA_VERSION,
        "id": str(raw.get("id") or _gen_drawing_id()),
        "timestamp": raw.get("timestamp") or _legacy_timestamp(raw),
        "child_id": str(raw.get("childId") or raw.get("child_id") or ""),
        "image_data": raw.get("image") or raw.get("image_data") or "",
        "analysis_text": analysis or None,
    }


class DrawingStore:
    """
    Saved drawings in one JSON file: {"schema_version": 2, "drawings": [...]}.
    Records are immutable after creation; only add and delete change the file.
    """

    FILENAME = "drawings.json"

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = base_dir or default_drawings_dir()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.base_dir / self.FILENAME
        self._lock = threading.Lock()
        self._records: Dict[str, DrawingRecord] = {}
        self._load()

    # ------------------------------ persistence ------------------------------ #
    def _load(self) -> None:
        if not self.path.exists():
            return
        data = _read_json_or_quarantine(self.path, (list, dict))
        if data is None:
            return
        # A bare list is a savedDrawings array exported from browser storage.
        raw_list = data if isinstance(data, list) else (data.get("drawings") or [])
        migrated = not isinstance(data, dict) or data.get("schema_version") != DRAWING_SCHEMA_VERSION
        for raw in raw_list:
            try:
                if isinstance(raw, dict) and raw.get("schema_version") != DRAWING_SCHEMA_VERSION:
                    migrated = True
                rec = DrawingRecord.model_validate(migrate_record(raw))
            except Exception as e:
                print("[drawings] drop unreadable record:", e)
                migrated = True
                continue
            self._records[rec.id] = rec
        if migrated:
            self._save()

    def _save(self) -> None:
        doc = {
            "schema_version": DRAWING_SCHEMA_VERSION,
            "drawings": [r.model_dump(mode="json") for r in self._records.values()],
        }
        tmp = self.path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(doc, f, ensure_ascii=False)
        tmp.replace(self.path)

    # ------------------------------ operations ------------------------------ #
    def add(self, child_id: str, image_data: str, analysis_text: Optional[str] = None) -> DrawingRecord:
        rec = DrawingRecord(
            id=_gen_drawing_id(),
            timestamp=datetime.now(timezone.utc),
            child_id=child_id,
            image_data=image_data,
            analysis_text=analysis_text or None,
        )
        with self._lock:
            self._records[rec.id] = rec
            self._save()
        return rec

    def get(self, drawing_id: str) -> Optional[DrawingRecord]:
        return self._records.get(drawing_id)

    def list_for_child(self, child_id: str) -> List[DrawingRecord]:
        with self._lock:
            rows = [r for r in self._records.values() if r.child_id == child_id]
        return sorted(rows, key=lambda r: r.timestamp)

    def delete(self, drawing_id: str) -> bool:
        with self._lock:
            if self._records.pop(drawing_id, None) is None:
                return False
            self._save()
        return True

    def __len__(self) -> int:
        return len(self._records)


class ProfileStore:
    """
    Child profiles per parent, kept next to the drawings they own:
    {"parents": {"<lower-cased email>": [{id, name, age, initials, color}, ...]}}.
    """

    FILENAME = "profiles.json"

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = base_dir or default_drawings_dir()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.base_dir / self.FILENAME
        self._lock = threading.Lock()
        self._parents: Dict[str, List[Dict[str, Any]]] = {}
        self._load()

    @staticmethod
    def _key(parent_email: str) -> str:
        return (parent_email or "").strip().lower()

    def _load(self) -> None:
        if not self.path.exists():
            return
        data = _read_json_or_quarantine(self.path, (dict,))
        if data is None:
            return
        for email, rows in (data.get("parents") or {}).items():
            if isinstance(rows, list):
                self._parents[self._key(email)] = [r for r in rows if isinstance(r, dict) and r.get("id")]

    def _save(self) -> None:
        tmp = self.path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump({"parents": self._parents}, f, ensure_ascii=False)
        tmp.replace(self.path)

    def load(self, parent_email: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(r) for r in self._parents.get(self._key(parent_email), [])]

    def save(self, parent_email: str, profiles: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._parents[self._key(parent_email)] = [dict(p) for p in profiles]
            self._save()

    def append(self, parent_email: str, profile: Dict[str, Any]) -> None:
        with self._lock:
            self._parents.setdefault(self._key(parent_email), []).append(dict(profile))
            self._save()
