# -*- coding: utf-8 -*-
from __future__ import annotations
from typing import Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import time
import os
import random
import string
import threading

from drawing_surface import DrawingSurfaceController, RasterSurface, ToolState
from app.drawing_store import ProfileStore

# Canvas configuration (overridable from .env)
CANVAS_WIDTH = int(os.getenv("CANVAS_WIDTH", "800"))
CANVAS_HEIGHT = int(os.getenv("CANVAS_HEIGHT", "600"))
CANVAS_BACKGROUND = os.getenv("CANVAS_BACKGROUND", "#FFFFFF")
# Avatar colours handed out to child profiles in creation order.
AVATAR_COLORS = ("#3B82F6", "#22C55E", "#A855F7", "#EC4899", "#EAB308", "#EF4444")

def _gen_sid() -> str:
    suf = ''.join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"sess_{int(time())}_{suf}"

def _gen_child_id() -> str:
    suf = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
    return f"child_{int(time() * 1000)}_{suf}"

def make_initials(name: str) -> str:
    return "".join(part[0] for part in name.split() if part).upper()

@dataclass
class Profile:
    id: str
    name: str
    age: int
    initials: str
    color: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "age": self.age, "initials": self.initials, "color": self.color}

@dataclass
class Session:
    """Everything one parent's browser session works with, passed explicitly to each handler."""
    sid: str
    parent_email: str
    parent_name: str = "Parent"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    profiles: List[Profile] = field(default_factory=list)
    active_child_id: Optional[str] = None
    last_analysis: Optional[str] = None
    controller: DrawingSurfaceController = field(
        default_factory=lambda: DrawingSurfaceController(
            logical_size=(CANVAS_WIDTH, CANVAS_HEIGHT), background=CANVAS_BACKGROUND
        )
    )
    # Held while a canvas request runs so event batches never interleave.
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    # Where profiles are persisted per parent email; None keeps them in memory only.
    profile_store: Optional[ProfileStore] = field(default=None, repr=False)

    def add_profile(self, name: str, age: int) -> Profile:
        name = " ".join(name.split())
        if not name:
            raise ValueError("profile name must not be empty")
        p = Profile(
            id=_gen_child_id(),
            name=name,
            age=int(age),
            initials=make_initials(name),
            color=AVATAR_COLORS[len(self.profiles) % len(AVATAR_COLORS)],
        )
        self.profiles.append(p)
        if self.profile_store is not None:
            self.profile_store.append(self.parent_email, p.to_dict())
        return p

    def get_profile(self, child_id: str) -> Optional[Profile]:
        for p in self.profiles:
            if p.id == child_id:
                return p
        return None

    def owns_child(self, child_id: str) -> bool:
        return self.get_profile(child_id) is not None

    @property
    def active_child(self) -> Optional[Profile]:
        if not self.active_child_id:
            return None
        return self.get_profile(self.active_child_id)

    def select_child(self, child_id: str) -> Profile:
        """Make child_id active and give it a fresh blank canvas and default tools."""
        p = self.get_profile(child_id)
        if p is None:
            raise KeyError(f"profile not found: {child_id}")
        with self.lock:
            self.active_child_id = p.id
            self.last_analysis = None
            self.controller.tool = ToolState()
            self.controller.attach(RasterSurface(self.controller.logical_size, self.controller.background))
        return p

    def close(self) -> None:
        with self.lock:
            self.controller.detach()
            self.active_child_id = None
            self.last_analysis = None

# In-memory session table (enough for a single process; swap for Redis if needed)
_SESS: Dict[str, Session] = {}
_SESS_LOCK = threading.Lock()

def _profile_from_dict(d: dict) -> Optional[Profile]:
    try:
        name = " ".join(str(d["name"]).split())
        return Profile(
            id=str(d["id"]),
            name=name,
            age=int(d.get("age", 0)),
            initials=str(d.get("initials") or make_initials(name)),
            color=str(d.get("color") or AVATAR_COLORS[0]),
        )
    except (KeyError, TypeError, ValueError) as e:
        print(f"[session] skipping unreadable stored profile: {e}")
        return None

def create_session(
    parent_email: str,
    parent_name: Optional[str] = None,
    profile_store: Optional[ProfileStore] = None,
) -> Session:
    """Open a session; a parent seen before gets their stored child profiles back."""
    s = Session(
        sid=_gen_sid(),
        parent_email=parent_email.strip(),
        parent_name=(parent_name or "").strip() or "Parent",
        profile_store=profile_store,
    )
    if profile_store is not None:
        for d in profile_store.load(s.parent_email):
            p = _profile_from_dict(d)
            if p is not None:
                s.profiles.append(p)
    with _SESS_LOCK:
        _SESS[s.sid] = s
    return s

def get_session(sid: str) -> Optional[Session]:
    return _SESS.get(sid)

def drop_session(sid: str) -> Optional[Session]:
    with _SESS_LOCK:
        s = _SESS.pop(sid, None)
    if s is not None:
        s.close()
    return s

def clear_sessions() -> None:
    with _SESS_LOCK:
        sessions = list(_SESS.values())
        _SESS.clear()
    for s in sessions:
        s.close()
