# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

DRAWING_SCHEMA_VERSION = 2

HexColor = str
_HEX_PATTERN = r"^#[0-9a-fA-F]{6}$"

# ===== Saved drawings =====

class DrawingRecord(BaseModel):
    # Immutable once created; only deletion changes the store.
    model_config = ConfigDict(frozen=True)

    schema_version: Literal[2] = DRAWING_SCHEMA_VERSION
    id: str = Field(min_length=1)
    timestamp: datetime
    child_id: str = Field(min_length=1)
    image_data: str = Field(min_length=1, description="base64 PNG data URI")
    analysis_text: Optional[str] = None

class EmotionSummary(BaseModel):
    primary: str = "creativity"
    secondary: str = "joy"

class DrawingSummary(BaseModel):
    id: str
    timestamp: datetime
    child_id: str
    has_analysis: bool = False
    emotions: EmotionSummary = Field(default_factory=EmotionSummary)

class DrawingListResponse(BaseModel):
    child_id: str
    total: int = 0
    drawings: List[DrawingSummary] = Field(default_factory=list)

class DrawingDetail(DrawingRecord):
    emotions: EmotionSummary = Field(default_factory=EmotionSummary)

# ===== Session / profiles =====

class InitSessionRequest(BaseModel):
    parent_email: str = Field(min_length=3)
    parent_name: Optional[str] = None

class InitSessionResponse(BaseModel):
    sid: str
    parent_name: str
    note: Optional[str] = None

class ChildProfile(BaseModel):
    id: str
    name: str
    age: int
    initials: str
    color: str

class AddProfileRequest(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    age: int = Field(ge=3, le=18)

class SelectChildRequest(BaseModel):
    child_id: str

class SessionSummary(BaseModel):
    sid: str
    parent_email: str
    parent_name: str
    created_at: datetime
    profiles: List[ChildProfile] = Field(default_factory=list)
    active_child: Optional[ChildProfile] = None

# ===== Canvas =====

class ToolStateModel(BaseModel):
    color: str
    brush_width: int
    is_eraser: bool

class CanvasState(BaseModel):
    attached: bool
    phase: Literal["idle", "drawing"]
    width: int
    height: int
    background: str
    tool: ToolStateModel

class Rect(BaseModel):
    # getBoundingClientRect() of the canvas element
    left: float
    top: float
    width: float
    height: float

class CanvasEvent(BaseModel):
    # Touch events are sent with their first touch point's client coordinates.
    type: Literal[
        "pointerdown", "pointermove", "pointerup", "pointerleave",
        "mousedown", "mousemove", "mouseup", "mouseleave",
        "touchstart", "touchmove", "touchend", "touchcancel",
    ]
    x: float = 0.0
    y: float = 0.0
    rect: Rect

class CanvasEventsRequest(BaseModel):
    events: List[CanvasEvent] = Field(default_factory=list)

class CanvasEventsResponse(BaseModel):
    ok: bool = True
    segments: int = 0
    phase: Literal["idle", "drawing"] = "idle"

class ColorRequest(BaseModel):
    color: HexColor = Field(pattern=_HEX_PATTERN)

class BrushRequest(BaseModel):
    # Out-of-range widths are clamped, not rejected.
    width: float

class SaveDrawingRequest(BaseModel):
    analyze: bool = True

class SaveDrawingResponse(BaseModel):
    ok: bool = True
    drawing: DrawingSummary
    analysis: Optional[str] = None
    analysis_ok: bool = False

# ===== Analysis proxy =====

class AnalyzeDrawingRequest(BaseModel):
    imageData: Optional[str] = None

class AnalyzeDrawingResponse(BaseModel):
    analysis: str

class Health(BaseModel):
    status: Literal["ok"] = "ok"
    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key_configured: bool = False
