# -*- coding: utf-8 -*-
from __future__ import annotations
import os, json
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional
from fastapi import FastAPI, HTTPException, Response, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from dotenv import load_dotenv

# Load .env from the project root before app modules read their settings,
# so working directory changes do not break configuration.
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

from app.schemas import (
    AddProfileRequest, AnalyzeDrawingRequest, AnalyzeDrawingResponse, BrushRequest,
    CanvasEventsRequest, CanvasEventsResponse, CanvasState, ChildProfile, ColorRequest,
    DrawingDetail, DrawingListResponse, DrawingRecord, DrawingSummary, EmotionSummary,
    Health, InitSessionRequest, InitSessionResponse, SaveDrawingRequest, SaveDrawingResponse,
    SelectChildRequest, SessionSummary, ToolStateModel,
)
from app import analysis_client as A
from app import session_store as S
from app.activity_logging import ActivityLogger, default_log_dir
from app.drawing_store import DrawingStore, ProfileStore
from drawing_surface import BoundingBox, PointerEvent, PointerKind, decode_data_url


# ------------------------------ Environment --------------------------------- #
app = FastAPI(title="TherapyCanvas Gateway", version="0.3.0")

# CORS configuration (development friendly).
# Supported modes:
#   1) CORS_ORIGINS="*"          -> allow all origins, credentials disabled.
#   2) CORS_ORIGINS empty         -> allow localhost/127.0.0.1 on any port.
#   3) CORS_ORIGINS=a,b,c         -> allow only the listed origins.
_env_cors = os.getenv("CORS_ORIGINS", "").strip()
if _env_cors == "*":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
elif _env_cors:
    origins = [o.strip() for o in _env_cors.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^http://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

LOG_IO = os.getenv("LOG_IO", "false").lower() in ("1","true","yes")
# Per-call IO dumps go next to the activity log (LOGS_DIR or the system temp directory).
_LOGS_DIR = default_log_dir()

STORE = DrawingStore()
PROFILES = ProfileStore(STORE.base_dir)
ACTIVITY = ActivityLogger(base_dir=_LOGS_DIR)

DOWNLOAD_NAME = "therapy-canvas-drawing.png"

_EVENT_KINDS: Dict[str, PointerKind] = {
    "pointerdown": PointerKind.DOWN, "mousedown": PointerKind.DOWN, "touchstart": PointerKind.DOWN,
    "pointermove": PointerKind.MOVE, "mousemove": PointerKind.MOVE, "touchmove": PointerKind.MOVE,
    "pointerup": PointerKind.UP, "mouseup": PointerKind.UP, "touchend": PointerKind.UP, "touchcancel": PointerKind.UP,
    "pointerleave": PointerKind.LEAVE, "mouseleave": PointerKind.LEAVE,
}


# ------------------------------ Helpers --------------------------------- #
def _now_id() -> str:
    # 20251011-233045-123
    ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")[:-3]
    return ts

def _write_json(dirpath: Path, name: str, data) -> None:
    dirpath.mkdir(parents=True, exist_ok=True)
    p = dirpath / name
    with p.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

def _log_io(log_dir: Optional[Path], name: str, data) -> None:
    if not LOG_IO or log_dir is None:
        return
    try:
        _write_json(log_dir, name, data)
    except OSError as e:
        print(f"[warn] failed to write {name}: {e}")

def _session_or_404(sid: str) -> S.Session:
    sess = S.get_session(sid)
    if not sess:
        raise HTTPException(404, f"session not found: {sid}")
    return sess

def _active_child_or_409(sess: S.Session) -> S.Profile:
    child = sess.active_child
    if child is None:
        raise HTTPException(409, "no active child selected")
    return child

def _profile_model(p: S.Profile) -> ChildProfile:
    return ChildProfile(**p.to_dict())

def _canvas_state(sess: S.Session) -> CanvasState:
    ctrl = sess.controller
    return CanvasState(
        attached=ctrl.attached,
        phase=ctrl.phase.value,
        width=ctrl.logical_size[0],
        height=ctrl.logical_size[1],
        background=ctrl.background,
        tool=ToolStateModel(color=ctrl.tool.color, brush_width=ctrl.tool.brush_width, is_eraser=ctrl.tool.is_eraser),
    )

def _summary(rec: DrawingRecord) -> DrawingSummary:
    return DrawingSummary(
        id=rec.id,
        timestamp=rec.timestamp,
        child_id=rec.child_id,
        has_analysis=bool(rec.analysis_text),
        emotions=EmotionSummary(**A.extract_emotions(rec.analysis_text)),
    )

def _owned_drawing_or_404(sess: S.Session, drawing_id: str) -> DrawingRecord:
    rec = STORE.get(drawing_id)
    if rec is None or not sess.owns_child(rec.child_id):
        raise HTTPException(404, f"drawing not found: {drawing_id}")
    return rec

def _png_response(png: bytes) -> Response:
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{DOWNLOAD_NAME}"'},
    )

def _run_analysis(image_data: str, log_dir: Optional[Path]) -> str:
    """Call the analysis model; AnalysisError propagates to the caller."""
    _log_io(log_dir, "input.request.json", {"image_chars": len(image_data or ""), "model": A.current_model()})
    text, dbg = A.analyze_drawing(image_data)
    _log_io(log_dir, "output.ok.json", dbg)
    return text


# ------------------------------ Error handlers --------------------------------- #
@app.exception_handler(A.AnalysisError)
async def _analysis_error(request: Request, exc: A.AnalysisError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

# Uniform exception handler: keep CORS headers and surface useful diagnostics.
@app.exception_handler(Exception)
async def _unhandled_except(request: Request, exc: Exception):
    import traceback
    traceback.print_exc()
    return JSONResponse(status_code=500, content={"detail": f"internal error: {exc.__class__.__name__}: {str(exc)}"})


@app.get("/health", response_model=Health)
def health():
    return Health(
        status="ok",
        model=A.current_model(),
        base_url=os.getenv("OPENAI_BASE_URL") or "unset",
        api_key_configured=bool((os.getenv("OPENAI_API_KEY") or "").strip()),
    )


# ---------------------------------------- Analysis proxy ---------------------------------------- #
@app.post("/api/analyze-drawing", response_model=AnalyzeDrawingResponse)
def analyze_drawing(body: AnalyzeDrawingRequest):
    """
    {imageData: data URI} -> {analysis: str}.
    Failures answer {error: str} with a non-2xx status (see AnalysisError handler).
    """
    if not (body.imageData or "").strip():
        raise A.AnalysisError(400, "No image data provided")
    log_dir = _LOGS_DIR / _now_id() if LOG_IO else None
    try:
        text = _run_analysis(body.imageData, log_dir)
    except A.AnalysisError as e:
        _log_io(log_dir, "output.error.json", {"status": e.status_code, "error": e.message})
        raise
    return AnalyzeDrawingResponse(analysis=text)


# ---------------------------------------- Session endpoints ---------------------------------------- #
@app.post("/session/init", response_model=InitSessionResponse)
def session_init(body: InitSessionRequest):
    s = S.create_session(parent_email=body.parent_email, parent_name=body.parent_name, profile_store=PROFILES)
    ACTIVITY.for_session(s.sid).log("session_open", {"parent_email": s.parent_email})
    return InitSessionResponse(sid=s.sid, parent_name=s.parent_name, note="ok")

@app.get("/session/{sid}", response_model=SessionSummary)
def session_get(sid: str):
    sess = _session_or_404(sid)
    child = sess.active_child
    return SessionSummary(
        sid=sess.sid,
        parent_email=sess.parent_email,
        parent_name=sess.parent_name,
        created_at=sess.created_at,
        profiles=[_profile_model(p) for p in sess.profiles],
        active_child=_profile_model(child) if child else None,
    )

@app.delete("/session/{sid}")
def session_close(sid: str):
    if S.drop_session(sid) is None:
        raise HTTPException(404, f"session not found: {sid}")
    ACTIVITY.for_session(sid).log("session_close")
    return {"ok": True}

@app.get("/session/{sid}/profiles", response_model=List[ChildProfile])
def profiles_list(sid: str):
    sess = _session_or_404(sid)
    return [_profile_model(p) for p in sess.profiles]

@app.post("/session/{sid}/profiles", response_model=ChildProfile)
def profiles_add(sid: str, body: AddProfileRequest):
    sess = _session_or_404(sid)
    try:
        p = sess.add_profile(body.name, body.age)
    except ValueError as e:
        raise HTTPException(422, str(e))
    ACTIVITY.for_session(sid).log("profile_added", {"child_id": p.id, "age": p.age})
    return _profile_model(p)

@app.post("/session/{sid}/active-child", response_model=CanvasState)
def select_active_child(sid: str, body: SelectChildRequest):
    sess = _session_or_404(sid)
    try:
        p = sess.select_child(body.child_id)
    except KeyError:
        raise HTTPException(404, f"profile not found: {body.child_id}")
    ACTIVITY.for_session(sid).log("child_selected", {"child_id": p.id})
    return _canvas_state(sess)


# ---------------------------------------- Canvas endpoints ---------------------------------------- #
@app.get("/session/{sid}/canvas", response_model=CanvasState)
def canvas_state(sid: str):
    return _canvas_state(_session_or_404(sid))

@app.post("/session/{sid}/canvas/events", response_model=CanvasEventsResponse)
def canvas_events(sid: str, body: CanvasEventsRequest):
    """Replay a batch of pointer/touch events in order; returns how many segments were drawn."""
    sess = _session_or_404(sid)
    drawn = 0
    with sess.lock:
        ctrl = sess.controller
        for ev in body.events:
            event = PointerEvent(
                kind=_EVENT_KINDS[ev.type],
                client_x=ev.x,
                client_y=ev.y,
                box=BoundingBox(left=ev.rect.left, top=ev.rect.top, width=ev.rect.width, height=ev.rect.height),
            )
            if ctrl.handle(event) is not None:
                drawn += 1
        phase = ctrl.phase.value
    return CanvasEventsResponse(ok=True, segments=drawn, phase=phase)

@app.post("/session/{sid}/canvas/color", response_model=CanvasState)
def canvas_color(sid: str, body: ColorRequest):
    sess = _session_or_404(sid)
    with sess.lock:
        sess.controller.select_color(body.color)
    return _canvas_state(sess)

@app.post("/session/{sid}/canvas/brush", response_model=CanvasState)
def canvas_brush(sid: str, body: BrushRequest):
    sess = _session_or_404(sid)
    with sess.lock:
        sess.controller.set_brush_width(body.width)
    return _canvas_state(sess)

@app.post("/session/{sid}/canvas/eraser", response_model=CanvasState)
def canvas_eraser(sid: str):
    sess = _session_or_404(sid)
    with sess.lock:
        sess.controller.toggle_eraser()
    return _canvas_state(sess)

@app.post("/session/{sid}/canvas/clear", response_model=CanvasState)
def canvas_clear(sid: str):
    sess = _session_or_404(sid)
    with sess.lock:
        sess.controller.clear()
        sess.last_analysis = None
    ACTIVITY.for_session(sid).log("canvas_cleared")
    return _canvas_state(sess)

@app.get("/session/{sid}/canvas/image.png")
def canvas_download(sid: str):
    sess = _session_or_404(sid)
    with sess.lock:
        png = sess.controller.export_image()
    if png is None:
        raise HTTPException(409, "canvas not attached")
    return _png_response(png)

@app.post("/session/{sid}/canvas/save", response_model=SaveDrawingResponse)
def canvas_save(sid: str, body: Optional[SaveDrawingRequest] = None):
    """
    Save the current canvas for the active child.
    With analyze=true the drawing is sent to the analysis model first; an
    analysis failure still saves the drawing and returns the fallback message.
    """
    sess = _session_or_404(sid)
    child = _active_child_or_409(sess)
    analyze = True if body is None else body.analyze
    with sess.lock:
        data_url = sess.controller.export_data_url()
    if data_url is None:
        raise HTTPException(409, "canvas not attached")

    analysis_text = None
    message = None
    if analyze:
        log_dir = _LOGS_DIR / _now_id() if LOG_IO else None
        try:
            analysis_text = _run_analysis(data_url, log_dir)
            message = analysis_text
        except A.AnalysisError as e:
            ACTIVITY.for_session(sid).log("analysis_failed", {"status": e.status_code, "error": e.message})
            _log_io(log_dir, "output.error.json", {"status": e.status_code, "error": e.message})
            message = A.FALLBACK_MESSAGE

    rec = STORE.add(child.id, data_url, analysis_text)
    sess.last_analysis = message
    ACTIVITY.for_session(sid).log("drawing_saved", {"drawing_id": rec.id, "child_id": child.id, "analyzed": analysis_text is not None})
    return SaveDrawingResponse(ok=True, drawing=_summary(rec), analysis=message, analysis_ok=analysis_text is not None)


# ---------------------------------------- Dashboard endpoints ---------------------------------------- #
@app.get("/session/{sid}/drawings", response_model=DrawingListResponse)
def drawings_list(sid: str):
    sess = _session_or_404(sid)
    child = _active_child_or_409(sess)
    rows = [_summary(r) for r in STORE.list_for_child(child.id)]
    return DrawingListResponse(child_id=child.id, total=len(rows), drawings=rows)

@app.get("/session/{sid}/drawings/{drawing_id}", response_model=DrawingDetail)
def drawings_get(sid: str, drawing_id: str):
    sess = _session_or_404(sid)
    rec = _owned_drawing_or_404(sess, drawing_id)
    return DrawingDetail(**rec.model_dump(), emotions=EmotionSummary(**A.extract_emotions(rec.analysis_text)))

@app.get("/session/{sid}/drawings/{drawing_id}/image.png")
def drawings_image(sid: str, drawing_id: str):
    sess = _session_or_404(sid)
    rec = _owned_drawing_or_404(sess, drawing_id)
    return _png_response(decode_data_url(rec.image_data))

@app.delete("/session/{sid}/drawings/{drawing_id}")
def drawings_delete(sid: str, drawing_id: str):
    sess = _session_or_404(sid)
    rec = _owned_drawing_or_404(sess, drawing_id)
    STORE.delete(rec.id)
    ACTIVITY.for_session(sid).log("drawing_deleted", {"drawing_id": rec.id, "child_id": rec.child_id})
    return {"ok": True}
