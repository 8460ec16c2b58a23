import logging
import traceback
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from recedit.config.config import config
from recedit.edl import tools
from recedit.edl.effects import EditMode
from recedit.edl.export import ExportOptions, build_export_request, resolve_sample
from recedit.edl.models import edl_to_dict, project_to_dict
from recedit.edl.results import EditResult
from recedit.edl.session import EditorSession
from recedit.edl.store import PersistenceError, ProjectNotFoundError
from recedit.utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Recording Editor API", version="0.1.0")

# CORS middleware setting
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _run(project_id: str, action):
    """Map domain errors onto HTTP status codes."""
    try:
        session = tools.get_session(project_id, must_exist=True)
        out = action(session)
        tools.autosave(project_id)
        return out
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Persistence error for {project_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _edit_response(session: EditorSession, result: EditResult) -> Dict[str, Any]:
    return {
        "applied": result.applied,
        "reason": result.reason.value if result.reason is not None else None,
        "createdId": result.created_id,
        "canUndo": session.history.can_undo,
        "canRedo": session.history.can_redo,
        "edits": edl_to_dict(session.project.edits),
    }


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class CreateProjectRequest(BaseModel):
    id: str
    screen_video_path: str
    duration: float = Field(gt=0)
    width: int = 1920
    height: int = 1080
    camera_video_path: Optional[str] = None
    name: Optional[str] = None


class TimeRequest(BaseModel):
    time: float


class TickRequest(BaseModel):
    elapsed: float = Field(ge=0)


class ZoomRequest(BaseModel):
    start: float
    end: float
    scale: float = 1.5
    x: float = 0.0
    y: float = 0.0


class SpeedRequest(BaseModel):
    start: float
    end: float
    speed: float = 2.0


class GlobalSpeedRequest(BaseModel):
    speed: float


class EffectPatchRequest(BaseModel):
    patch: Dict[str, Any]
    mode: Optional[EditMode] = None


class AnnotationRequest(BaseModel):
    start: float
    end: float
    mode: Literal["outline", "blur", "text", "arrow"] = "outline"
    text: Optional[str] = None


class AnnotationPatchRequest(BaseModel):
    patch: Dict[str, Any]


class NudgeRequest(BaseModel):
    dx: float = 0.0
    dy: float = 0.0


class AdjustmentRequest(BaseModel):
    name: str
    value: Any


class ReconcileRequest(BaseModel):
    duration: float = Field(ge=0)


@app.get("/health")
async def health():
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat()
    )


@app.get("/")
async def root():
    return {"message": "Recording Editor API is running"}


@app.get("/projects")
def list_projects() -> Dict[str, List[Dict[str, Any]]]:
    try:
        return tools.project_list()
    except PersistenceError as e:
        logger.error(f"Failed to list projects: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/projects", status_code=201)
def create(request: CreateProjectRequest):
    try:
        created = tools.project_create(
            request.id,
            request.screen_video_path,
            request.duration,
            request.width,
            request.height,
            camera_video_path=request.camera_video_path or "",
            name=request.name,
        )
    except PersistenceError as e:
        logger.error(f"Failed to create project {request.id}: {e}")
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    logger.info(f"POST /projects - created {request.id}")
    return created["project"]


@app.get("/projects/{project_id}")
def get_project(project_id: str):
    return _run(project_id, lambda s: project_to_dict(s.project))


@app.post("/projects/{project_id}/save")
def save_project(project_id: str):
    return _run(project_id, lambda s: {"saved": s.flush()})


@app.post("/projects/{project_id}/reconcile")
def reconcile(project_id: str, request: ReconcileRequest):
    tolerance = float(config["duration_tolerance_sec"])
    return _run(project_id, lambda s: {"changed": s.reconcile_duration(request.duration, tolerance)})


# --- segments ---
@app.post("/projects/{project_id}/segments/cut")
def cut(project_id: str, request: TimeRequest):
    return _run(project_id, lambda s: _edit_response(s, s.cut_at(request.time)))


@app.post("/projects/{project_id}/segments/{segment_id}/toggle")
def toggle_segment(project_id: str, segment_id: str):
    return _run(project_id, lambda s: _edit_response(s, s.toggle_segment(segment_id)))


@app.delete("/projects/{project_id}/segments/{segment_id}")
def delete_segment(project_id: str, segment_id: str):
    return _run(project_id, lambda s: _edit_response(s, s.delete_segment(segment_id)))


# --- zoom ---
@app.post("/projects/{project_id}/zoom")
def add_zoom(project_id: str, request: ZoomRequest):
    return _run(
        project_id,
        lambda s: _edit_response(s, s.add_zoom(request.start, request.end, request.scale, request.x, request.y)),
    )


@app.patch("/projects/{project_id}/zoom/{zoom_id}")
def update_zoom(project_id: str, zoom_id: str, request: EffectPatchRequest):
    return _run(project_id, lambda s: _edit_response(s, s.update_zoom(zoom_id, request.patch, mode=request.mode)))


@app.delete("/projects/{project_id}/zoom/{zoom_id}")
def delete_zoom(project_id: str, zoom_id: str):
    return _run(project_id, lambda s: _edit_response(s, s.delete_zoom(zoom_id)))


# --- speed ---
@app.post("/projects/{project_id}/speed")
def add_speed(project_id: str, request: SpeedRequest):
    return _run(project_id, lambda s: _edit_response(s, s.add_speed(request.start, request.end, request.speed)))


@app.put("/projects/{project_id}/speed/global")
def set_global_speed(project_id: str, request: GlobalSpeedRequest):
    return _run(project_id, lambda s: _edit_response(s, s.set_global_speed(request.speed)))


@app.patch("/projects/{project_id}/speed/{speed_id}")
def update_speed(project_id: str, speed_id: str, request: EffectPatchRequest):
    return _run(project_id, lambda s: _edit_response(s, s.update_speed(speed_id, request.patch, mode=request.mode)))


@app.delete("/projects/{project_id}/speed/{speed_id}")
def delete_speed(project_id: str, speed_id: str):
    return _run(project_id, lambda s: _edit_response(s, s.delete_speed(speed_id)))


# --- annotations ---
@app.post("/projects/{project_id}/annotations")
def add_annotation(project_id: str, request: AnnotationRequest):
    overrides = {"text": request.text} if request.text is not None else {}
    return _run(
        project_id,
        lambda s: _edit_response(s, s.add_annotation(request.start, request.end, request.mode, **overrides)),
    )


@app.patch("/projects/{project_id}/annotations/{annotation_id}")
def update_annotation(project_id: str, annotation_id: str, request: AnnotationPatchRequest):
    return _run(project_id, lambda s: _edit_response(s, s.update_annotation(annotation_id, request.patch)))


@app.post("/projects/{project_id}/annotations/{annotation_id}/duplicate")
def duplicate_annotation(project_id: str, annotation_id: str):
    return _run(project_id, lambda s: _edit_response(s, s.duplicate_annotation(annotation_id)))


@app.post("/projects/{project_id}/annotations/{annotation_id}/nudge")
def nudge_annotation(project_id: str, annotation_id: str, request: NudgeRequest):
    return _run(project_id, lambda s: _edit_response(s, s.nudge_annotation(annotation_id, request.dx, request.dy)))


@app.delete("/projects/{project_id}/annotations/{annotation_id}")
def delete_annotation(project_id: str, annotation_id: str):
    return _run(project_id, lambda s: _edit_response(s, s.delete_annotation(annotation_id)))


# --- adjustments ---
@app.post("/projects/{project_id}/adjustments")
def adjust(project_id: str, request: AdjustmentRequest):
    return _run(project_id, lambda s: _edit_response(s, s.adjust(request.name, request.value)))


# --- history ---
@app.post("/projects/{project_id}/undo")
def undo(project_id: str):
    return _run(project_id, lambda s: {"undone": s.undo(), "edits": edl_to_dict(s.project.edits)})


@app.post("/projects/{project_id}/redo")
def redo(project_id: str):
    return _run(project_id, lambda s: {"redone": s.redo(), "edits": edl_to_dict(s.project.edits)})


# --- playback ---
def _playback_state(session: EditorSession) -> Dict[str, Any]:
    sync = session.playback
    return {
        "cursor": sync.cursor,
        "isPlaying": sync.is_playing,
        "shuttle": sync.shuttle,
        "rate": sync.effective_rate(),
    }


@app.get("/projects/{project_id}/playback")
def playback_state(project_id: str):
    return _run(project_id, _playback_state)


@app.post("/projects/{project_id}/playback/toggle")
def toggle_play(project_id: str):
    def action(s: EditorSession):
        with s.lock:
            playing = s.playback.toggle_play()
        if playing:
            s.start_skip_checker(float(config["skip_check_interval_sec"]))
        else:
            s.stop_skip_checker()
        return _playback_state(s)

    return _run(project_id, action)


@app.post("/projects/{project_id}/playback/seek")
def seek(project_id: str, request: TimeRequest):
    def action(s: EditorSession):
        with s.lock:
            s.playback.seek(request.time)
        return _playback_state(s)

    return _run(project_id, action)


@app.post("/projects/{project_id}/playback/tick")
def tick(project_id: str, request: TickRequest):
    """
    Advance the cursor by the wall-clock time the client played since its
    last report, then skip any cut under the new position.
    """
    def action(s: EditorSession):
        with s.lock:
            s.playback.tick(request.elapsed)
            s.playback.check_and_skip()
            playing = s.playback.is_playing
        if not playing:
            s.stop_skip_checker()
        return _playback_state(s)

    return _run(project_id, action)


# --- timeline ---
@app.get("/projects/{project_id}/metrics")
def metrics(project_id: str, t: Optional[float] = None):
    def action(s: EditorSession):
        m = s.metrics()
        out = {"sourceDuration": m.source_duration, "editedDuration": m.edited_duration}
        if t is not None:
            out["editedTime"] = m.source_to_edited_time(t)
        return out

    return _run(project_id, action)


@app.get("/projects/{project_id}/sample")
def sample(project_id: str, t: float):
    return _run(project_id, lambda s: resolve_sample(s.project, t))


@app.post("/projects/{project_id}/export-request")
def export_request(project_id: str, options: ExportOptions):
    return _run(project_id, lambda s: build_export_request(s.project, options))


@app.on_event("shutdown")
def _flush_sessions():
    tools.close_all()


if __name__ == "__main__":
    import uvicorn

    configure_logging(
        log_file=config["log_file"],
        level=config["log_level"],
        enable_console=True,
        max_bytes=int(config["log_max_bytes"]),
        backup_count=int(config["log_backup_count"]),
    )
    uvicorn.run(app, host=config["server_host"], port=int(config["server_port"]))
