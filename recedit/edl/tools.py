from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, Optional

from recedit.config.config import config

from .effects import EditMode
from .export import ExportOptions, build_export_request
from .models import create_project, edl_to_dict, project_to_dict
from .results import EditResult
from .session import Autosaver, EditorSession
from .store import PersistenceError, ProjectNotFoundError, ProjectStore, default_library_path

logger = logging.getLogger(__name__)


# One registry per process: the HTTP server and these tool functions share it,
# so every project has exactly one writing session.
_lock = threading.RLock()
_stores: Dict[str, ProjectStore] = {}
_sessions: Dict[str, EditorSession] = {}
_autosavers: Dict[str, Autosaver] = {}
_projects_dir: Optional[str] = None


def set_projects_dir(projects_dir: Optional[os.PathLike]) -> None:
    """
    Point the registry at another project library. Open sessions are closed
    (flushing unsaved work) so nothing keeps writing to the old one.
    ``None`` goes back to the configured ``projects_dir``.
    """
    global _projects_dir
    close_all()
    _projects_dir = os.fspath(projects_dir) if projects_dir is not None else None


def get_store() -> ProjectStore:
    base = _projects_dir if _projects_dir is not None else config.get("projects_dir")
    path = str(default_library_path(base))
    with _lock:
        if path not in _stores:
            _stores[path] = ProjectStore.open(path)
        return _stores[path]


def _session_options() -> Dict[str, Any]:
    return {
        "history_limit": int(config["history_limit"]),
        "presets": config.get("presets"),
        "playback_options": {
            "max_rate": float(config["max_playback_rate"]),
            "skip_seconds": float(config["skip_seconds"]),
            "frame_rate": int(config["frame_rate"]),
        },
    }


def get_session(project_id: str, must_exist: bool = False) -> EditorSession:
    """
    Return the open session for ``project_id``, opening it on first use so
    undo history survives between calls. With ``must_exist`` an unknown id
    raises ``ProjectNotFoundError`` instead of opening a fallback project.
    """
    with _lock:
        store = get_store()
        if must_exist and not store.exists(project_id):
            raise ProjectNotFoundError(f"Project not found: {project_id}")
        session = _sessions.get(project_id)
        if session is not None:
            return session
        session = EditorSession.open(project_id, store, **_session_options())
        _sessions[project_id] = session
        _autosavers[project_id] = Autosaver(
            session,
            debounce_sec=float(config["autosave_debounce_sec"]),
            interval_sec=float(config["autosave_interval_sec"]),
        )
        return session


def autosave(project_id: str) -> bool:
    """Give the project's autosaver a chance to write back pending edits."""
    autosaver = _autosavers.get(project_id)
    return autosaver.poll() if autosaver is not None else False


def _drop_session(project_id: str) -> None:
    with _lock:
        _autosavers.pop(project_id, None)
        stale = _sessions.pop(project_id, None)
    if stale is not None:
        stale.stop_skip_checker()


def close_all() -> None:
    """Flush and close every open session, then the stores behind them."""
    with _lock:
        _autosavers.clear()
        sessions = [_sessions.pop(pid) for pid in list(_sessions)]
        stores = [_stores.pop(path) for path in list(_stores)]
    for session in sessions:
        try:
            session.close()
        except PersistenceError as e:
            logger.error(f"Failed to flush {session.project.id} on close: {e}")
    for store in stores:
        store.close()


def _result(project_id: str, result: EditResult) -> Dict[str, Any]:
    out: Dict[str, Any] = {"project_id": project_id, "applied": result.applied}
    if result.reason is not None:
        out["reason"] = result.reason.value
    if result.created_id is not None:
        out["created_id"] = result.created_id
    return out


def project_create(
    project_id: str,
    screen_video_path: str,
    duration: float,
    width: int,
    height: int,
    camera_video_path: str = "",
    name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Register a finished recording as a new project and save it. A session
    still open under the same id is discarded.
    """
    project = create_project(
        project_id,
        screen_video_path,
        duration,
        width,
        height,
        camera_video_path=camera_video_path or None,
        name=name,
    )
    get_store().save(project)
    _drop_session(project_id)
    return {"project_id": project_id, "project": project_to_dict(project)}


def project_get(project_id: str) -> Dict[str, Any]:
    return {"project_id": project_id, "project": project_to_dict(get_session(project_id).project)}


def project_list() -> Dict[str, Any]:
    """
    List saved projects, newest first.
    """
    return {"projects": get_store().list_summaries()}


def project_save(project_id: str) -> Dict[str, Any]:
    saved = get_session(project_id).flush()
    return {"project_id": project_id, "saved": saved}


def edl_get(project_id: str) -> Dict[str, Any]:
    return {"project_id": project_id, "edits": edl_to_dict(get_session(project_id).project.edits)}


def timeline_cut(project_id: str, time_sec: float) -> Dict[str, Any]:
    """
    Split the enabled segment containing time_sec in two.
    """
    return _result(project_id, get_session(project_id).cut_at(time_sec))


def timeline_toggle_segment(project_id: str, segment_id: str) -> Dict[str, Any]:
    return _result(project_id, get_session(project_id).toggle_segment(segment_id))


def timeline_delete_segment(project_id: str, segment_id: str) -> Dict[str, Any]:
    return _result(project_id, get_session(project_id).delete_segment(segment_id))


def zoom_add(project_id: str, start: float, end: float, scale: float = 1.5, x: float = 0.0, y: float = 0.0) -> Dict[str, Any]:
    """
    Add a zoom effect. The end is clipped to the next zoom's start.
    """
    return _result(project_id, get_session(project_id).add_zoom(start, end, scale=scale, x=x, y=y))


def zoom_update(project_id: str, zoom_id: str, patch: Dict[str, Any], mode: str = "") -> Dict[str, Any]:
    return _result(project_id, get_session(project_id).update_zoom(zoom_id, patch, mode=EditMode(mode) if mode else None))


def zoom_delete(project_id: str, zoom_id: str) -> Dict[str, Any]:
    return _result(project_id, get_session(project_id).delete_zoom(zoom_id))


def speed_add(project_id: str, start: float, end: float, speed: float = 2.0) -> Dict[str, Any]:
    return _result(project_id, get_session(project_id).add_speed(start, end, speed=speed))


def speed_update(project_id: str, speed_id: str, patch: Dict[str, Any], mode: str = "") -> Dict[str, Any]:
    return _result(project_id, get_session(project_id).update_speed(speed_id, patch, mode=EditMode(mode) if mode else None))


def speed_delete(project_id: str, speed_id: str) -> Dict[str, Any]:
    return _result(project_id, get_session(project_id).delete_speed(speed_id))


def annotation_add(project_id: str, start: float, end: float, mode: str = "outline", text: str = "") -> Dict[str, Any]:
    overrides = {"text": text} if text else {}
    return _result(project_id, get_session(project_id).add_annotation(start, end, mode, **overrides))


def annotation_delete(project_id: str, annotation_id: str) -> Dict[str, Any]:
    return _result(project_id, get_session(project_id).delete_annotation(annotation_id))


def history_undo(project_id: str) -> Dict[str, Any]:
    return {"project_id": project_id, "undone": get_session(project_id).undo()}


def history_redo(project_id: str) -> Dict[str, Any]:
    return {"project_id": project_id, "redone": get_session(project_id).redo()}


def timeline_metrics(project_id: str) -> Dict[str, Any]:
    """
    Edited duration and the source/edited mapping of every kept segment.
    """
    session = get_session(project_id)
    metrics = session.metrics()
    return {
        "project_id": project_id,
        "source_duration": metrics.source_duration,
        "edited_duration": metrics.edited_duration,
        "spans": [
            {
                "segment_id": s.segment_id,
                "source_start": s.source_start,
                "source_end": s.source_end,
                "edited_start": s.edited_start,
                "edited_duration": s.edited_duration,
            }
            for s in metrics.spans
        ],
    }


def export_request(project_id: str, format: str = "mp4", frame_rate: int = 30) -> Dict[str, Any]:
    options = ExportOptions(format=format, frame_rate=frame_rate)
    return build_export_request(get_session(project_id).project, options)
