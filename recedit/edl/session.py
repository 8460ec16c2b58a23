from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

from . import adjustments, annotations, effects, segments
from .drafts import DraftState, SpeedDraft, ZoomDraft
from .effects import EditMode
from .history import MAX_HISTORY_SIZE, HistoryManager
from .metrics import TimelineMetrics
from .models import ANNOTATION_MODES, EditDecisionList, Project, build_fallback_project, new_id
from .playback import PlaybackSynchronizer, SegmentSkipChecker, SKIP_CHECK_INTERVAL_SEC
from .results import EditResult, RejectReason, rejected
from .store import PersistenceError, ProjectStore

from recedit.utils.logging_setup import log_context

logger = logging.getLogger(__name__)

EdlOp = Callable[[EditDecisionList], EditResult[EditDecisionList]]

DEFAULT_PRESETS: Dict[str, Dict[str, Any]] = {
    "zoom": {"length_sec": 5.0, "scale": 1.5},
    "speed": {"length_sec": 5.0, "speed": 2.0},
    "annotation": {
        "length_sec": 3.0,
        "min_length_sec": 0.1,
        "duplicate_offset_sec": annotations.DUPLICATE_OFFSET_SEC,
        "mode": "outline",
    },
}


def _merge_presets(presets: Optional[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    merged = {k: dict(v) for k, v in DEFAULT_PRESETS.items()}
    for key, value in (presets or {}).items():
        if isinstance(value, dict):
            merged.setdefault(key, {}).update(value)
    return merged


class EditorSession:
    """
    The single writer for one open project.

    Every edit runs under ``lock`` (the history lock): compute the new edit
    decision list from the live one, then commit it. Rejected edits leave the
    project and history untouched. Playback and the segment-skip checker read
    the same live project under the same lock.
    """

    def __init__(
        self,
        project: Project,
        store: Optional[ProjectStore] = None,
        history_limit: int = MAX_HISTORY_SIZE,
        presets: Optional[Mapping[str, Any]] = None,
        playback_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.session_id = new_id()[:8]
        self.history = HistoryManager(project, limit=history_limit)
        self.lock = self.history.lock
        self.store = store
        self.presets = _merge_presets(presets)
        annotation_mode = self.presets["annotation"]["mode"]
        if annotation_mode not in ANNOTATION_MODES:
            raise ValueError(f"Unknown annotation mode preset: {annotation_mode}")
        self.drafts = DraftState(annotation_mode=annotation_mode)
        self.playback = PlaybackSynchronizer(lambda: self.history.current, self.drafts, **dict(playback_options or {}))
        self.is_dirty = False
        self.revision = 0
        self._skip_checker: Optional[SegmentSkipChecker] = None

    @classmethod
    def open(cls, project_id: str, store: ProjectStore, **kwargs: Any) -> "EditorSession":
        """
        Load ``project_id`` from ``store``. A missing or unreadable project is
        replaced by a fallback so the editor always has something to show.
        """
        try:
            project = store.load(project_id)
            logger.info(f"Opened project {project_id}")
        except PersistenceError as e:
            logger.warning(f"Falling back to an empty project for {project_id}: {e}")
            project = build_fallback_project(project_id)
        return cls(project, store=store, **kwargs)

    @property
    def project(self) -> Project:
        return self.history.current

    def metrics(self) -> TimelineMetrics:
        with self.lock:
            return TimelineMetrics.compute(self.project)

    def _context(self, operation: str):
        return log_context(session_id=self.session_id, project_id=self.project.id, operation=operation)

    def _touch(self) -> None:
        self.is_dirty = True
        self.revision += 1

    def _edit(self, operation: str, op: EdlOp) -> EditResult[EditDecisionList]:
        with self.lock, self._context(operation):
            result = op(self.project.edits)
            if not result.applied:
                logger.debug(f"{operation} rejected: {result.reason.value}")
                return result
            self.history.commit(lambda p: p.with_edits(result.value))
            self._touch()
            logger.info(f"{operation} committed (history={self.history.past_size})")
            return result

    # --- segments ---
    def cut_at(self, time_sec: float) -> EditResult[EditDecisionList]:
        return self._edit("cut_at", lambda edl: segments.cut_at(edl, time_sec))

    def toggle_segment(self, segment_id: str) -> EditResult[EditDecisionList]:
        return self._edit("toggle_segment", lambda edl: segments.toggle_segment(edl, segment_id))

    def delete_segment(self, segment_id: str) -> EditResult[EditDecisionList]:
        return self._edit("delete_segment", lambda edl: segments.delete_segment(edl, segment_id))

    # --- zoom / speed ---
    def add_zoom(self, start: float, end: float, scale: float = 1.5, x: float = 0.0, y: float = 0.0) -> EditResult[EditDecisionList]:
        return self._edit("add_zoom", lambda edl: effects.add_zoom(edl, start, end, scale=scale, x=x, y=y))

    def update_zoom(self, zoom_id: str, patch: Mapping[str, Any], mode: Optional[EditMode] = None) -> EditResult[EditDecisionList]:
        return self._edit("update_zoom", lambda edl: effects.update_zoom(edl, zoom_id, patch, mode=mode))

    def delete_zoom(self, zoom_id: str) -> EditResult[EditDecisionList]:
        return self._edit("delete_zoom", lambda edl: effects.delete_zoom(edl, zoom_id))

    def add_speed(self, start: float, end: float, speed: float = 1.0) -> EditResult[EditDecisionList]:
        return self._edit("add_speed", lambda edl: effects.add_speed(edl, start, end, speed=speed))

    def update_speed(self, speed_id: str, patch: Mapping[str, Any], mode: Optional[EditMode] = None) -> EditResult[EditDecisionList]:
        return self._edit("update_speed", lambda edl: effects.update_speed(edl, speed_id, patch, mode=mode))

    def delete_speed(self, speed_id: str) -> EditResult[EditDecisionList]:
        return self._edit("delete_speed", lambda edl: effects.delete_speed(edl, speed_id))

    def set_global_speed(self, speed: float) -> EditResult[EditDecisionList]:
        duration = self.project.duration
        return self._edit("set_global_speed", lambda edl: effects.set_global_speed(edl, duration, speed))

    # --- annotations ---
    def add_annotation(self, start: float, end: float, mode: str = "outline", **overrides: Any) -> EditResult[EditDecisionList]:
        return self._edit("add_annotation", lambda edl: annotations.add_annotation(edl, start, end, mode, **overrides))

    def update_annotation(self, annotation_id: str, patch: Mapping[str, Any]) -> EditResult[EditDecisionList]:
        return self._edit("update_annotation", lambda edl: annotations.update_annotation(edl, annotation_id, patch))

    def delete_annotation(self, annotation_id: str) -> EditResult[EditDecisionList]:
        return self._edit("delete_annotation", lambda edl: annotations.delete_annotation(edl, annotation_id))

    def duplicate_annotation(self, annotation_id: str) -> EditResult[EditDecisionList]:
        duration = self.project.duration
        offset = float(self.presets["annotation"]["duplicate_offset_sec"])
        return self._edit(
            "duplicate_annotation",
            lambda edl: annotations.duplicate_annotation(edl, annotation_id, duration, offset=offset),
        )

    def nudge_annotation(self, annotation_id: str, dx: float, dy: float) -> EditResult[EditDecisionList]:
        return self._edit("nudge_annotation", lambda edl: annotations.nudge_annotation(edl, annotation_id, dx, dy))

    def move_annotation_box(self, annotation_id: str, x: float, y: float) -> EditResult[EditDecisionList]:
        return self._edit("move_annotation_box", lambda edl: annotations.move_annotation_box(edl, annotation_id, x, y))

    def _annotation_style(self) -> Dict[str, Any]:
        preset = self.presets["annotation"]
        style = {k: preset[k] for k in ("color", "opacity", "thickness") if k in preset}
        style.update(preset.get("box") or {})
        return style

    def create_annotation_at_playhead(self, mode: str = "outline") -> Optional[EditResult[EditDecisionList]]:
        preset = self.presets["annotation"]
        start = max(0.0, self.playback.cursor)
        end = min(self.project.duration, start + float(preset["length_sec"]))
        if end - start <= float(preset["min_length_sec"]):
            return None
        self.drafts.annotation_mode = mode
        return self.add_annotation(start, end, mode, **self._annotation_style())

    # --- adjustments ---
    def adjust(self, name: str, value: Any) -> EditResult[EditDecisionList]:
        setter = adjustments.ADJUSTMENTS.get(name)
        if setter is None:
            raise ValueError(f"unknown adjustment: {name!r}")
        return self._edit(f"adjust:{name}", lambda edl: setter(edl, value))

    def set_overlay_custom_position(self, x: float, y: float) -> EditResult[EditDecisionList]:
        return self._edit("overlay_custom_position", lambda edl: adjustments.set_overlay_custom_position(edl, x, y))

    def reset_color_correction(self) -> EditResult[EditDecisionList]:
        return self._edit("reset_color_correction", adjustments.reset_color_correction)

    # --- history ---
    def undo(self) -> bool:
        with self.lock, self._context("undo"):
            if not self.history.undo():
                return False
            self._touch()
            logger.info("undo")
            return True

    def redo(self) -> bool:
        with self.lock, self._context("redo"):
            if not self.history.redo():
                return False
            self._touch()
            logger.info("redo")
            return True

    def reconcile_duration(self, actual_duration: float, tolerance: float = 0.1) -> bool:
        """Adopt the real media duration. Not undoable."""
        with self.lock, self._context("reconcile_duration"):
            changed = self.history.patch(lambda p: segments.reconcile_duration(p, actual_duration, tolerance))
            if changed:
                self._touch()
            return changed

    # --- drafts & selection ---
    def select(self, kind: str, item_id: Optional[str]) -> None:
        with self.lock:
            self.drafts.select(kind, item_id)

    def clear_selection(self) -> None:
        with self.lock:
            self.drafts.clear_selection()

    def set_zoom_draft(self, scale: float, x: float = 0.0, y: float = 0.0) -> bool:
        with self.lock:
            if self.drafts.selected("zoom") is None:
                return False
            self.drafts.zoom_draft = ZoomDraft(scale=scale, x=x, y=y)
            return True

    def set_speed_draft(self, speed: float) -> bool:
        with self.lock:
            if self.drafts.selected("speed") is None:
                return False
            self.drafts.speed_draft = SpeedDraft(speed=speed)
            return True

    def commit_zoom_draft(self) -> EditResult[EditDecisionList]:
        """Fold the live zoom values into the project as one undoable step."""
        with self.lock:
            draft, zoom_id = self.drafts.zoom_draft, self.drafts.selected("zoom")
            if draft is None or zoom_id is None:
                return rejected(self.project.edits, RejectReason.NO_CHANGE)
            self.drafts.zoom_draft = None
            return self.update_zoom(zoom_id, draft.as_patch(), mode=EditMode.PATCH)

    def commit_speed_draft(self) -> EditResult[EditDecisionList]:
        with self.lock:
            draft, speed_id = self.drafts.speed_draft, self.drafts.selected("speed")
            if draft is None or speed_id is None:
                return rejected(self.project.edits, RejectReason.NO_CHANGE)
            self.drafts.speed_draft = None
            return self.update_speed(speed_id, draft.as_patch(), mode=EditMode.PATCH)

    def delete_selected(self) -> EditResult[EditDecisionList]:
        with self.lock:
            kind, item_id = self.drafts.selected_kind, self.drafts.selected_id
            deleters = {
                "zoom": self.delete_zoom,
                "speed": self.delete_speed,
                "annotation": self.delete_annotation,
                "segment": self.delete_segment,
            }
            if kind is None or item_id is None:
                return rejected(self.project.edits, RejectReason.UNKNOWN_ID)
            result = deleters[kind](item_id)
            if result.applied:
                self.drafts.clear_selection()
            return result

    def click_timeline(self, time_sec: float) -> Optional[EditResult[EditDecisionList]]:
        """Apply the selected tool at ``time_sec``; with no tool, seek."""
        tool = self.drafts.tool
        duration = self.project.duration
        if tool == "cut":
            return self.cut_at(time_sec)
        if tool == "zoom":
            preset = self.presets["zoom"]
            return self.add_zoom(time_sec, min(time_sec + preset["length_sec"], duration), scale=preset["scale"])
        if tool == "speed":
            preset = self.presets["speed"]
            return self.add_speed(time_sec, min(time_sec + preset["length_sec"], duration), speed=preset["speed"])
        if tool == "annotation":
            preset = self.presets["annotation"]
            end = min(time_sec + preset["length_sec"], duration)
            if end <= time_sec:
                return None
            return self.add_annotation(time_sec, end, self.drafts.annotation_mode, **self._annotation_style())
        with self.lock:
            self.playback.seek(time_sec)
        return None

    # --- playback ---
    def start_skip_checker(self, interval: float = SKIP_CHECK_INTERVAL_SEC) -> SegmentSkipChecker:
        self.stop_skip_checker()
        self._skip_checker = SegmentSkipChecker(self.playback, self.lock, interval=interval)
        self._skip_checker.start()
        return self._skip_checker

    def stop_skip_checker(self) -> None:
        if self._skip_checker is not None:
            self._skip_checker.stop()
            self._skip_checker = None

    # --- persistence ---
    def save(self) -> None:
        """Persist the live project. Errors propagate and leave the session dirty."""
        if self.store is None:
            raise PersistenceError("session has no project store")
        with self.lock:
            project, revision = self.project, self.revision
        with self._context("save"):
            self.store.save(project)
        with self.lock:
            if self.revision == revision:
                self.is_dirty = False

    def flush(self) -> bool:
        if not self.is_dirty:
            return False
        self.save()
        return True

    def close(self) -> None:
        self.stop_skip_checker()
        self.flush()


class Autosaver:
    """
    Decides when a dirty session is written back: shortly after the last
    change settles, and periodically while edits keep coming. A failed save is
    logged and retried on a later poll.
    """

    def __init__(
        self,
        session: EditorSession,
        debounce_sec: float = 5.0,
        interval_sec: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.debounce_sec = debounce_sec
        self.interval_sec = interval_sec
        self.clock = clock
        now = clock()
        self._seen_revision = session.revision
        self._changed_at = now
        self._last_attempt = now

    def poll(self, now: Optional[float] = None) -> bool:
        now = self.clock() if now is None else now
        if self.session.revision != self._seen_revision:
            self._seen_revision = self.session.revision
            self._changed_at = now
        if not self.session.is_dirty:
            return False
        settled = now - self._changed_at >= self.debounce_sec
        overdue = now - self._last_attempt >= self.interval_sec
        if not (settled or overdue):
            return False
        self._last_attempt = now
        try:
            self.session.save()
        except PersistenceError as e:
            logger.error(f"Autosave failed, will retry: {e}")
            return False
        return True
