from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

ANNOTATION_MODES = ("outline", "blur", "text", "arrow")
OVERLAY_POSITIONS = ("top-left", "top-right", "bottom-left", "bottom-right", "custom")

FALLBACK_DURATION = 274.8
FALLBACK_RESOLUTION = (1920, 1080)


def new_id() -> str:
    return str(uuid4())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _finite(value: Any, default: float = 0.0) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    return f if math.isfinite(f) else default


def _positive(value: Any, default: float = 1.0) -> float:
    f = _finite(value, default)
    return f if f > 0 else default


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int


@dataclass(frozen=True)
class Segment:
    id: str
    start_time: float
    end_time: float
    enabled: bool = True

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class ZoomEffect:
    id: str
    start_time: float
    end_time: float
    scale: float = 1.5
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class SpeedEffect:
    id: str
    start_time: float
    end_time: float
    speed: float = 1.0


@dataclass(frozen=True)
class Annotation:
    id: str
    start_time: float
    end_time: float
    x: float
    y: float
    width: float
    height: float
    color: str = "#ff4d4f"
    opacity: float = 0.9
    thickness: float = 4.0
    text: Optional[str] = None
    mode: str = "outline"


@dataclass(frozen=True)
class CameraOverlay:
    position: str = "bottom-right"
    margin: int = 20
    scale: float = 0.25
    custom_x: float = 1.0
    custom_y: float = 1.0


@dataclass(frozen=True)
class AudioMix:
    system_volume: float = 1.0
    microphone_volume: float = 1.0
    microphone_noise_gate: bool = False


@dataclass(frozen=True)
class ColorCorrection:
    brightness: float = 0.0
    contrast: float = 1.0
    saturation: float = 1.0


@dataclass(frozen=True)
class EditDecisionList:
    segments: Tuple[Segment, ...] = ()
    zoom: Tuple[ZoomEffect, ...] = ()
    speed: Tuple[SpeedEffect, ...] = ()
    annotations: Tuple[Annotation, ...] = ()
    camera_overlay: CameraOverlay = field(default_factory=CameraOverlay)
    audio_mix: AudioMix = field(default_factory=AudioMix)
    color_correction: ColorCorrection = field(default_factory=ColorCorrection)


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    created_at: str
    screen_video_path: str
    duration: float
    resolution: Resolution
    edits: EditDecisionList
    camera_video_path: Optional[str] = None

    def with_edits(self, edits: EditDecisionList) -> "Project":
        if edits is self.edits:
            return self
        return replace(self, edits=edits)


def full_length_segment(duration: float) -> Segment:
    return Segment(id=new_id(), start_time=0.0, end_time=max(0.0, float(duration)), enabled=True)


def create_project(
    project_id: str,
    screen_video_path: str,
    duration: float,
    width: int,
    height: int,
    camera_video_path: Optional[str] = None,
    name: Optional[str] = None,
) -> Project:
    """
    New project for a finished recording: one enabled segment spanning the
    whole source and no effects.
    """
    return Project(
        id=project_id,
        name=name or f"Recording {project_id[:8]}",
        created_at=_now_iso(),
        screen_video_path=screen_video_path,
        camera_video_path=camera_video_path,
        duration=float(duration),
        resolution=Resolution(width=int(width), height=int(height)),
        edits=EditDecisionList(segments=(full_length_segment(duration),)),
    )


def build_fallback_project(project_id: str) -> Project:
    """Safe default used when a project cannot be loaded."""
    width, height = FALLBACK_RESOLUTION
    return create_project(
        project_id=project_id,
        screen_video_path="",
        duration=FALLBACK_DURATION,
        width=width,
        height=height,
    )


# --- serialization ---
# The persisted record uses the camelCase field names of the desktop app's
# project.json so files stay interchangeable.

def _segment_to_dict(s: Segment) -> Dict[str, Any]:
    return {"id": s.id, "startTime": s.start_time, "endTime": s.end_time, "enabled": s.enabled}


def _zoom_to_dict(z: ZoomEffect) -> Dict[str, Any]:
    return {"id": z.id, "startTime": z.start_time, "endTime": z.end_time, "scale": z.scale, "x": z.x, "y": z.y}


def _speed_to_dict(s: SpeedEffect) -> Dict[str, Any]:
    return {"id": s.id, "startTime": s.start_time, "endTime": s.end_time, "speed": s.speed}


def _annotation_to_dict(a: Annotation) -> Dict[str, Any]:
    d = {
        "id": a.id,
        "startTime": a.start_time,
        "endTime": a.end_time,
        "x": a.x,
        "y": a.y,
        "width": a.width,
        "height": a.height,
        "color": a.color,
        "opacity": a.opacity,
        "thickness": a.thickness,
        "mode": a.mode,
    }
    if a.text is not None:
        d["text"] = a.text
    return d


def edl_to_dict(edl: EditDecisionList) -> Dict[str, Any]:
    overlay = edl.camera_overlay
    mix = edl.audio_mix
    color = edl.color_correction
    return {
        "segments": [_segment_to_dict(s) for s in edl.segments],
        "zoom": [_zoom_to_dict(z) for z in edl.zoom],
        "speed": [_speed_to_dict(s) for s in edl.speed],
        "annotations": [_annotation_to_dict(a) for a in edl.annotations],
        "cameraOverlay": {
            "position": overlay.position,
            "margin": overlay.margin,
            "scale": overlay.scale,
            "customX": overlay.custom_x,
            "customY": overlay.custom_y,
        },
        "audioMix": {
            "systemVolume": mix.system_volume,
            "microphoneVolume": mix.microphone_volume,
            "microphoneNoiseGate": mix.microphone_noise_gate,
        },
        "colorCorrection": {
            "brightness": color.brightness,
            "contrast": color.contrast,
            "saturation": color.saturation,
        },
    }


def project_to_dict(project: Project) -> Dict[str, Any]:
    d = {
        "id": project.id,
        "name": project.name,
        "createdAt": project.created_at,
        "screenVideoPath": project.screen_video_path,
        "duration": project.duration,
        "resolution": {"width": project.resolution.width, "height": project.resolution.height},
        "edits": edl_to_dict(project.edits),
    }
    if project.camera_video_path is not None:
        d["cameraVideoPath"] = project.camera_video_path
    return d


def _segment_from_dict(d: Dict[str, Any]) -> Segment:
    return Segment(
        id=str(d.get("id") or new_id()),
        start_time=_finite(d.get("startTime")),
        end_time=_finite(d.get("endTime")),
        enabled=bool(d.get("enabled", True)),
    )


def _zoom_from_dict(d: Dict[str, Any]) -> ZoomEffect:
    return ZoomEffect(
        id=str(d.get("id") or new_id()),
        start_time=_finite(d.get("startTime")),
        end_time=_finite(d.get("endTime")),
        scale=_positive(d.get("scale"), 1.5),
        x=_finite(d.get("x")),
        y=_finite(d.get("y")),
    )


def _speed_from_dict(d: Dict[str, Any]) -> SpeedEffect:
    return SpeedEffect(
        id=str(d.get("id") or new_id()),
        start_time=_finite(d.get("startTime")),
        end_time=_finite(d.get("endTime")),
        speed=_positive(d.get("speed"), 1.0),
    )


def _annotation_from_dict(d: Dict[str, Any]) -> Annotation:
    mode = d.get("mode") or "outline"
    if mode not in ANNOTATION_MODES:
        mode = "outline"
    text = d.get("text")
    return Annotation(
        id=str(d.get("id") or new_id()),
        start_time=_finite(d.get("startTime")),
        end_time=_finite(d.get("endTime")),
        x=_finite(d.get("x")),
        y=_finite(d.get("y")),
        width=_finite(d.get("width"), 0.4),
        height=_finite(d.get("height"), 0.25),
        color=str(d.get("color") or "#ff4d4f"),
        opacity=_finite(d.get("opacity"), 0.9),
        thickness=_finite(d.get("thickness"), 4.0),
        text=str(text) if text is not None else None,
        mode=mode,
    )


def edl_from_dict(d: Optional[Dict[str, Any]]) -> EditDecisionList:
    """
    Parse an edits record. Absent sections get the application defaults,
    so records written by older versions load unchanged.
    """
    d = d or {}
    overlay = d.get("cameraOverlay") or {}
    mix = d.get("audioMix") or {}
    color = d.get("colorCorrection") or {}
    position = overlay.get("position") or "bottom-right"
    if position not in OVERLAY_POSITIONS:
        position = "bottom-right"
    return EditDecisionList(
        segments=tuple(_segment_from_dict(s) for s in d.get("segments") or [] if isinstance(s, dict)),
        zoom=tuple(_zoom_from_dict(z) for z in d.get("zoom") or [] if isinstance(z, dict)),
        speed=tuple(_speed_from_dict(s) for s in d.get("speed") or [] if isinstance(s, dict)),
        annotations=tuple(_annotation_from_dict(a) for a in d.get("annotations") or [] if isinstance(a, dict)),
        camera_overlay=CameraOverlay(
            position=position,
            margin=int(_finite(overlay.get("margin"), 20)),
            scale=_finite(overlay.get("scale"), 0.25),
            custom_x=_finite(overlay.get("customX"), 1.0),
            custom_y=_finite(overlay.get("customY"), 1.0),
        ),
        audio_mix=AudioMix(
            system_volume=_finite(mix.get("systemVolume"), 1.0),
            microphone_volume=_finite(mix.get("microphoneVolume"), 1.0),
            microphone_noise_gate=bool(mix.get("microphoneNoiseGate", False)),
        ),
        color_correction=ColorCorrection(
            brightness=_finite(color.get("brightness"), 0.0),
            contrast=_finite(color.get("contrast"), 1.0),
            saturation=_finite(color.get("saturation"), 1.0),
        ),
    )


def project_from_dict(d: Dict[str, Any]) -> Project:
    if not isinstance(d, dict) or not d.get("id"):
        raise ValueError("project record must be a dict with a non-empty id")
    res = d.get("resolution") or {}
    width, height = FALLBACK_RESOLUTION
    camera = d.get("cameraVideoPath")
    project = Project(
        id=str(d["id"]),
        name=str(d.get("name") or f"Recording {str(d['id'])[:8]}"),
        created_at=str(d.get("createdAt") or _now_iso()),
        screen_video_path=str(d.get("screenVideoPath") or ""),
        camera_video_path=str(camera) if camera else None,
        duration=max(0.0, _finite(d.get("duration"))),
        resolution=Resolution(
            width=int(_finite(res.get("width"), width)),
            height=int(_finite(res.get("height"), height)),
        ),
        edits=edl_from_dict(d.get("edits")),
    )
    return normalize_project(project)


def normalize_project(project: Project) -> Project:
    """Repair a project so that it always holds at least one segment."""
    if project.edits.segments:
        return project
    edits = replace(project.edits, segments=(full_length_segment(project.duration),))
    return project.with_edits(edits)
