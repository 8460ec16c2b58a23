from __future__ import annotations

from typing import Any, Dict, Literal

from pydantic import BaseModel

from .metrics import TimelineMetrics
from .models import Project, edl_to_dict
from .playback import active_effect


class ExportOptions(BaseModel):
    format: Literal["mp4", "gif"] = "mp4"
    frame_rate: Literal[24, 30, 60] = 30
    compression: Literal["minimal", "social", "web", "potato"] = "social"
    resolution: Literal["720p", "1080p", "4k"] = "1080p"


def resolve_sample(project: Project, t: float) -> Dict[str, Any]:
    """Settings the renderer applies to the source frame at time ``t``."""
    edits = project.edits
    zoom = active_effect(edits.zoom, t)
    speed = active_effect(edits.speed, t)
    overlay = edits.camera_overlay
    return {
        "time": t,
        "zoom": {"id": zoom.id, "scale": zoom.scale, "x": zoom.x, "y": zoom.y} if zoom else None,
        "speed": speed.speed if speed else 1.0,
        "annotations": [a.id for a in edits.annotations if a.start_time <= t < a.end_time],
        "cameraOverlay": {
            "position": overlay.position,
            "margin": overlay.margin,
            "scale": overlay.scale,
            "customX": overlay.custom_x,
            "customY": overlay.custom_y,
        } if project.camera_video_path else None,
        "audioMix": {
            "systemVolume": edits.audio_mix.system_volume,
            "microphoneVolume": edits.audio_mix.microphone_volume,
            "microphoneNoiseGate": edits.audio_mix.microphone_noise_gate,
        },
        "colorCorrection": {
            "brightness": edits.color_correction.brightness,
            "contrast": edits.color_correction.contrast,
            "saturation": edits.color_correction.saturation,
        },
    }


def build_export_request(project: Project, options: ExportOptions) -> Dict[str, Any]:
    """Everything the export service needs to render ``project``."""
    metrics = TimelineMetrics.compute(project)
    return {
        "projectId": project.id,
        "screenVideoPath": project.screen_video_path,
        "cameraVideoPath": project.camera_video_path,
        "sourceDuration": project.duration,
        "editedDuration": metrics.edited_duration,
        "options": options.model_dump(),
        "edits": edl_to_dict(project.edits),
        "intervals": [
            {
                "segmentId": span.segment_id,
                "sourceStart": span.source_start,
                "sourceEnd": span.source_end,
                "editedStart": span.edited_start,
                "editedDuration": span.edited_duration,
            }
            for span in metrics.spans
        ],
    }
