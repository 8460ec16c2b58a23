from __future__ import annotations

from dataclasses import fields, replace
from typing import Any, Dict, Mapping, Optional

from .models import ANNOTATION_MODES, Annotation, EditDecisionList, new_id
from .results import EditResult, RejectReason, applied, rejected

DUPLICATE_OFFSET_SEC = 0.5
MIN_BOX_SIZE = 0.02

DEFAULT_BOX = {"x": 0.3, "y": 0.3, "width": 0.4, "height": 0.25}
DEFAULT_STYLE = {"color": "#ff4d4f", "opacity": 0.9, "thickness": 4.0}

_EDITABLE = tuple(f.name for f in fields(Annotation) if f.name != "id")


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _bound_box(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Box fields clamped to the unit square; width and height never below ``MIN_BOX_SIZE``."""
    out = dict(values)
    for key in ("x", "y"):
        if key in out:
            out[key] = _clamp01(out[key])
    for key in ("width", "height"):
        if key in out:
            out[key] = max(MIN_BOX_SIZE, _clamp01(out[key]))
    return out


def find_annotation(edl: EditDecisionList, annotation_id: str) -> Optional[Annotation]:
    return next((a for a in edl.annotations if a.id == annotation_id), None)


def add_annotation(
    edl: EditDecisionList,
    start: float,
    end: float,
    mode: str = "outline",
    **overrides: Any,
) -> EditResult[EditDecisionList]:
    if end <= start:
        raise ValueError(f"end must be greater than start, got {start} -> {end}")
    if mode not in ANNOTATION_MODES:
        raise ValueError(f"unknown annotation mode: {mode!r}")
    values = _bound_box({**DEFAULT_BOX, **DEFAULT_STYLE, **overrides})
    annotation = Annotation(id=new_id(), start_time=float(start), end_time=float(end), mode=mode, **values)
    return applied(replace(edl, annotations=edl.annotations + (annotation,)), created_id=annotation.id)


def update_annotation(edl: EditDecisionList, annotation_id: str, patch: Mapping[str, Any]) -> EditResult[EditDecisionList]:
    """
    Apply ``patch`` only when at least one field actually changes. Box fields
    are bounded like on add; an empty or inverted time window raises.
    """
    unknown = set(patch) - set(_EDITABLE)
    if unknown:
        raise ValueError(f"unknown annotation fields: {sorted(unknown)}")
    if "mode" in patch and patch["mode"] not in ANNOTATION_MODES:
        raise ValueError(f"unknown annotation mode: {patch['mode']!r}")

    current = find_annotation(edl, annotation_id)
    if current is None:
        return rejected(edl, RejectReason.UNKNOWN_ID)
    updated = replace(current, **_bound_box(patch))
    if updated.end_time <= updated.start_time:
        raise ValueError(f"end must be greater than start, got {updated.start_time} -> {updated.end_time}")
    if updated == current:
        return rejected(edl, RejectReason.NO_CHANGE)
    annotations = tuple(updated if a.id == annotation_id else a for a in edl.annotations)
    return applied(replace(edl, annotations=annotations))


def delete_annotation(edl: EditDecisionList, annotation_id: str) -> EditResult[EditDecisionList]:
    if find_annotation(edl, annotation_id) is None:
        return rejected(edl, RejectReason.UNKNOWN_ID)
    return applied(replace(edl, annotations=tuple(a for a in edl.annotations if a.id != annotation_id)))


def duplicate_annotation(
    edl: EditDecisionList,
    annotation_id: str,
    duration: float,
    offset: float = DUPLICATE_OFFSET_SEC,
) -> EditResult[EditDecisionList]:
    """
    Clone an annotation shifted later by ``offset`` seconds, kept inside
    ``[0, duration]``.
    """
    source = find_annotation(edl, annotation_id)
    if source is None:
        return rejected(edl, RejectReason.UNKNOWN_ID)

    length = source.end_time - source.start_time
    start = max(0.0, min(source.start_time + offset, duration - length))
    end = min(duration, start + length)
    clone = replace(source, id=new_id(), start_time=start, end_time=end)
    return applied(replace(edl, annotations=edl.annotations + (clone,)), created_id=clone.id)


def nudge_annotation(edl: EditDecisionList, annotation_id: str, dx: float, dy: float) -> EditResult[EditDecisionList]:
    """Move the box by ``(dx, dy)`` while keeping it inside the frame."""
    current = find_annotation(edl, annotation_id)
    if current is None:
        return rejected(edl, RejectReason.UNKNOWN_ID)
    width = max(MIN_BOX_SIZE, min(1.0, current.width))
    height = max(MIN_BOX_SIZE, min(1.0, current.height))
    x = max(0.0, min(1.0 - width, current.x + dx))
    y = max(0.0, min(1.0 - height, current.y + dy))
    return update_annotation(edl, annotation_id, {"x": x, "y": y})


def move_annotation_box(edl: EditDecisionList, annotation_id: str, x: float, y: float) -> EditResult[EditDecisionList]:
    """Place the box's top-left corner, clamped to the unit square."""
    return update_annotation(edl, annotation_id, {"x": _clamp01(x), "y": _clamp01(y)})
