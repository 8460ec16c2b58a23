from __future__ import annotations

import logging
from dataclasses import replace

from .models import EditDecisionList, Project, Segment, full_length_segment, new_id
from .results import EditResult, RejectReason, applied, rejected

logger = logging.getLogger(__name__)


def find_segment(edl: EditDecisionList, segment_id: str):
    return next((s for s in edl.segments if s.id == segment_id), None)


def cut_at(edl: EditDecisionList, time: float) -> EditResult[EditDecisionList]:
    """
    Split the enabled segment strictly containing ``time``. The left half keeps
    the segment id. Cutting on a boundary, in a gap or inside a disabled
    segment does nothing.
    """
    for index, segment in enumerate(edl.segments):
        if segment.enabled and segment.start_time < time < segment.end_time:
            left = replace(segment, end_time=time)
            right = Segment(id=new_id(), start_time=time, end_time=segment.end_time, enabled=True)
            segments = edl.segments[:index] + (left, right) + edl.segments[index + 1:]
            return applied(replace(edl, segments=segments), created_id=right.id)
    return rejected(edl, RejectReason.NOT_INSIDE_SEGMENT)


def toggle_segment(edl: EditDecisionList, segment_id: str) -> EditResult[EditDecisionList]:
    if find_segment(edl, segment_id) is None:
        return rejected(edl, RejectReason.UNKNOWN_ID)
    segments = tuple(replace(s, enabled=not s.enabled) if s.id == segment_id else s for s in edl.segments)
    return applied(replace(edl, segments=segments))


def delete_segment(edl: EditDecisionList, segment_id: str) -> EditResult[EditDecisionList]:
    """Remove a segment, refusing to remove the last one."""
    if find_segment(edl, segment_id) is None:
        return rejected(edl, RejectReason.UNKNOWN_ID)
    if len(edl.segments) <= 1:
        return rejected(edl, RejectReason.LAST_SEGMENT)
    return applied(replace(edl, segments=tuple(s for s in edl.segments if s.id != segment_id)))


def reconcile_duration(project: Project, actual_duration: float, tolerance: float = 0.1) -> Project:
    """
    Adopt the real media duration once it is known.

    Segments are clamped into ``[0, actual_duration]`` and empty ones dropped.
    Returns ``project`` itself when the durations already agree.
    """
    actual_duration = max(0.0, float(actual_duration))
    if abs(project.duration - actual_duration) <= tolerance:
        return project

    clamped = []
    for s in project.edits.segments:
        start = max(0.0, min(s.start_time, actual_duration))
        end = max(0.0, min(s.end_time, actual_duration))
        if end > start:
            clamped.append(replace(s, start_time=start, end_time=end))
    if not clamped:
        clamped.append(full_length_segment(actual_duration))

    logger.info(f"Reconciled duration {project.duration:.3f}s -> {actual_duration:.3f}s ({len(clamped)} segments kept)")
    edits = replace(project.edits, segments=tuple(clamped))
    return replace(project, duration=actual_duration, edits=edits)
