"""
Source time <-> edited time.

The edited timeline is the enabled segments played back to back, each one
stretched or squeezed by the speed effects inside it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .models import Project, Segment, SpeedEffect

# Speeds this close to 1.0 are treated as normal speed.
IDENTITY_SPEED_TOLERANCE = 0.01


@dataclass(frozen=True)
class SegmentSpan:
    segment_id: str
    source_start: float
    source_end: float
    edited_start: float
    edited_duration: float

    def contains(self, t: float) -> bool:
        return self.source_start <= t <= self.source_end


def enabled_segments(project: Project) -> List[Segment]:
    return sorted((s for s in project.edits.segments if s.enabled), key=lambda s: s.start_time)


def effective_speed_effects(speed: Sequence[SpeedEffect]) -> List[SpeedEffect]:
    return [e for e in speed if e.speed > 0 and abs(e.speed - 1.0) > IDENTITY_SPEED_TOLERANCE]


def speed_at(effects: Sequence[SpeedEffect], t: float) -> float:
    for effect in effects:
        if effect.start_time <= t < effect.end_time:
            return effect.speed
    return 1.0


def adjusted_duration(start: float, end: float, effects: Sequence[SpeedEffect]) -> float:
    """Playback length of source ``[start, end)`` under ``effects``."""
    if not effects:
        return end - start
    breakpoints = {start, end}
    for effect in effects:
        if start < effect.start_time < end:
            breakpoints.add(effect.start_time)
        if start < effect.end_time < end:
            breakpoints.add(effect.end_time)
    points = sorted(breakpoints)
    return sum((b - a) / speed_at(effects, a) for a, b in zip(points, points[1:]))


@dataclass(frozen=True)
class TimelineMetrics:
    source_duration: float
    spans: Tuple[SegmentSpan, ...]
    total: float

    @classmethod
    def compute(cls, project: Project) -> "TimelineMetrics":
        duration = project.duration
        effects = effective_speed_effects(project.edits.speed)
        spans: List[SegmentSpan] = []
        offset = 0.0
        for segment in enabled_segments(project):
            start = max(0.0, min(segment.start_time, duration))
            end = max(0.0, min(segment.end_time, duration))
            if end - start <= 0:
                continue
            length = adjusted_duration(start, end, effects)
            spans.append(SegmentSpan(segment.id, start, end, offset, length))
            offset += length
        return cls(source_duration=duration, spans=tuple(spans), total=offset)

    @property
    def edited_duration(self) -> float:
        # An all-cut timeline still shows the source length rather than zero.
        return self.total or self.source_duration

    def source_to_edited_time(self, t: float) -> float:
        for span in self.spans:
            if span.contains(t):
                return span.edited_start + (t - span.source_start)
        return self.total


def compute_edited_duration(project: Project) -> float:
    return TimelineMetrics.compute(project).edited_duration


def source_to_edited_time(project: Project, t: float) -> float:
    return TimelineMetrics.compute(project).source_to_edited_time(t)
