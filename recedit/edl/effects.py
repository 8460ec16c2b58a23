"""
Non-overlapping effect tracks.

Zoom and speed effects live on independent tracks with the same rules: no two
effects on a track overlap, and every effect lasts at least
``MIN_EFFECT_DURATION`` seconds. ``EffectRangeManager`` implements the rules
once over any frozen dataclass with ``id``, ``start_time`` and ``end_time``;
``ZOOM_TRACK`` and ``SPEED_TRACK`` are its two instances.

Operations never raise on an invariant violation. They return an
``EditResult`` whose ``value`` is the untouched input track.
"""

from __future__ import annotations

import logging
import math
from dataclasses import fields, replace
from enum import Enum
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Tuple, Type, TypeVar

from .models import EditDecisionList, SpeedEffect, ZoomEffect, new_id
from .results import EditResult, RejectReason, applied, rejected

logger = logging.getLogger(__name__)

MIN_EFFECT_DURATION = 0.5

E = TypeVar("E")
Track = Tuple[Any, ...]


class EditMode(str, Enum):
    MOVE = "move"
    RESIZE_START = "resize_start"
    RESIZE_END = "resize_end"
    PATCH = "patch"


def _is_finite(*values: Any) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


def _positive_field(name: str) -> Callable[[Mapping[str, Any]], bool]:
    def check(payload: Mapping[str, Any]) -> bool:
        if name not in payload:
            return True
        value = payload[name]
        return _is_finite(value) and value > 0

    return check


class EffectRangeManager(Generic[E]):
    """Overlap-free add/update/delete for one kind of effect track."""

    def __init__(
        self,
        effect_type: Type[E],
        validate_payload: Optional[Callable[[Mapping[str, Any]], bool]] = None,
        name: Optional[str] = None,
    ) -> None:
        self.effect_type = effect_type
        self.name = name or effect_type.__name__
        self._validate_payload = validate_payload or (lambda payload: True)
        self._payload_fields = tuple(
            f.name for f in fields(effect_type) if f.name not in ("id", "start_time", "end_time")
        )

    @property
    def payload_fields(self) -> Tuple[str, ...]:
        return self._payload_fields

    def _check_payload_keys(self, payload: Mapping[str, Any]) -> None:
        unknown = set(payload) - set(self._payload_fields)
        if unknown:
            raise ValueError(f"unknown {self.name} fields: {sorted(unknown)}")

    def find(self, track: Track, effect_id: str) -> Optional[E]:
        for effect in track:
            if effect.id == effect_id:
                return effect
        return None

    def add(self, track: Track, start: float, end: float, **payload: Any) -> EditResult[Track]:
        """
        Insert ``[start, end)``, clipping ``end`` to the next effect's start.

        Rejected when ``start`` lies inside an existing effect or when the
        clipped interval is shorter than the minimum duration.
        """
        self._check_payload_keys(payload)
        if not _is_finite(start, end) or not self._validate_payload(payload):
            return rejected(track, RejectReason.INVALID_PAYLOAD)

        adjusted_end = end
        for existing in track:
            if existing.start_time <= start < existing.end_time:
                return rejected(track, RejectReason.START_INSIDE_EFFECT)
            if start < existing.start_time < adjusted_end:
                adjusted_end = existing.start_time

        if adjusted_end - start < MIN_EFFECT_DURATION:
            return rejected(track, RejectReason.TOO_SHORT)

        effect = self.effect_type(id=new_id(), start_time=start, end_time=adjusted_end, **payload)
        return applied(track + (effect,), created_id=effect.id)

    def update(
        self,
        track: Track,
        effect_id: str,
        patch: Mapping[str, Any],
        mode: Optional[EditMode] = None,
    ) -> EditResult[Track]:
        """
        Apply ``patch`` to one effect.

        ``mode`` says what the caller is doing. Without it, a patch carrying
        both ``start_time`` and ``end_time`` is treated as a move and anything
        else as a single-edge resize. A move aborts on any overlap; a resize
        clamps the moving edge against its neighbours.
        """
        patch = dict(patch)
        new_start = patch.pop("start_time", None)
        new_end = patch.pop("end_time", None)
        self._check_payload_keys(patch)

        current = self.find(track, effect_id)
        if current is None:
            return rejected(track, RejectReason.UNKNOWN_ID)

        if mode is None:
            mode = EditMode.MOVE if new_start is not None and new_end is not None else None
        if mode == EditMode.MOVE:
            length = current.end_time - current.start_time
            if new_start is None and new_end is not None:
                new_start = new_end - length
            elif new_end is None and new_start is not None:
                new_end = new_start + length
        elif mode == EditMode.RESIZE_START:
            new_end = None
        elif mode == EditMode.RESIZE_END:
            new_start = None
        elif mode == EditMode.PATCH:
            new_start = new_end = None

        moving_start = new_start is not None and new_end is None
        moving_end = new_end is not None and new_start is None
        start = current.start_time if new_start is None else new_start
        end = current.end_time if new_end is None else new_end

        if not _is_finite(start, end) or not self._validate_payload(patch):
            return rejected(track, RejectReason.INVALID_PAYLOAD)

        for other in track:
            if other.id == effect_id:
                continue
            if mode == EditMode.MOVE:
                swallows_other = start < other.start_time and end > other.end_time
                start_inside = other.start_time <= start < other.end_time
                end_inside = other.start_time < end <= other.end_time
                if swallows_other or start_inside or end_inside:
                    return rejected(track, RejectReason.WOULD_OVERLAP)
                continue

            if other.start_time <= start < other.end_time:
                start = other.end_time
            if other.start_time < end <= other.end_time:
                end = other.start_time
            if start < other.start_time and end > other.end_time:
                if moving_start:
                    start = max(start, other.end_time)
                elif moving_end:
                    end = min(end, other.start_time)

        if end - start < MIN_EFFECT_DURATION:
            return rejected(track, RejectReason.TOO_SHORT)

        updated = replace(current, start_time=start, end_time=end, **patch)
        if updated == current:
            return rejected(track, RejectReason.NO_CHANGE)
        return applied(tuple(updated if e.id == effect_id else e for e in track))

    def delete(self, track: Track, effect_id: str) -> EditResult[Track]:
        if self.find(track, effect_id) is None:
            return rejected(track, RejectReason.UNKNOWN_ID)
        return applied(tuple(e for e in track if e.id != effect_id))


ZOOM_TRACK: EffectRangeManager[ZoomEffect] = EffectRangeManager(ZoomEffect, _positive_field("scale"), name="zoom")
SPEED_TRACK: EffectRangeManager[SpeedEffect] = EffectRangeManager(SpeedEffect, _positive_field("speed"), name="speed")

TRACKS: Dict[str, EffectRangeManager[Any]] = {"zoom": ZOOM_TRACK, "speed": SPEED_TRACK}


def _on_edl(edl: EditDecisionList, track_name: str, result: EditResult[Track]) -> EditResult[EditDecisionList]:
    if not result.applied:
        logger.debug(f"{track_name} edit rejected: {result.reason.value}")
        return rejected(edl, result.reason)
    return applied(replace(edl, **{track_name: result.value}), created_id=result.created_id)


def add_zoom(edl: EditDecisionList, start: float, end: float, scale: float = 1.5, x: float = 0.0, y: float = 0.0) -> EditResult[EditDecisionList]:
    return _on_edl(edl, "zoom", ZOOM_TRACK.add(edl.zoom, start, end, scale=scale, x=x, y=y))


def update_zoom(edl: EditDecisionList, zoom_id: str, patch: Mapping[str, Any], mode: Optional[EditMode] = None) -> EditResult[EditDecisionList]:
    return _on_edl(edl, "zoom", ZOOM_TRACK.update(edl.zoom, zoom_id, patch, mode=mode))


def delete_zoom(edl: EditDecisionList, zoom_id: str) -> EditResult[EditDecisionList]:
    return _on_edl(edl, "zoom", ZOOM_TRACK.delete(edl.zoom, zoom_id))


def add_speed(edl: EditDecisionList, start: float, end: float, speed: float = 1.0) -> EditResult[EditDecisionList]:
    return _on_edl(edl, "speed", SPEED_TRACK.add(edl.speed, start, end, speed=speed))


def update_speed(edl: EditDecisionList, speed_id: str, patch: Mapping[str, Any], mode: Optional[EditMode] = None) -> EditResult[EditDecisionList]:
    return _on_edl(edl, "speed", SPEED_TRACK.update(edl.speed, speed_id, patch, mode=mode))


def delete_speed(edl: EditDecisionList, speed_id: str) -> EditResult[EditDecisionList]:
    return _on_edl(edl, "speed", SPEED_TRACK.delete(edl.speed, speed_id))


def set_global_speed(edl: EditDecisionList, duration: float, speed: float) -> EditResult[EditDecisionList]:
    """Replace the whole speed track with one effect spanning the source."""
    return _on_edl(edl, "speed", SPEED_TRACK.add((), 0.0, float(duration), speed=speed))
