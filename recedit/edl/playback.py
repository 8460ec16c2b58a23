"""
Live play cursor over the source timeline.

The synchronizer owns no project data. It reads the live project through a
callable and recomputes what it needs, so edits are picked up on the next
frame.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, ContextManager, Optional, Sequence, TypeVar

from .drafts import DraftState
from .metrics import enabled_segments
from .models import Project

logger = logging.getLogger(__name__)

MAX_PLAYBACK_RATE = 8.0
SHUTTLE_STEPS = (1, 2, 4)
SKIP_SECONDS = 5.0
FRAME_RATE = 30
SKIP_CHECK_INTERVAL_SEC = 0.05

E = TypeVar("E")


def active_effect(track: Sequence[E], t: float) -> Optional[E]:
    """First effect on ``track`` whose ``[start, end)`` contains ``t``."""
    for effect in track:
        if effect.start_time <= t < effect.end_time:
            return effect
    return None


def next_shuttle_step(current: int) -> int:
    if current >= 4:
        return 1
    if current >= 2:
        return 4
    return 2


class PlaybackSynchronizer:
    def __init__(
        self,
        project: Callable[[], Project],
        drafts: Optional[DraftState] = None,
        max_rate: float = MAX_PLAYBACK_RATE,
        skip_seconds: float = SKIP_SECONDS,
        frame_rate: int = FRAME_RATE,
    ) -> None:
        self._project = project
        self.drafts = drafts or DraftState()
        self.max_rate = max_rate
        self.skip_seconds = skip_seconds
        self.frame_rate = frame_rate
        self.cursor = 0.0
        self.is_playing = False
        self.shuttle = 1

    @property
    def project(self) -> Project:
        return self._project()

    # --- derived state ---
    def active_zoom(self):
        return active_effect(self.project.edits.zoom, self.cursor)

    def active_speed(self):
        return active_effect(self.project.edits.speed, self.cursor)

    def current_speed(self) -> float:
        """Speed of the active speed effect, preferring a live draft for the selected one."""
        effect = self.active_speed()
        if effect is None:
            return 1.0
        draft = self.drafts.speed_draft
        if draft is not None and self.drafts.selected("speed") == effect.id:
            return draft.speed
        return effect.speed

    def current_zoom(self):
        """(scale, x, y) in effect at the cursor, with draft values for the selected zoom."""
        effect = self.active_zoom()
        if effect is None:
            return (1.0, 0.0, 0.0)
        draft = self.drafts.zoom_draft
        if draft is not None and self.drafts.selected("zoom") == effect.id:
            return (draft.scale, draft.x, draft.y)
        return (effect.scale, effect.x, effect.y)

    def effective_rate(self) -> float:
        return min(self.current_speed() * self.shuttle, self.max_rate)

    # --- segments ---
    def is_in_segment(self, t: float) -> bool:
        return any(s.start_time <= t < s.end_time for s in enabled_segments(self.project))

    def next_segment_start(self, t: float) -> Optional[float]:
        for segment in enabled_segments(self.project):
            if segment.start_time > t:
                return segment.start_time
        return None

    def check_and_skip(self) -> None:
        """
        Jump over a gap or disabled segment under the cursor; stop when no
        enabled segment remains ahead.
        """
        if not self.is_playing or not enabled_segments(self.project):
            return
        if self.is_in_segment(self.cursor):
            return
        next_start = self.next_segment_start(self.cursor)
        if next_start is None:
            logger.debug(f"No enabled segment after {self.cursor:.3f}s, stopping")
            self.is_playing = False
        else:
            logger.debug(f"Skipping gap {self.cursor:.3f}s -> {next_start:.3f}s")
            self.cursor = next_start

    # --- transport ---
    def seek(self, t: float) -> float:
        self.cursor = max(0.0, min(float(t), self.project.duration))
        return self.cursor

    def tick(self, elapsed: float) -> float:
        """Advance the cursor by ``elapsed`` wall-clock seconds of playback."""
        if not self.is_playing:
            return self.cursor
        self.cursor += elapsed * self.effective_rate()
        if self.cursor >= self.project.duration:
            self.cursor = self.project.duration
            self.is_playing = False
        return self.cursor

    def play(self) -> None:
        if not self.is_in_segment(self.cursor):
            segments = enabled_segments(self.project)
            next_start = self.next_segment_start(self.cursor)
            if next_start is not None:
                self.cursor = next_start
            elif segments:
                self.cursor = segments[0].start_time
        self.is_playing = True

    def pause(self) -> None:
        self.is_playing = False

    def toggle_play(self) -> bool:
        if self.is_playing:
            self.pause()
        else:
            self.play()
        return self.is_playing

    def skip_backward(self) -> float:
        return self.seek(self.cursor - self.skip_seconds)

    def skip_forward(self) -> float:
        return self.seek(self.cursor + self.skip_seconds)

    def step_frame(self, direction: int = 1, coarse: bool = False) -> float:
        step = (10 if coarse else 1) / self.frame_rate
        return self.seek(self.cursor + step * (1 if direction >= 0 else -1))

    # --- shuttle gestures ---
    def fast_forward(self) -> int:
        """Start playing at 1x, or cycle 1x -> 2x -> 4x -> 1x while playing."""
        if not self.is_playing:
            self.shuttle = 1
            self.play()
        else:
            self.shuttle = next_shuttle_step(self.shuttle)
        return self.shuttle

    def stop_gesture(self) -> None:
        self.shuttle = 1
        self.pause()

    def reverse_skip(self) -> float:
        self.shuttle = 1
        self.pause()
        return self.skip_backward()


class SegmentSkipChecker(threading.Thread):
    """
    Runs ``check_and_skip`` on a fixed cadence while started. Each check holds
    ``lock`` so it never interleaves with an edit.
    """

    def __init__(
        self,
        sync: PlaybackSynchronizer,
        lock: ContextManager,
        interval: float = SKIP_CHECK_INTERVAL_SEC,
    ) -> None:
        super().__init__(name="segment-skip-checker", daemon=True)
        self.sync = sync
        self.lock = lock
        self.interval = interval
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.wait(self.interval):
            with self.lock:
                self.sync.check_and_skip()

    def stop(self, timeout: Optional[float] = 1.0) -> None:
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)
