import threading
import time

import pytest

from recedit.edl.drafts import DraftState, SpeedDraft
from recedit.edl.models import EditDecisionList, Segment, SpeedEffect, create_project
from recedit.edl.playback import PlaybackSynchronizer, SegmentSkipChecker, next_shuttle_step


def _sync(segments, speed=(), drafts=None):
    project = create_project("p", "/tmp/screen.mp4", 90.0, 1920, 1080)
    project = project.with_edits(EditDecisionList(segments=tuple(segments), speed=tuple(speed)))
    return PlaybackSynchronizer(lambda: project, drafts)


def test_shuttle_cycle():
    assert [next_shuttle_step(s) for s in (1, 2, 4)] == [2, 4, 1]


def test_check_and_skip_jumps_gap():
    sync = _sync([Segment("a", 0, 30), Segment("b", 30, 60, enabled=False), Segment("c", 60, 90)])
    sync.play()
    sync.seek(35)
    sync.check_and_skip()
    assert sync.cursor == 60
    assert sync.is_playing


def test_check_and_skip_stops_after_last_segment():
    sync = _sync([Segment("a", 0, 30), Segment("b", 30, 90, enabled=False)])
    sync.play()
    sync.seek(40)
    sync.check_and_skip()
    assert not sync.is_playing


def test_play_jumps_into_segment():
    sync = _sync([Segment("a", 0, 30, enabled=False), Segment("c", 60, 90)])
    sync.seek(10)
    sync.play()
    assert sync.cursor == 60


def test_effective_rate_is_capped():
    sync = _sync([Segment("a", 0, 90)], [SpeedEffect("f", 0, 90, 4.0)])
    sync.fast_forward()
    sync.fast_forward()
    assert sync.shuttle == 2
    assert sync.effective_rate() == 8.0
    sync.fast_forward()
    assert sync.effective_rate() == 8.0


def test_draft_speed_wins_for_selected_effect():
    drafts = DraftState()
    sync = _sync([Segment("a", 0, 90)], [SpeedEffect("f", 0, 90, 2.0)], drafts)
    assert sync.current_speed() == 2.0
    drafts.select("speed", "f")
    drafts.speed_draft = SpeedDraft(speed=3.0)
    assert sync.current_speed() == 3.0


def test_tick_advances_and_stops_at_end():
    sync = _sync([Segment("a", 0, 90)], [SpeedEffect("f", 0, 90, 2.0)])
    sync.play()
    assert sync.tick(1.0) == pytest.approx(2.0)
    sync.seek(89.5)
    sync.tick(1.0)
    assert sync.cursor == 90.0
    assert not sync.is_playing


def test_transport_steps_are_clamped():
    sync = _sync([Segment("a", 0, 90)])
    assert sync.skip_backward() == 0.0
    assert sync.skip_forward() == 5.0
    assert sync.step_frame(1) == pytest.approx(5.0 + 1 / 30)
    assert sync.step_frame(-1, coarse=True) == pytest.approx(5.0 + 1 / 30 - 10 / 30)
    assert sync.seek(500) == 90.0


def test_reverse_skip_pauses_and_resets_shuttle():
    sync = _sync([Segment("a", 0, 90)])
    sync.fast_forward()
    sync.fast_forward()
    sync.seek(20)
    assert sync.reverse_skip() == 15.0
    assert sync.shuttle == 1
    assert not sync.is_playing


def test_skip_checker_thread_skips_gap():
    sync = _sync([Segment("a", 0, 30, enabled=False), Segment("c", 60, 90)])
    sync.is_playing = True
    sync.cursor = 10.0
    checker = SegmentSkipChecker(sync, threading.Lock(), interval=0.01)
    checker.start()
    try:
        deadline = time.monotonic() + 2.0
        while sync.cursor != 60 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        checker.stop()
    assert sync.cursor == 60
    assert not checker.is_alive()


def test_unknown_tool_raises():
    with pytest.raises(ValueError):
        DraftState().toggle_tool("lasso")


def test_selecting_effect_clears_drafts():
    drafts = DraftState()
    drafts.select("speed", "f")
    drafts.speed_draft = SpeedDraft(speed=3.0)
    drafts.select("zoom", "z")
    assert drafts.speed_draft is None
    assert drafts.selected("zoom") == "z"
    assert drafts.selected("speed") is None
