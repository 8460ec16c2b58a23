import itertools

import pytest

from recedit.edl.effects import (
    MIN_EFFECT_DURATION,
    SPEED_TRACK,
    ZOOM_TRACK,
    EditMode,
    add_speed,
    add_zoom,
    delete_zoom,
    set_global_speed,
    update_speed,
    update_zoom,
)
from recedit.edl.models import EditDecisionList, SpeedEffect, ZoomEffect
from recedit.edl.results import RejectReason


def _zoom(zid, start, end, scale=1.5):
    return ZoomEffect(id=zid, start_time=start, end_time=end, scale=scale)


def _edl(*zooms):
    return EditDecisionList(zoom=tuple(zooms))


def _assert_track_ok(track):
    for effect in track:
        assert effect.end_time - effect.start_time >= MIN_EFFECT_DURATION
    for a, b in itertools.combinations(track, 2):
        assert a.end_time <= b.start_time or b.end_time <= a.start_time


def test_add_zoom_rejects_start_inside_existing():
    edl = _edl(_zoom("a", 5, 10))
    result = add_zoom(edl, 6, 12, scale=2.0)
    assert not result.applied
    assert result.reason == RejectReason.START_INSIDE_EFFECT
    assert result.value is edl


def test_add_zoom_clips_end_to_next_start():
    edl = _edl(_zoom("a", 10, 15))
    result = add_zoom(edl, 5, 20, scale=2.0)
    assert result.applied
    created = next(z for z in result.value.zoom if z.id == result.created_id)
    assert (created.start_time, created.end_time) == (5, 10)
    assert created.scale == 2.0


def test_add_zoom_too_short_after_clipping():
    edl = _edl(_zoom("a", 10, 15))
    result = add_zoom(edl, 9.8, 12)
    assert result.reason == RejectReason.TOO_SHORT
    assert result.value is edl


def test_add_zoom_start_on_existing_end_is_allowed():
    edl = _edl(_zoom("a", 5, 10))
    result = add_zoom(edl, 10, 12)
    assert result.applied
    _assert_track_ok(result.value.zoom)


def test_add_rejects_non_positive_speed():
    edl = EditDecisionList()
    for bad in (0.0, -1.0, float("inf"), float("nan")):
        result = add_speed(edl, 0, 5, speed=bad)
        assert result.reason == RejectReason.INVALID_PAYLOAD


def test_add_unknown_payload_field_raises():
    with pytest.raises(ValueError):
        ZOOM_TRACK.add((), 0, 5, speed=2.0)


def test_move_aborts_on_overlap():
    edl = _edl(_zoom("a", 0, 5), _zoom("b", 10, 15))
    result = update_zoom(edl, "a", {"start_time": 8, "end_time": 13})
    assert result.reason == RejectReason.WOULD_OVERLAP
    assert result.value is edl


def test_move_aborts_when_swallowing_neighbour():
    edl = _edl(_zoom("a", 0, 2), _zoom("b", 10, 12))
    result = update_zoom(edl, "a", {"start_time": 8, "end_time": 14})
    assert result.reason == RejectReason.WOULD_OVERLAP


def test_move_into_free_space():
    edl = _edl(_zoom("a", 0, 5), _zoom("b", 10, 15))
    result = update_zoom(edl, "a", {"start_time": 20, "end_time": 25})
    assert result.applied
    moved = ZOOM_TRACK.find(result.value.zoom, "a")
    assert (moved.start_time, moved.end_time) == (20, 25)


def test_explicit_move_keeps_length_with_one_edge():
    edl = _edl(_zoom("a", 0, 5))
    result = update_zoom(edl, "a", {"start_time": 3}, mode=EditMode.MOVE)
    moved = ZOOM_TRACK.find(result.value.zoom, "a")
    assert (moved.start_time, moved.end_time) == (3, 8)


def test_resize_end_clamps_to_neighbour_start():
    edl = _edl(_zoom("a", 0, 5), _zoom("b", 10, 15))
    result = update_zoom(edl, "a", {"end_time": 12})
    assert result.applied
    resized = ZOOM_TRACK.find(result.value.zoom, "a")
    assert (resized.start_time, resized.end_time) == (0, 10)
    _assert_track_ok(result.value.zoom)


def test_resize_start_clamps_to_neighbour_end():
    edl = _edl(_zoom("a", 0, 5), _zoom("b", 10, 15))
    result = update_zoom(edl, "b", {"start_time": 3})
    resized = ZOOM_TRACK.find(result.value.zoom, "b")
    assert (resized.start_time, resized.end_time) == (5, 15)


def test_resize_mode_ignores_other_edge():
    edl = _edl(_zoom("a", 0, 5))
    result = update_zoom(edl, "a", {"start_time": 1, "end_time": 99}, mode=EditMode.RESIZE_START)
    resized = ZOOM_TRACK.find(result.value.zoom, "a")
    assert (resized.start_time, resized.end_time) == (1, 5)


def test_resize_below_minimum_is_rejected():
    edl = _edl(_zoom("a", 0, 5))
    result = update_zoom(edl, "a", {"end_time": 0.2})
    assert result.reason == RejectReason.TOO_SHORT
    assert result.value is edl


def test_patch_mode_changes_payload_only():
    edl = _edl(_zoom("a", 0, 5))
    result = update_zoom(edl, "a", {"scale": 2.5, "start_time": 3}, mode=EditMode.PATCH)
    updated = ZOOM_TRACK.find(result.value.zoom, "a")
    assert updated.scale == 2.5
    assert (updated.start_time, updated.end_time) == (0, 5)


def test_identical_update_is_no_change():
    edl = _edl(_zoom("a", 0, 5))
    result = update_zoom(edl, "a", {"scale": 1.5})
    assert result.reason == RejectReason.NO_CHANGE
    assert result.value is edl


def test_update_and_delete_unknown_id():
    edl = _edl(_zoom("a", 0, 5))
    assert update_zoom(edl, "nope", {"scale": 2.0}).reason == RejectReason.UNKNOWN_ID
    assert delete_zoom(edl, "nope").reason == RejectReason.UNKNOWN_ID


def test_update_speed_rejects_zero():
    edl = EditDecisionList(speed=(SpeedEffect(id="s", start_time=0, end_time=5, speed=2.0),))
    assert update_speed(edl, "s", {"speed": 0}).reason == RejectReason.INVALID_PAYLOAD


def test_tracks_are_independent():
    edl = add_zoom(EditDecisionList(), 0, 10).value
    result = add_speed(edl, 2, 8, speed=2.0)
    assert result.applied
    assert len(result.value.zoom) == 1
    assert len(result.value.speed) == 1


def test_global_speed_replaces_track():
    edl = add_speed(EditDecisionList(), 2, 8, speed=3.0).value
    result = set_global_speed(edl, 60.0, 1.5)
    assert [(s.start_time, s.end_time, s.speed) for s in result.value.speed] == [(0.0, 60.0, 1.5)]


def test_random_edits_keep_track_valid():
    track = ()
    starts = [0, 3, 7.5, 2, 12, 11, 20, 19.7, 25, 4]
    for i, start in enumerate(starts):
        result = SPEED_TRACK.add(track, start, start + 1 + (i % 4), speed=2.0)
        track = result.value
        _assert_track_ok(track)
    for effect in list(track):
        for patch in ({"start_time": effect.start_time - 3}, {"end_time": effect.end_time + 4}):
            track = SPEED_TRACK.update(track, effect.id, patch).value
            _assert_track_ok(track)
