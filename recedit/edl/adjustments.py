from __future__ import annotations

from dataclasses import replace
from typing import Any

from .models import OVERLAY_POSITIONS, ColorCorrection, EditDecisionList
from .results import EditResult, RejectReason, applied, rejected


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(value)))


def _apply(edl: EditDecisionList, section: str, **changes: Any) -> EditResult[EditDecisionList]:
    current = getattr(edl, section)
    updated = replace(current, **changes)
    if updated == current:
        return rejected(edl, RejectReason.NO_CHANGE)
    return applied(replace(edl, **{section: updated}))


# --- camera overlay ---
def set_overlay_position(edl: EditDecisionList, position: str) -> EditResult[EditDecisionList]:
    if position not in OVERLAY_POSITIONS:
        raise ValueError(f"unknown overlay position: {position!r}")
    return _apply(edl, "camera_overlay", position=position)


def set_overlay_scale(edl: EditDecisionList, scale: float) -> EditResult[EditDecisionList]:
    return _apply(edl, "camera_overlay", scale=_clamp(scale, 0.1, 0.6))


def set_overlay_margin(edl: EditDecisionList, margin: float) -> EditResult[EditDecisionList]:
    return _apply(edl, "camera_overlay", margin=int(round(_clamp(margin, 0, 100))))


def set_overlay_custom_position(edl: EditDecisionList, x: float, y: float) -> EditResult[EditDecisionList]:
    return _apply(edl, "camera_overlay", position="custom", custom_x=_clamp(x, 0, 1), custom_y=_clamp(y, 0, 1))


# --- audio mix ---
def set_system_volume(edl: EditDecisionList, volume: float) -> EditResult[EditDecisionList]:
    return _apply(edl, "audio_mix", system_volume=_clamp(volume, 0, 2))


def set_microphone_volume(edl: EditDecisionList, volume: float) -> EditResult[EditDecisionList]:
    return _apply(edl, "audio_mix", microphone_volume=_clamp(volume, 0, 2))


def set_microphone_noise_gate(edl: EditDecisionList, enabled: bool) -> EditResult[EditDecisionList]:
    return _apply(edl, "audio_mix", microphone_noise_gate=bool(enabled))


# --- color correction ---
def set_brightness(edl: EditDecisionList, value: float) -> EditResult[EditDecisionList]:
    return _apply(edl, "color_correction", brightness=_clamp(value, -1, 1))


def set_contrast(edl: EditDecisionList, value: float) -> EditResult[EditDecisionList]:
    return _apply(edl, "color_correction", contrast=_clamp(value, 0.5, 2))


def set_saturation(edl: EditDecisionList, value: float) -> EditResult[EditDecisionList]:
    return _apply(edl, "color_correction", saturation=_clamp(value, 0, 2))


def reset_color_correction(edl: EditDecisionList) -> EditResult[EditDecisionList]:
    defaults = ColorCorrection()
    return _apply(
        edl,
        "color_correction",
        brightness=defaults.brightness,
        contrast=defaults.contrast,
        saturation=defaults.saturation,
    )


ADJUSTMENTS = {
    "overlay_position": set_overlay_position,
    "overlay_scale": set_overlay_scale,
    "overlay_margin": set_overlay_margin,
    "system_volume": set_system_volume,
    "microphone_volume": set_microphone_volume,
    "microphone_noise_gate": set_microphone_noise_gate,
    "brightness": set_brightness,
    "contrast": set_contrast,
    "saturation": set_saturation,
}
