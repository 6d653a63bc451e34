from __future__ import annotations

import math

from tremor.config import EASING_QUADRATIC, DisturbanceConfig
from tremor.shake.noise import CoherentNoise


PHASE_RISE = "rise"
PHASE_PEAK = "peak"
PHASE_FALL = "fall"


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, float(v)))


def _lerp(a: float, b: float, t: float) -> float:
    return float(a) + (float(b) - float(a)) * float(t)


def smoothstep(p: float) -> float:
    x = _clamp01(p)
    return x * x * (3.0 - 2.0 * x)


def ease_in_quad(p: float) -> float:
    x = _clamp01(p)
    return x * x


def ease_out_quad(p: float) -> float:
    x = _clamp01(p)
    return 1.0 - (1.0 - x) * (1.0 - x)


def rise_ease(kind: str, p: float) -> float:
    if kind == EASING_QUADRATIC:
        return ease_in_quad(p)
    return smoothstep(p)


def fall_ease(kind: str, p: float) -> float:
    # Quadratic fall mirrors the rise in time: leaves the peak fast, lands slowly.
    if kind == EASING_QUADRATIC:
        return ease_out_quad(p)
    return smoothstep(p)


class EnvelopeCalculator:
    """Maps elapsed active time to shake intensity across rise / peak / fall."""

    def __init__(self, cfg: DisturbanceConfig, *, noise: CoherentNoise, phase_offset: float = 0.0) -> None:
        self._cfg = cfg
        self._noise = noise
        self._phase_offset = float(phase_offset)

    @property
    def phase_offset(self) -> float:
        return float(self._phase_offset)

    def set_phase_offset(self, value: float) -> None:
        self._phase_offset = float(value)

    def phase_at(self, t: float) -> str:
        cfg = self._cfg
        tt = self._clamp_time(t)
        rise = max(0.0, float(cfg.rise_duration))
        if tt < rise:
            return PHASE_RISE
        if tt < rise + max(0.0, float(cfg.peak_duration)):
            return PHASE_PEAK
        return PHASE_FALL

    def intensity(self, t: float) -> float:
        cfg = self._cfg
        tt = self._clamp_time(t)
        rise = max(0.0, float(cfg.rise_duration))
        peak_end = rise + max(0.0, float(cfg.peak_duration))
        initial = float(cfg.initial_intensity)
        peak = float(cfg.peak_intensity)

        if tt < rise:
            return _lerp(initial, peak, rise_ease(cfg.rise_easing, tt / rise))

        if tt < peak_end:
            jitter = self._noise.signed(tt * float(cfg.peak_jitter_rate), self._phase_offset)
            return peak * (1.0 + float(cfg.peak_jitter_band) * jitter)

        fall = max(0.0, float(cfg.fall_duration))
        progress = 1.0 if fall <= 0.0 else _clamp01((tt - peak_end) / fall)
        return _lerp(peak, initial, fall_ease(cfg.fall_easing, progress))

    def _clamp_time(self, t: float) -> float:
        tt = float(t)
        if not math.isfinite(tt):
            tt = 0.0
        return max(0.0, min(float(self._cfg.total_duration), tt))


__all__ = [
    "EnvelopeCalculator",
    "PHASE_FALL",
    "PHASE_PEAK",
    "PHASE_RISE",
    "ease_in_quad",
    "ease_out_quad",
    "fall_ease",
    "rise_ease",
    "smoothstep",
]
