from __future__ import annotations

import math

from tremor.config import DisturbanceConfig
from tremor.shake.smoothing import blend_alpha


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, float(v)))


class AudioGainMapper:
    """
    Envelope-driven rumble gain.

    While active the gain chases `target_gain(intensity)`; once the shake ends it
    fades linearly to silence over `audio_fade_duration`, then parks at the
    configured minimum gain.
    """

    def __init__(self, cfg: DisturbanceConfig) -> None:
        self._cfg = cfg
        self._gain = 0.0
        self._fading = False
        self._fade_from = 0.0
        self._fade_elapsed = 0.0
        self._fade_done = False

    @property
    def gain(self) -> float:
        return float(self._gain)

    @property
    def fading(self) -> bool:
        return bool(self._fading)

    @property
    def fade_done(self) -> bool:
        return bool(self._fade_done)

    def target_gain(self, intensity: float) -> float:
        cfg = self._cfg
        span = float(cfg.peak_intensity) - float(cfg.initial_intensity)
        if not math.isfinite(span) or abs(span) <= 1e-12:
            frac = 0.0
        else:
            frac = _clamp01((float(intensity) - float(cfg.initial_intensity)) / span)
        lo = float(cfg.audio_min_gain)
        hi = float(cfg.audio_max_gain)
        return lo + (hi - lo) * frac

    def update(self, *, dt: float, intensity: float) -> float:
        if self._fading:
            return self.update_fade(dt=dt)
        alpha = blend_alpha(rate=float(self._cfg.audio_gain_rate), dt=dt)
        self._gain += (self.target_gain(intensity) - self._gain) * alpha
        return float(self._gain)

    def begin_fade(self) -> None:
        if self._fading or self._fade_done:
            return
        self._fading = True
        self._fade_from = float(self._gain)
        self._fade_elapsed = 0.0

    def update_fade(self, *, dt: float) -> float:
        """Advance the fade-out; returns the current gain (0.0 once finished)."""

        if not self._fading:
            return float(self._gain)
        frame_dt = float(dt)
        if math.isfinite(frame_dt) and frame_dt > 0.0:
            self._fade_elapsed += frame_dt
        duration = max(0.0, float(self._cfg.audio_fade_duration))
        if duration <= 0.0 or self._fade_elapsed >= duration:
            self._gain = 0.0
            self._fading = False
            self._fade_done = True
            return 0.0
        self._gain = self._fade_from * (1.0 - self._fade_elapsed / duration)
        return float(self._gain)

    def finish(self) -> None:
        """Stop fading and park the gain at the configured starting gain."""

        self._fading = False
        self._fade_done = True
        self._gain = float(self._cfg.audio_min_gain)


__all__ = ["AudioGainMapper"]
