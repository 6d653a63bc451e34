from __future__ import annotations

import math
from dataclasses import dataclass

from panda3d.core import LVector3f

from tremor.config import DisturbanceConfig
from tremor.shake.noise import CoherentNoise

# Domain offsets keep the vibration and tilt channels away from the base drift channels.
VIBRATION_DOMAIN_OFFSET = 500.0
ROTATION_DOMAIN_OFFSET = 100.0


@dataclass(frozen=True)
class TiltSample:
    """Tilt offsets in degrees. Heading is never perturbed."""

    pitch: float
    roll: float


def normalized_axis(axis: tuple[float, float, float]) -> tuple[float, float, float]:
    """Unit-length copy of `axis`, or zeros when it is degenerate."""

    try:
        x, y, z = (float(c) for c in axis)
    except (TypeError, ValueError):
        return (0.0, 0.0, 0.0)
    length = math.sqrt(x * x + y * y + z * z)
    if not math.isfinite(length) or length <= 1e-9:
        return (0.0, 0.0, 0.0)
    return (x / length, y / length, z / length)


class SignalComposer:
    """
    Raw (unsmoothed) shake signals for one engine run.

    Displacement sums three terms:
    - base drift: three coherent-noise channels at `base_frequency`
    - vibration: same channel layout at `vibration_frequency`, damped to read as texture
    - oscillation: one sinusoid along the configured axis

    Every term is weighted per axis (horizontal on X/Y, vertical on Z) and scaled by
    the envelope intensity. The per-run phase offset is folded into the time input.
    """

    def __init__(self, cfg: DisturbanceConfig, *, noise: CoherentNoise, phase_offset: float = 0.0) -> None:
        self._cfg = cfg
        self._noise = noise
        self._phase_offset = float(phase_offset)
        self._axis = normalized_axis(cfg.oscillation_axis)

    @property
    def phase_offset(self) -> float:
        return float(self._phase_offset)

    def set_phase_offset(self, value: float) -> None:
        self._phase_offset = float(value)

    def _weights(self) -> tuple[float, float, float]:
        h = float(self._cfg.horizontal_weight)
        return (h, h, float(self._cfg.vertical_weight))

    def base_term(self, t: float, intensity: float) -> LVector3f:
        u = (float(t) + self._phase_offset) * float(self._cfg.base_frequency)
        wx, wy, wz = self._weights()
        amp = float(intensity)
        return LVector3f(
            self._noise.signed(u, 0.0) * wx * amp,
            self._noise.signed(0.0, u) * wy * amp,
            self._noise.signed(u, u) * wz * amp,
        )

    def vibration_term(self, t: float, intensity: float) -> LVector3f:
        cfg = self._cfg
        if not bool(cfg.vibration_enabled):
            return LVector3f(0, 0, 0)
        v = (float(t) + self._phase_offset) * float(cfg.vibration_frequency)
        off = VIBRATION_DOMAIN_OFFSET
        wx, wy, wz = self._weights()
        amp = float(intensity) * float(cfg.vibration_intensity) * float(cfg.vibration_damping)
        return LVector3f(
            self._noise.signed(v, off) * wx * amp,
            self._noise.signed(off, v) * wy * amp,
            self._noise.signed(v, v + off) * wz * amp,
        )

    def oscillation_term(self, t: float, intensity: float) -> LVector3f:
        cfg = self._cfg
        if not bool(cfg.oscillation_enabled):
            return LVector3f(0, 0, 0)
        ax, ay, az = self._axis
        wave = math.sin((float(t) + self._phase_offset) * float(cfg.oscillation_frequency) * math.pi)
        amp = wave * float(intensity) * float(cfg.oscillation_intensity)
        wx, wy, wz = self._weights()
        return LVector3f(ax * amp * wx, ay * amp * wy, az * amp * wz)

    def raw_displacement(self, t: float, intensity: float) -> LVector3f:
        out = self.base_term(t, intensity)
        out += self.vibration_term(t, intensity)
        out += self.oscillation_term(t, intensity)
        return out

    def raw_rotation(self, t: float, intensity: float) -> TiltSample:
        cfg = self._cfg
        r = (float(t) + self._phase_offset) * float(cfg.base_frequency) * float(cfg.rotation_frequency_ratio)
        off = ROTATION_DOMAIN_OFFSET
        amp = float(intensity) * float(cfg.rotation_intensity) * float(cfg.rotation_amplitude_deg)
        return TiltSample(
            pitch=self._noise.signed(r, off) * amp,
            roll=self._noise.signed(off, r) * amp,
        )


__all__ = [
    "ROTATION_DOMAIN_OFFSET",
    "SignalComposer",
    "TiltSample",
    "VIBRATION_DOMAIN_OFFSET",
    "normalized_axis",
]
