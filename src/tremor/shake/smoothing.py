from __future__ import annotations

import math

from panda3d.core import LQuaternionf, LVecBase3f, LVector3f

from tremor.shake.envelope import smoothstep
from tremor.shake.signals import TiltSample


def blend_alpha(*, rate: float, dt: float) -> float:
    """Frame-rate independent exponential blend factor for one tick."""

    frame_dt = float(dt)
    if not math.isfinite(frame_dt) or frame_dt <= 0.0:
        return 0.0
    hz = max(0.0, float(rate))
    if hz <= 0.0:
        return 0.0
    return max(0.0, min(1.0, 1.0 - math.exp(-hz * frame_dt)))


def lerp_vec(a: LVector3f, b: LVector3f, t: float) -> LVector3f:
    tt = max(0.0, min(1.0, float(t)))
    return LVector3f(
        float(a.x) + (float(b.x) - float(a.x)) * tt,
        float(a.y) + (float(b.y) - float(a.y)) * tt,
        float(a.z) + (float(b.z) - float(a.z)) * tt,
    )


def tilt_quat(tilt: TiltSample) -> LQuaternionf:
    q = LQuaternionf()
    q.setHpr(LVecBase3f(0.0, float(tilt.pitch), float(tilt.roll)))
    return q


def slerp_quat(a: LQuaternionf, b: LQuaternionf, t: float) -> LQuaternionf:
    tt = max(0.0, min(1.0, float(t)))
    ar, ai, aj, ak = float(a.getR()), float(a.getI()), float(a.getJ()), float(a.getK())
    br, bi, bj, bk = float(b.getR()), float(b.getI()), float(b.getJ()), float(b.getK())
    dot = ar * br + ai * bi + aj * bj + ak * bk
    # Take the short way round.
    if dot < 0.0:
        br, bi, bj, bk = -br, -bi, -bj, -bk
        dot = -dot
    if dot > 0.9995:
        s0 = 1.0 - tt
        s1 = tt
    else:
        theta0 = math.acos(max(-1.0, min(1.0, dot)))
        sin0 = math.sin(theta0)
        s0 = math.sin((1.0 - tt) * theta0) / sin0
        s1 = math.sin(tt * theta0) / sin0
    out = LQuaternionf(s0 * ar + s1 * br, s0 * ai + s1 * bi, s0 * aj + s1 * bj, s0 * ak + s1 * bk)
    out.normalize()
    return out


class MotionSmoother:
    """
    Exponential smoothing of raw shake offsets.

    Rotation settles at `rate * rotation_ratio` so tilt trails the displacement slightly.
    """

    def __init__(self, *, rate: float, rotation_ratio: float = 0.7) -> None:
        self._rate = max(0.0, float(rate))
        self._rotation_ratio = max(0.0, float(rotation_ratio))
        self._disp = LVector3f(0, 0, 0)
        self._rot = LQuaternionf.identQuat()

    @property
    def displacement(self) -> LVector3f:
        return LVector3f(self._disp)

    @property
    def rotation(self) -> LQuaternionf:
        return LQuaternionf(self._rot)

    def reset(self) -> None:
        self._disp = LVector3f(0, 0, 0)
        self._rot = LQuaternionf.identQuat()

    def step(self, *, dt: float, target_displacement: LVector3f, target_rotation: LQuaternionf) -> None:
        pos_alpha = blend_alpha(rate=self._rate, dt=dt)
        rot_alpha = blend_alpha(rate=self._rate * self._rotation_ratio, dt=dt)
        if pos_alpha > 0.0:
            self._disp = lerp_vec(self._disp, target_displacement, pos_alpha)
        if rot_alpha > 0.0:
            self._rot = slerp_quat(self._rot, target_rotation, rot_alpha)


class RestoreTween:
    """Finite smoothstep interpolation back to a fixed pose; lands exactly on it."""

    def __init__(
        self,
        *,
        start_pos: LVector3f,
        start_quat: LQuaternionf,
        end_pos: LVector3f,
        end_quat: LQuaternionf,
        duration: float,
    ) -> None:
        self._start_pos = LVector3f(start_pos)
        self._start_quat = LQuaternionf(start_quat)
        self._end_pos = LVector3f(end_pos)
        self._end_quat = LQuaternionf(end_quat)
        self._duration = max(0.0, float(duration))
        self._elapsed = 0.0

    @property
    def done(self) -> bool:
        return self._elapsed >= self._duration

    @property
    def elapsed(self) -> float:
        return float(self._elapsed)

    def step(self, dt: float) -> tuple[LVector3f, LQuaternionf]:
        frame_dt = float(dt)
        if math.isfinite(frame_dt) and frame_dt > 0.0:
            self._elapsed += frame_dt
        if self.done:
            return LVector3f(self._end_pos), LQuaternionf(self._end_quat)
        s = smoothstep(self._elapsed / self._duration)
        return lerp_vec(self._start_pos, self._end_pos, s), slerp_quat(self._start_quat, self._end_quat, s)


__all__ = ["MotionSmoother", "RestoreTween", "blend_alpha", "lerp_vec", "slerp_quat", "tilt_quat"]
