from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum

from panda3d.core import LQuaternionf, LVector3f, NodePath

from tremor.common.diagnostics import DiagnosticLog
from tremor.config import DisturbanceConfig
from tremor.host.audio import AudioSink, NullAudioSink
from tremor.host.scheduler import TickScheduler
from tremor.host.targets import TargetResolver, TransformHandle
from tremor.shake.audio_gain import AudioGainMapper
from tremor.shake.envelope import EnvelopeCalculator
from tremor.shake.noise import CoherentNoise
from tremor.shake.signals import SignalComposer, TiltSample
from tremor.shake.smoothing import MotionSmoother, RestoreTween, tilt_quat

logger = logging.getLogger(__name__)

PHASE_OFFSET_RANGE = 1000.0


class EnginePhase(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    RESTORING = "restoring"
    COMPLETED = "completed"


@dataclass
class EngineState:
    phase: EnginePhase = EnginePhase.IDLE
    disabled: bool = False
    elapsed_active: float = 0.0
    phase_offset: float = 0.0
    intensity: float = 0.0
    raw_tilt: TiltSample = field(default_factory=lambda: TiltSample(pitch=0.0, roll=0.0))
    baseline_pos: LVector3f | None = None
    baseline_quat: LQuaternionf | None = None
    applied_pos: LVector3f | None = None
    applied_quat: LQuaternionf | None = None
    audio_stopped: bool = False


def _finite_vec(v: LVector3f) -> bool:
    return math.isfinite(float(v.x)) and math.isfinite(float(v.y)) and math.isfinite(float(v.z))


def _finite_quat(q: LQuaternionf) -> bool:
    return all(math.isfinite(float(q[i])) for i in range(4))


class ShakeEngine:
    """
    One-shot earthquake shake for a single target transform.

    Lifecycle: idle -> scheduled (arm) -> active (after `startup_delay`) -> restoring
    (after `total_duration`, or `stop()`) -> completed. Completed is terminal: the
    target sits exactly on its baseline pose and further ticks do nothing.

    Every active tick runs envelope -> signals -> smoothing -> audio gain, then writes
    `baseline + offset` to the target. The target is assumed to be owned by this
    engine alone while it runs.
    """

    def __init__(
        self,
        cfg: DisturbanceConfig,
        *,
        scheduler: TickScheduler,
        target: TransformHandle | NodePath | None = None,
        resolver: TargetResolver | None = None,
        audio: AudioSink | None = None,
        diagnostics: DiagnosticLog | None = None,
        rng: random.Random | None = None,
        noise: CoherentNoise | None = None,
    ) -> None:
        self._cfg = cfg
        self._scheduler = scheduler
        self._explicit_target = target
        self._resolver = resolver if resolver is not None else TargetResolver()
        self._audio: AudioSink = audio if audio is not None else NullAudioSink()
        self._diag = diagnostics if diagnostics is not None else DiagnosticLog()
        self._rng = rng if rng is not None else random.Random()
        self._noise = noise if noise is not None else CoherentNoise()

        self._target: TransformHandle | None = None
        self._state = EngineState()
        self._envelope = EnvelopeCalculator(cfg, noise=self._noise)
        self._signals = SignalComposer(cfg, noise=self._noise)
        self._smoother = MotionSmoother(rate=float(cfg.smoothing_rate), rotation_ratio=float(cfg.rotation_smoothing_ratio))
        self._gain = AudioGainMapper(cfg)
        self._restore: RestoreTween | None = None

    # --- Queries (pure reads, safe from any phase) ---

    @property
    def config(self) -> DisturbanceConfig:
        return self._cfg

    @property
    def diagnostics(self) -> DiagnosticLog:
        return self._diag

    @property
    def phase(self) -> EnginePhase:
        return self._state.phase

    @property
    def disabled(self) -> bool:
        return bool(self._state.disabled)

    @property
    def target(self) -> TransformHandle | None:
        return self._target

    @property
    def phase_offset(self) -> float:
        return float(self._state.phase_offset)

    def current_intensity(self) -> float:
        if self._state.phase != EnginePhase.ACTIVE:
            return 0.0
        return float(self._state.intensity)

    def is_active(self) -> bool:
        return self._state.phase == EnginePhase.ACTIVE

    def is_completed(self) -> bool:
        return self._state.phase == EnginePhase.COMPLETED

    def elapsed_active_time(self) -> float:
        if self._state.phase != EnginePhase.ACTIVE:
            return 0.0
        return float(self._state.elapsed_active)

    def remaining_active_time(self) -> float:
        if self._state.phase != EnginePhase.ACTIVE:
            return 0.0
        return max(0.0, float(self._cfg.total_duration) - float(self._state.elapsed_active))

    def envelope_phase(self) -> str | None:
        """Current rise/peak/fall segment while active, else None."""

        if self._state.phase != EnginePhase.ACTIVE:
            return None
        return self._envelope.phase_at(self._state.elapsed_active)

    def displacement(self) -> LVector3f:
        """Smoothed displacement currently applied on top of the baseline."""

        return self._smoother.displacement

    def rotation(self) -> LQuaternionf:
        return self._smoother.rotation

    def raw_tilt(self) -> TiltSample:
        return self._state.raw_tilt

    def gain(self) -> float:
        return float(self._gain.gain)

    def baseline(self) -> tuple[LVector3f, LQuaternionf] | None:
        st = self._state
        if st.baseline_pos is None or st.baseline_quat is None:
            return None
        return LVector3f(st.baseline_pos), LQuaternionf(st.baseline_quat)

    # --- Lifecycle ---

    def arm(self, *, phase_offset: float | None = None) -> bool:
        """
        Resolve the target, capture its baseline pose and schedule the start.

        A missing target or an invalid config disables the engine for good.
        """

        st = self._state
        if st.phase == EnginePhase.COMPLETED:
            self._diag.warning(context="engine.arm", message="Shake already ran; engine does not re-arm")
            return False
        if st.disabled or st.phase != EnginePhase.IDLE:
            logger.debug("Ignoring arm() in phase %s (disabled=%s)", st.phase.value, st.disabled)
            return False

        target = self._resolver.resolve(
            explicit=self._explicit_target,
            name=self._cfg.target_name,
            fallbacks=self._cfg.fallback_target_names,
        )
        if target is None:
            names = ", ".join([self._cfg.target_name, *self._cfg.fallback_target_names])
            self._disable(f"No shake target found (tried: {names}); assign one explicitly")
            return False

        problems = self._cfg.problems()
        if problems:
            self._disable("Invalid disturbance config: " + "; ".join(problems))
            return False

        base_pos = target.get_pos()
        base_quat = target.get_quat()
        if not (_finite_vec(base_pos) and _finite_quat(base_quat)):
            self._disable(f"Target {target.name!r} has a non-finite pose")
            return False

        self._target = target
        st.baseline_pos = LVector3f(base_pos)
        st.baseline_quat = LQuaternionf(base_quat)
        st.applied_pos = LVector3f(base_pos)
        st.applied_quat = LQuaternionf(base_quat)
        offset = float(phase_offset) if phase_offset is not None else self._rng.uniform(0.0, PHASE_OFFSET_RANGE)
        st.phase_offset = offset
        self._envelope.set_phase_offset(offset)
        self._signals.set_phase_offset(offset)
        self._smoother.reset()
        self._audio.set_volume(0.0)

        st.phase = EnginePhase.SCHEDULED
        self._scheduler.schedule_once(max(0.0, float(self._cfg.startup_delay)), self._on_start_due)
        self._scheduler.tick_each_frame(self.tick)
        logger.info(
            "Shake scheduled in %.1fs on %r (baseline %s)",
            float(self._cfg.startup_delay),
            target.name,
            tuple(round(float(c), 4) for c in base_pos),
        )
        return True

    def _on_start_due(self) -> None:
        if self._state.phase == EnginePhase.SCHEDULED:
            self.start()

    def start(self) -> bool:
        st = self._state
        if st.phase == EnginePhase.COMPLETED:
            self._diag.warning(context="engine.start", message="Shake already ran; refusing to start again")
            return False
        if st.disabled:
            return False
        if st.phase != EnginePhase.SCHEDULED:
            logger.debug("Ignoring start() in phase %s", st.phase.value)
            return False

        st.phase = EnginePhase.ACTIVE
        st.elapsed_active = 0.0
        st.intensity = self._envelope.intensity(0.0)
        self._audio.play()
        logger.info("Shake started (%.1fs, peak intensity %.4f)", float(self._cfg.total_duration), float(self._cfg.peak_intensity))
        return True

    def stop(self) -> bool:
        """Cut the active phase short and ease back to baseline. No-op outside `active`."""

        if self._state.phase != EnginePhase.ACTIVE:
            return False
        self._begin_restore(reason="stopped")
        return True

    def tick(self, dt: float) -> bool:
        """
        Advance one frame. Returns False once the engine no longer needs ticks.
        """

        st = self._state
        if st.disabled or st.phase == EnginePhase.COMPLETED:
            return False
        frame_dt = float(dt)
        if not math.isfinite(frame_dt) or frame_dt < 0.0:
            frame_dt = 0.0

        if st.phase == EnginePhase.ACTIVE:
            self._tick_active(frame_dt)
            return True
        if st.phase == EnginePhase.RESTORING:
            self._tick_restoring(frame_dt)
            return st.phase != EnginePhase.COMPLETED
        return True

    def _tick_active(self, dt: float) -> None:
        st = self._state
        cfg = self._cfg
        st.elapsed_active += dt
        t = min(float(st.elapsed_active), float(cfg.total_duration))
        st.intensity = self._envelope.intensity(t)

        raw_disp = self._signals.raw_displacement(t, st.intensity)
        st.raw_tilt = self._signals.raw_rotation(t, st.intensity)
        if _finite_vec(raw_disp):
            self._smoother.step(dt=dt, target_displacement=raw_disp, target_rotation=tilt_quat(st.raw_tilt))
        self._apply_offset()

        self._audio.set_volume(self._gain.update(dt=dt, intensity=st.intensity))

        if st.elapsed_active >= float(cfg.total_duration):
            self._begin_restore(reason="finished")

    def _apply_offset(self) -> None:
        st = self._state
        assert st.baseline_pos is not None and st.baseline_quat is not None
        pos = LVector3f(st.baseline_pos) + self._smoother.displacement
        # Tilt is applied in the target's local frame.
        quat = self._smoother.rotation * st.baseline_quat
        if not (_finite_vec(pos) and _finite_quat(quat)):
            self._smoother.reset()
            pos = LVector3f(st.baseline_pos)
            quat = LQuaternionf(st.baseline_quat)
        self._write_pose(pos, quat)

    def _write_pose(self, pos: LVector3f, quat: LQuaternionf) -> None:
        st = self._state
        assert self._target is not None
        self._target.set_pose(pos, quat)
        st.applied_pos = LVector3f(pos)
        st.applied_quat = LQuaternionf(quat)

    def _begin_restore(self, *, reason: str) -> None:
        st = self._state
        assert st.baseline_pos is not None and st.baseline_quat is not None
        st.phase = EnginePhase.RESTORING
        self._restore = RestoreTween(
            start_pos=st.applied_pos if st.applied_pos is not None else st.baseline_pos,
            start_quat=st.applied_quat if st.applied_quat is not None else st.baseline_quat,
            end_pos=st.baseline_pos,
            end_quat=st.baseline_quat,
            duration=float(self._cfg.restore_duration),
        )
        self._gain.begin_fade()
        logger.info("Shake %s after %.2fs; restoring baseline over %.1fs", reason, float(st.elapsed_active), float(self._cfg.restore_duration))

    def _tick_restoring(self, dt: float) -> None:
        assert self._restore is not None
        if not self._restore.done:
            pos, quat = self._restore.step(dt)
            self._write_pose(pos, quat)

        if not self._state.audio_stopped:
            self._audio.set_volume(self._gain.update_fade(dt=dt))
            if self._gain.fade_done:
                self._stop_audio()

        # The pose tween and the audio fade run independently; both must finish.
        if self._restore.done and self._state.audio_stopped:
            self._complete()

    def _stop_audio(self) -> None:
        self._audio.stop()
        self._gain.finish()
        self._audio.set_volume(self._gain.gain)
        self._state.audio_stopped = True

    def _complete(self) -> None:
        st = self._state
        assert st.baseline_pos is not None and st.baseline_quat is not None
        self._write_pose(LVector3f(st.baseline_pos), LQuaternionf(st.baseline_quat))
        self._smoother.reset()
        st.intensity = 0.0
        st.raw_tilt = TiltSample(pitch=0.0, roll=0.0)
        st.phase = EnginePhase.COMPLETED
        logger.info("Shake completed; target back on baseline")

    def _disable(self, message: str) -> None:
        self._state.disabled = True
        self._diag.error(context="engine.arm", message=message)


__all__ = ["EnginePhase", "EngineState", "PHASE_OFFSET_RANGE", "ShakeEngine"]
