from __future__ import annotations

import math
import random
from dataclasses import replace

from panda3d.core import LQuaternionf, LVecBase3f, LVector3f, NodePath

from tremor.common.diagnostics import LEVEL_ERROR, LEVEL_WARNING, DiagnosticLog
from tremor.config import PRESET_HYBRID, DisturbanceConfig
from tremor.host.audio import RecordingAudioSink
from tremor.host.scheduler import ManualScheduler
from tremor.host.targets import NodePathTarget, PoseTarget, TargetResolver
from tremor.shake.engine import PHASE_OFFSET_RANGE, EnginePhase, ShakeEngine


SHORT = replace(
    PRESET_HYBRID,
    startup_delay=1.0,
    total_duration=4.0,
    rise_duration=1.0,
    peak_duration=2.0,
    restore_duration=1.0,
    audio_fade_duration=0.5,
)


def _rig(
    cfg: DisturbanceConfig = PRESET_HYBRID,
    *,
    target: PoseTarget | None = None,
    resolver: TargetResolver | None = None,
    phase_offset: float = 321.0,
):
    sched = ManualScheduler()
    pose = target if target is not None else PoseTarget(name="Escenario", pos=LVector3f(0, 0, 0))
    audio = RecordingAudioSink()
    diag = DiagnosticLog()
    engine = ShakeEngine(
        cfg,
        scheduler=sched,
        target=pose if resolver is None else None,
        resolver=resolver,
        audio=audio,
        diagnostics=diag,
    )
    armed = engine.arm(phase_offset=phase_offset)
    return engine, sched, pose, audio, diag, armed


def test_arm_captures_baseline_and_schedules_start() -> None:
    engine, sched, pose, audio, diag, armed = _rig()

    assert armed
    assert engine.phase == EnginePhase.SCHEDULED
    assert engine.phase_offset == 321.0
    assert sched.pending() == 1
    assert sched.frame_callbacks() == 1
    assert audio.volume == 0.0
    assert audio.play_count == 0
    assert pose.writes == 0
    assert diag.items() == []

    sched.run_for(9.9)
    assert engine.phase == EnginePhase.SCHEDULED
    assert pose.writes == 0


def test_queries_read_zero_outside_active() -> None:
    engine = ShakeEngine(PRESET_HYBRID, scheduler=ManualScheduler(), target=PoseTarget())
    assert engine.phase == EnginePhase.IDLE
    assert engine.current_intensity() == 0.0
    assert engine.elapsed_active_time() == 0.0
    assert engine.remaining_active_time() == 0.0
    assert engine.envelope_phase() is None
    assert engine.baseline() is None
    assert not engine.is_active()
    assert not engine.is_completed()


def test_mid_peak_scenario_stays_in_jitter_band() -> None:
    engine, sched, pose, audio, _diag, _armed = _rig()

    sched.run_for(21.0)

    assert engine.is_active()
    assert engine.envelope_phase() == "peak"
    assert 10.9 < engine.elapsed_active_time() < 11.1
    assert math.isclose(engine.remaining_active_time(), 30.0 - engine.elapsed_active_time(), abs_tol=1e-9)
    band = PRESET_HYBRID.peak_intensity * PRESET_HYBRID.peak_jitter_band
    assert abs(engine.current_intensity() - PRESET_HYBRID.peak_intensity) <= band + 1e-9
    assert engine.displacement().length() > 0.0
    assert audio.play_count == 1
    assert PRESET_HYBRID.audio_min_gain < audio.volume <= PRESET_HYBRID.audio_max_gain


def test_target_offset_equals_smoothed_displacement() -> None:
    base = LVector3f(5.0, -2.0, 1.0)
    quat = LQuaternionf()
    quat.setHpr(LVecBase3f(90.0, 0.0, 0.0))
    pose = PoseTarget(name="Escenario", pos=LVector3f(base), quat=LQuaternionf(quat))
    engine, sched, pose, _audio, _diag, _armed = _rig(SHORT, target=pose)

    sched.run_for(2.5)

    assert engine.is_active()
    offset = pose.get_pos() - base
    assert offset.almostEqual(engine.displacement(), 1e-5)
    hpr = pose.get_quat().getHpr()
    assert abs(hpr[0] - 90.0) < 0.5
    assert abs(hpr[1]) < 1.0
    assert abs(hpr[2]) < 1.0


def test_full_run_lands_exactly_on_baseline_and_goes_quiet() -> None:
    base = LVector3f(5.0, -2.0, 1.0)
    quat = LQuaternionf()
    quat.setHpr(LVecBase3f(30.0, 0.0, 0.0))
    pose = PoseTarget(name="Escenario", pos=LVector3f(base), quat=LQuaternionf(quat))
    engine, sched, pose, audio, diag, _armed = _rig(SHORT, target=pose)

    sched.run_for(5.5)
    assert engine.phase == EnginePhase.RESTORING
    assert engine.current_intensity() == 0.0

    sched.run_for(1.0)
    assert engine.is_completed()
    assert pose.pos == base
    assert pose.quat == quat
    assert sched.frame_callbacks() == 0
    assert audio.stop_count == 1
    assert not audio.is_playing()
    assert audio.volume == SHORT.audio_min_gain

    writes = pose.writes
    sched.run_for(2.0)
    assert pose.writes == writes
    assert engine.tick(1.0 / 60.0) is False
    assert pose.writes == writes
    assert diag.items() == []


def test_start_after_completion_reports_once_and_leaves_target_alone() -> None:
    engine, sched, pose, audio, diag, _armed = _rig(SHORT)
    sched.run_for(8.0)
    assert engine.is_completed()
    writes = pose.writes

    assert engine.start() is False

    items = diag.items()
    assert len(items) == 1
    assert items[0].level == LEVEL_WARNING
    assert items[0].context == "engine.start"
    assert pose.writes == writes
    assert audio.play_count == 1
    assert engine.is_completed()


def test_arm_after_completion_does_not_rearm() -> None:
    engine, sched, _pose, _audio, diag, _armed = _rig(SHORT)
    sched.run_for(8.0)

    assert engine.arm() is False
    assert engine.is_completed()
    assert sched.pending() == 0
    assert [i.context for i in diag.items()] == ["engine.arm"]


def test_stop_cuts_active_phase_short() -> None:
    engine, sched, pose, audio, _diag, _armed = _rig(SHORT)
    assert engine.stop() is False

    sched.run_for(2.0)
    assert engine.is_active()
    assert engine.stop() is True
    assert engine.phase == EnginePhase.RESTORING
    assert engine.stop() is False

    sched.run_for(1.2)
    assert engine.is_completed()
    assert pose.pos == LVector3f(0, 0, 0)
    assert pose.quat == LQuaternionf.identQuat()
    assert audio.stop_count == 1


def test_missing_target_disables_engine() -> None:
    sched = ManualScheduler()
    diag = DiagnosticLog()
    engine = ShakeEngine(PRESET_HYBRID, scheduler=sched, resolver=TargetResolver(), diagnostics=diag)

    assert engine.arm() is False
    assert engine.disabled
    assert engine.target is None
    assert sched.pending() == 0
    assert sched.frame_callbacks() == 0
    items = diag.items()
    assert len(items) == 1
    assert items[0].level == LEVEL_ERROR
    assert items[0].context == "engine.arm"
    assert "Escenario" in items[0].message
    assert engine.start() is False
    assert engine.tick(0.1) is False


def test_invalid_config_disables_engine() -> None:
    cfg = replace(PRESET_HYBRID, rise_duration=20.0, peak_duration=20.0)
    engine, sched, pose, _audio, diag, armed = _rig(cfg)

    assert armed is False
    assert engine.disabled
    assert "exceeds total_duration" in diag.items()[0].message
    sched.run_for(1.0)
    assert pose.writes == 0


def test_target_resolved_by_fallback_name() -> None:
    house = PoseTarget(name="House")
    resolver = TargetResolver(registry={"House": house})
    engine, _sched, _pose, _audio, diag, armed = _rig(resolver=resolver)

    assert armed
    assert engine.target is house
    assert diag.items() == []


def test_target_resolved_from_scene_graph() -> None:
    root = NodePath("render")
    stage = root.attachNewNode("Escenario")
    stage.setPos(1, 2, 3)
    engine, sched, _pose, _audio, _diag, armed = _rig(SHORT, resolver=TargetResolver(scene_root=root))

    assert armed
    assert isinstance(engine.target, NodePathTarget)
    sched.run_for(8.0)
    assert engine.is_completed()
    assert tuple(stage.getPos()) == (1.0, 2.0, 3.0)


def test_non_finite_dt_is_treated_as_zero() -> None:
    engine, sched, pose, _audio, _diag, _armed = _rig(SHORT)
    sched.run_for(2.0)
    elapsed = engine.elapsed_active_time()

    assert engine.tick(float("nan")) is True
    assert engine.tick(-1.0) is True
    assert engine.elapsed_active_time() == elapsed
    p = pose.get_pos()
    assert all(math.isfinite(c) for c in (p.x, p.y, p.z))


def test_phase_offset_drawn_from_rng_when_not_given() -> None:
    engine = ShakeEngine(
        PRESET_HYBRID,
        scheduler=ManualScheduler(),
        target=PoseTarget(),
        rng=random.Random(7),
    )
    assert engine.arm()
    expected = random.Random(7).uniform(0.0, PHASE_OFFSET_RANGE)
    assert engine.phase_offset == expected
    assert 0.0 <= engine.phase_offset <= PHASE_OFFSET_RANGE


def test_audio_fade_outlasting_restore_runs_to_silence() -> None:
    cfg = replace(SHORT, restore_duration=0.5, audio_fade_duration=2.0)
    engine, sched, pose, audio, _diag, _armed = _rig(cfg)

    sched.run_for(6.0)
    assert engine.phase == EnginePhase.RESTORING
    assert pose.pos == LVector3f(0, 0, 0)
    assert audio.stop_count == 0

    sched.run_for(1.5)
    assert engine.is_completed()
    assert audio.stop_count == 1
    assert audio.volumes[-2] == 0.0
    assert audio.volume == cfg.audio_min_gain
    fade = audio.volumes[-40:-1]
    assert all(a >= b for a, b in zip(fade, fade[1:]))


def test_manual_start_is_not_repeated_by_the_scheduled_start() -> None:
    engine, sched, _pose, audio, diag, _armed = _rig(SHORT)

    assert engine.start() is True
    sched.run_for(0.5)
    elapsed = engine.elapsed_active_time()

    sched.run_for(1.0)
    assert engine.is_active()
    assert audio.play_count == 1
    assert sched.pending() == 0
    assert engine.elapsed_active_time() > elapsed + 0.9
    assert diag.items() == []


def test_engine_armed_from_a_frame_callback_completes() -> None:
    sched = ManualScheduler()
    pose = PoseTarget(name="Escenario")
    cfg = replace(SHORT, startup_delay=0.0, total_duration=1.0, rise_duration=0.3, peak_duration=0.3, restore_duration=0.2, audio_fade_duration=0.1)
    engine = ShakeEngine(cfg, scheduler=sched, target=pose)

    def _arm_once(dt: float) -> bool:
        engine.arm(phase_offset=1.0)
        return False

    sched.tick_each_frame(_arm_once)
    sched.run_for(3.0)

    assert engine.is_completed()
    assert pose.pos == LVector3f(0, 0, 0)
