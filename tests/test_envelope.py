from __future__ import annotations

import math

from tremor.config import EASING_QUADRATIC, DisturbanceConfig
from tremor.shake.envelope import (
    PHASE_FALL,
    PHASE_PEAK,
    PHASE_RISE,
    EnvelopeCalculator,
    ease_in_quad,
    ease_out_quad,
    smoothstep,
)
from tremor.shake.noise import CoherentNoise


def _scenario_cfg(**overrides) -> DisturbanceConfig:
    base = dict(
        startup_delay=10.0,
        total_duration=30.0,
        rise_duration=8.0,
        peak_duration=10.0,
        initial_intensity=0.002,
        peak_intensity=0.03,
    )
    base.update(overrides)
    return DisturbanceConfig(**base)


def _env(cfg: DisturbanceConfig, phase_offset: float = 317.25) -> EnvelopeCalculator:
    return EnvelopeCalculator(cfg, noise=CoherentNoise(), phase_offset=phase_offset)


def test_smoothstep_has_flat_ends() -> None:
    assert smoothstep(0.0) == 0.0
    assert smoothstep(1.0) == 1.0
    assert math.isclose(smoothstep(0.5), 0.5)
    assert smoothstep(1e-4) < 1e-7
    assert 1.0 - smoothstep(1.0 - 1e-4) < 1e-7


def test_quadratic_ease_pair_mirrors_in_time() -> None:
    for p in (0.1, 0.25, 0.5, 0.8):
        assert math.isclose(ease_out_quad(p), 1.0 - ease_in_quad(1.0 - p))


def test_intensity_starts_at_initial() -> None:
    cfg = _scenario_cfg()
    assert _env(cfg).intensity(0.0) == cfg.initial_intensity


def test_rise_to_peak_boundary_is_continuous_within_jitter_band() -> None:
    cfg = _scenario_cfg()
    env = _env(cfg)
    before = env.intensity(cfg.rise_duration - 1e-6)
    after = env.intensity(cfg.rise_duration)

    assert math.isclose(before, cfg.peak_intensity, rel_tol=1e-6)
    assert abs(after - cfg.peak_intensity) <= cfg.peak_jitter_band * cfg.peak_intensity + 1e-12


def test_peak_to_fall_boundary_is_continuous_within_jitter_band() -> None:
    cfg = _scenario_cfg()
    env = _env(cfg)
    peak_end = cfg.rise_duration + cfg.peak_duration
    before = env.intensity(peak_end - 1e-6)
    after = env.intensity(peak_end)

    assert math.isclose(after, cfg.peak_intensity, rel_tol=1e-9)
    assert abs(before - after) <= cfg.peak_jitter_band * cfg.peak_intensity + 1e-12


def test_mid_peak_intensity_stays_within_jitter_band() -> None:
    cfg = _scenario_cfg()
    for offset in (0.0, 12.5, 317.25, 999.0):
        env = _env(cfg, phase_offset=offset)
        for t in (8.0, 9.5, 11.0, 13.3, 17.9):
            value = env.intensity(t)
            assert abs(value - cfg.peak_intensity) <= 0.12 * cfg.peak_intensity + 1e-12


def test_fall_lands_on_initial_at_total() -> None:
    cfg = _scenario_cfg()
    env = _env(cfg)

    assert math.isclose(env.intensity(cfg.total_duration), cfg.initial_intensity, rel_tol=1e-9)
    near_end = env.intensity(cfg.total_duration - 0.01)
    assert abs(near_end - cfg.initial_intensity) < 1e-6
    assert env.intensity(cfg.total_duration + 9.0) == env.intensity(cfg.total_duration)


def test_fall_is_monotonic() -> None:
    cfg = _scenario_cfg()
    env = _env(cfg)
    values = [env.intensity(18.0 + 0.5 * i) for i in range(25)]
    assert all(b <= a for a, b in zip(values, values[1:]))


def test_zero_length_fall_jumps_straight_to_initial() -> None:
    cfg = _scenario_cfg(total_duration=18.0)
    env = _env(cfg)
    assert cfg.fall_duration == 0.0
    value = env.intensity(18.0)
    assert math.isfinite(value)
    assert math.isclose(value, cfg.initial_intensity, rel_tol=1e-9)


def test_zero_length_rise_starts_in_peak_band() -> None:
    cfg = _scenario_cfg(rise_duration=0.0)
    env = _env(cfg)
    value = env.intensity(0.0)
    assert math.isfinite(value)
    assert abs(value - cfg.peak_intensity) <= 0.12 * cfg.peak_intensity + 1e-12


def test_quadratic_variant_changes_ramp_shape() -> None:
    cfg = _scenario_cfg(rise_easing=EASING_QUADRATIC, fall_easing=EASING_QUADRATIC)
    env = _env(cfg)
    span = cfg.peak_intensity - cfg.initial_intensity

    assert math.isclose(env.intensity(4.0), cfg.initial_intensity + 0.25 * span, rel_tol=1e-9)
    assert math.isclose(env.intensity(24.0), cfg.peak_intensity - 0.75 * span, rel_tol=1e-9)


def test_phase_at_reports_segments() -> None:
    cfg = _scenario_cfg()
    env = _env(cfg)
    assert env.phase_at(0.0) == PHASE_RISE
    assert env.phase_at(8.0) == PHASE_PEAK
    assert env.phase_at(17.99) == PHASE_PEAK
    assert env.phase_at(18.0) == PHASE_FALL
    assert env.phase_at(30.0) == PHASE_FALL


def test_non_finite_time_is_treated_as_start() -> None:
    cfg = _scenario_cfg()
    env = _env(cfg)
    assert env.intensity(float("nan")) == cfg.initial_intensity
