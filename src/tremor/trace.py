from __future__ import annotations

import csv
import json
import math
import random
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from panda3d.core import LVector3f

from tremor.common.diagnostics import DiagnosticLog
from tremor.config import DisturbanceConfig, config_to_dict
from tremor.host.audio import RecordingAudioSink
from tremor.host.scheduler import ManualScheduler
from tremor.host.targets import PoseTarget
from tremor.shake.engine import EnginePhase, ShakeEngine


@dataclass(frozen=True)
class TraceSample:
    tick: int
    t: float
    phase: str
    envelope_phase: str
    intensity: float
    dx: float
    dy: float
    dz: float
    heading: float
    pitch: float
    roll: float
    gain: float


@dataclass(frozen=True)
class TraceSummary:
    ticks: int
    duration_s: float
    peak_intensity: float
    peak_displacement: float
    peak_tilt_deg: float
    peak_gain: float
    active_at_s: float | None
    restoring_at_s: float | None
    completed_at_s: float | None
    final_offset: float


def simulate(
    cfg: DisturbanceConfig,
    *,
    fps: float = 60.0,
    phase_offset: float | None = None,
    seed: int | None = None,
    tail_s: float = 1.0,
    diagnostics: DiagnosticLog | None = None,
) -> list[TraceSample]:
    """
    Run one full shake headlessly and record every tick.

    Runs until the engine completes (plus `tail_s` of idle frames) or gives up after
    the configured timeline has elapsed twice over.
    """

    step = 1.0 / max(1.0, float(fps))
    baseline = LVector3f(0, 0, 0)
    target = PoseTarget(name=str(cfg.target_name), pos=LVector3f(baseline))
    scheduler = ManualScheduler()
    audio = RecordingAudioSink()
    engine = ShakeEngine(
        cfg,
        scheduler=scheduler,
        target=target,
        audio=audio,
        diagnostics=diagnostics,
        rng=random.Random(seed) if seed is not None else None,
    )
    if not engine.arm(phase_offset=phase_offset):
        return []

    timeline = float(cfg.startup_delay) + float(cfg.total_duration) + float(cfg.restore_duration)
    limit = max(1, int(math.ceil((timeline * 2.0 + float(tail_s)) / step)))
    tail_left = max(0, int(round(float(tail_s) / step)))
    out: list[TraceSample] = []
    for tick in range(limit):
        scheduler.advance(step)
        offset = target.get_pos() - baseline
        hpr = target.get_quat().getHpr()
        out.append(
            TraceSample(
                tick=int(tick),
                t=float(scheduler.now),
                phase=engine.phase.value,
                envelope_phase=str(engine.envelope_phase() or "-"),
                intensity=float(engine.current_intensity()),
                dx=float(offset.x),
                dy=float(offset.y),
                dz=float(offset.z),
                heading=float(hpr[0]),
                pitch=float(hpr[1]),
                roll=float(hpr[2]),
                gain=float(audio.volume),
            )
        )
        if engine.phase == EnginePhase.COMPLETED:
            if tail_left <= 0:
                break
            tail_left -= 1
    return out


def _first_time(samples: list[TraceSample], phase: str) -> float | None:
    for s in samples:
        if s.phase == phase:
            return float(s.t)
    return None


def summarize(samples: list[TraceSample]) -> TraceSummary:
    if not samples:
        return TraceSummary(
            ticks=0,
            duration_s=0.0,
            peak_intensity=0.0,
            peak_displacement=0.0,
            peak_tilt_deg=0.0,
            peak_gain=0.0,
            active_at_s=None,
            restoring_at_s=None,
            completed_at_s=None,
            final_offset=0.0,
        )
    last = samples[-1]
    return TraceSummary(
        ticks=len(samples),
        duration_s=float(last.t),
        peak_intensity=max(s.intensity for s in samples),
        peak_displacement=max(math.sqrt(s.dx * s.dx + s.dy * s.dy + s.dz * s.dz) for s in samples),
        peak_tilt_deg=max(max(abs(s.pitch), abs(s.roll)) for s in samples),
        peak_gain=max(s.gain for s in samples),
        active_at_s=_first_time(samples, EnginePhase.ACTIVE.value),
        restoring_at_s=_first_time(samples, EnginePhase.RESTORING.value),
        completed_at_s=_first_time(samples, EnginePhase.COMPLETED.value),
        final_offset=math.sqrt(last.dx * last.dx + last.dy * last.dy + last.dz * last.dz),
    )


def write_trace_csv(samples: list[TraceSample], path: Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    names = list(TraceSample.__dataclass_fields__.keys())
    with p.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=names)
        writer.writeheader()
        for s in samples:
            writer.writerow(asdict(s))
    return p


def write_summary_json(summary: TraceSummary, path: Path, *, cfg: DisturbanceConfig | None = None) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload: dict[str, Any] = {"summary": asdict(summary)}
    if cfg is not None:
        payload["config"] = config_to_dict(cfg)
    p.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return p


__all__ = ["TraceSample", "TraceSummary", "simulate", "summarize", "write_summary_json", "write_trace_csv"]
