from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from tremor.common.diagnostics import DiagnosticLog
from tremor.config import PRESETS, ConfigError, DisturbanceConfig, default_config_path, load_config, preset
from tremor.trace import simulate, summarize, write_summary_json, write_trace_csv


def _resolve_config(args: argparse.Namespace) -> DisturbanceConfig:
    path = Path(args.config) if args.config else default_config_path()
    if path is not None:
        return load_config(path)
    return preset(args.preset)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="tremor", description="Procedural earthquake shake: headless trace or preview window")
    parser.add_argument(
        "--preset",
        default="hybrid",
        choices=sorted(PRESETS),
        help="Built-in disturbance preset (default: hybrid).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON disturbance config. Overrides --preset (a 'preset' key inside the file picks its base). Env: TREMOR_CONFIG.",
    )
    parser.add_argument(
        "--fps",
        type=float,
        default=60.0,
        help="Simulated frame rate for the headless trace (default: 60).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the per-run phase offset (default: random).",
    )
    parser.add_argument(
        "--trace-csv",
        default=None,
        help="Write every simulated tick to this CSV file.",
    )
    parser.add_argument(
        "--summary-json",
        default=None,
        help="Write the trace summary (plus the effective config) to this JSON file.",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Open a Panda3D window shaking a graybox room instead of running headless.",
    )
    parser.add_argument(
        "--smoke",
        action="store_true",
        help="With --preview: render offscreen briefly and exit (for quick verification).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log engine lifecycle events.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = _resolve_config(args)
    except ConfigError as e:
        print(f"config: {e}", file=sys.stderr)
        return 2

    if args.preview:
        from tremor.preview.app import run

        run(disturbance=cfg, smoke=bool(args.smoke), seed=args.seed)
        return 0

    diagnostics = DiagnosticLog()
    samples = simulate(cfg, fps=float(args.fps), seed=args.seed, diagnostics=diagnostics)
    if not samples:
        for item in diagnostics.items():
            print(item.summary_line(), file=sys.stderr)
        return 1

    summary = summarize(samples)
    print(f"ticks: {summary.ticks} ({summary.duration_s:.2f}s)")
    print(f"active at: {summary.active_at_s}s  restoring at: {summary.restoring_at_s}s  completed at: {summary.completed_at_s}s")
    print(f"peak intensity: {summary.peak_intensity:.5f}  peak offset: {summary.peak_displacement:.5f}")
    print(f"peak tilt: {summary.peak_tilt_deg:.5f} deg  peak gain: {summary.peak_gain:.3f}")
    print(f"final offset: {summary.final_offset:.6f}")
    if args.trace_csv:
        print(f"csv: {write_trace_csv(samples, Path(args.trace_csv))}")
    if args.summary_json:
        print(f"summary: {write_summary_json(summary, Path(args.summary_json), cfg=cfg)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
