from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any


EASING_SMOOTHSTEP = "smoothstep"
EASING_QUADRATIC = "quadratic"
EASINGS = (EASING_SMOOTHSTEP, EASING_QUADRATIC)

FALLBACK_TARGET_NAMES = ("Casa", "House", "Edificio", "Building", "Environment", "World", "Map", "Scene")


class ConfigError(ValueError):
    """Raised when a disturbance config file or payload cannot be parsed."""


@dataclass(frozen=True)
class DisturbanceConfig:
    # Timing (seconds). Fall duration is derived: total - rise - peak.
    startup_delay: float = 10.0
    total_duration: float = 30.0
    rise_duration: float = 8.0
    peak_duration: float = 10.0
    rise_easing: str = EASING_SMOOTHSTEP
    fall_easing: str = EASING_SMOOTHSTEP

    # Envelope. Intensity is a displacement scale in world units.
    initial_intensity: float = 0.002
    peak_intensity: float = 0.03
    # Peak phase wobbles by +/- band around peak intensity.
    peak_jitter_band: float = 0.12
    peak_jitter_rate: float = 0.2

    # Base coherent-noise drift. Host is Z-up: vertical weight applies to Z.
    base_frequency: float = 1.5
    vertical_weight: float = 1.5
    horizontal_weight: float = 0.3

    vibration_enabled: bool = True
    vibration_frequency: float = 12.0
    vibration_intensity: float = 0.05
    vibration_damping: float = 0.4

    oscillation_enabled: bool = True
    oscillation_axis: tuple[float, float, float] = (0.3, 0.2, 1.0)
    oscillation_frequency: float = 0.7
    oscillation_intensity: float = 0.2

    # Tilt (pitch/roll degrees) sampled at a fraction of the base frequency.
    rotation_intensity: float = 0.2
    rotation_frequency_ratio: float = 0.3
    rotation_amplitude_deg: float = 0.75

    smoothing_rate: float = 10.0
    rotation_smoothing_ratio: float = 0.7

    audio_min_gain: float = 0.3
    audio_max_gain: float = 0.8
    audio_gain_rate: float = 2.0
    audio_fade_duration: float = 1.5

    restore_duration: float = 3.0

    # Logical name of the transform to shake when none is passed explicitly.
    target_name: str = "Escenario"
    fallback_target_names: tuple[str, ...] = field(default=FALLBACK_TARGET_NAMES)

    @property
    def fall_duration(self) -> float:
        return float(self.total_duration) - float(self.rise_duration) - float(self.peak_duration)

    def problems(self) -> list[str]:
        """Return human-readable invariant violations (empty when the config is usable)."""

        out: list[str] = []
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, float) and not math.isfinite(value):
                out.append(f"{f.name} must be finite (got {value})")
        if out:
            return out

        for name in ("startup_delay", "total_duration", "rise_duration", "peak_duration", "restore_duration", "audio_fade_duration"):
            if float(getattr(self, name)) < 0.0:
                out.append(f"{name} must be >= 0")
        if float(self.total_duration) <= 0.0:
            out.append("total_duration must be > 0")
        if self.fall_duration < 0.0:
            out.append(
                f"rise_duration + peak_duration ({self.rise_duration} + {self.peak_duration}) "
                f"exceeds total_duration ({self.total_duration})"
            )
        if not (float(self.initial_intensity) < float(self.peak_intensity)):
            out.append("initial_intensity must be lower than peak_intensity")
        if float(self.initial_intensity) < 0.0:
            out.append("initial_intensity must be >= 0")
        for name in ("base_frequency", "vibration_frequency", "oscillation_frequency", "peak_jitter_rate", "rotation_frequency_ratio"):
            if float(getattr(self, name)) <= 0.0:
                out.append(f"{name} must be > 0")
        for name in ("vibration_intensity", "oscillation_intensity", "rotation_intensity", "peak_jitter_band", "vibration_damping"):
            v = float(getattr(self, name))
            if v < 0.0 or v > 1.0:
                out.append(f"{name} must be within [0, 1]")
        for name in ("audio_min_gain", "audio_max_gain"):
            v = float(getattr(self, name))
            if v < 0.0 or v > 1.0:
                out.append(f"{name} must be within [0, 1]")
        if float(self.smoothing_rate) <= 0.0:
            out.append("smoothing_rate must be > 0")
        if float(self.rotation_smoothing_ratio) <= 0.0:
            out.append("rotation_smoothing_ratio must be > 0")
        if len(self.oscillation_axis) != 3:
            out.append("oscillation_axis must have 3 components")
        elif not all(math.isfinite(float(c)) for c in self.oscillation_axis):
            out.append("oscillation_axis components must be finite")
        elif bool(self.oscillation_enabled) and sum(float(c) * float(c) for c in self.oscillation_axis) <= 1e-12:
            out.append("oscillation_axis must be non-zero")
        if self.rise_easing not in EASINGS:
            out.append(f"rise_easing must be one of {', '.join(EASINGS)}")
        if self.fall_easing not in EASINGS:
            out.append(f"fall_easing must be one of {', '.join(EASINGS)}")
        return out


# Environment shake: the later "hybrid" revision (smoothstep ramps, vertical-biased).
PRESET_HYBRID = DisturbanceConfig()

# Observer head shake: quadratic ramp, isotropic weighting, livelier frequencies.
PRESET_HEAD = DisturbanceConfig(
    startup_delay=5.0,
    total_duration=25.0,
    rise_duration=6.0,
    peak_duration=10.0,
    rise_easing=EASING_QUADRATIC,
    fall_easing=EASING_QUADRATIC,
    initial_intensity=0.004,
    peak_intensity=0.05,
    base_frequency=2.5,
    vertical_weight=1.0,
    horizontal_weight=1.0,
    vibration_frequency=18.0,
    vibration_intensity=0.08,
    oscillation_axis=(1.0, 0.0, 0.4),
    oscillation_frequency=1.2,
    oscillation_intensity=0.25,
    rotation_intensity=0.5,
    rotation_frequency_ratio=0.4,
    smoothing_rate=12.0,
    target_name="Head",
    fallback_target_names=("Camera", "CenterEyeAnchor", "Player"),
)

PRESETS: dict[str, DisturbanceConfig] = {
    "hybrid": PRESET_HYBRID,
    "head": PRESET_HEAD,
}


def preset(name: str) -> DisturbanceConfig:
    key = str(name or "").strip().lower()
    if key not in PRESETS:
        raise ConfigError(f"Unknown preset {name!r} (expected one of: {', '.join(sorted(PRESETS))})")
    return PRESETS[key]


def _coerce(name: str, default: Any, value: Any) -> Any:
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{name}: expected bool, got {type(value).__name__}")
        return value
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{name}: expected number, got {type(value).__name__}")
        return float(value)
    if isinstance(default, str):
        if not isinstance(value, str):
            raise ConfigError(f"{name}: expected string, got {type(value).__name__}")
        return value
    if name == "oscillation_axis":
        if not isinstance(value, (list, tuple)) or len(value) != 3:
            raise ConfigError(f"{name}: expected [x, y, z]")
        try:
            return tuple(float(c) for c in value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name}: {e}") from e
    if name == "fallback_target_names":
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"{name}: expected a list of names")
        return tuple(value)
    return value


def config_from_dict(payload: dict[str, Any], *, base: DisturbanceConfig | None = None) -> DisturbanceConfig:
    """
    Build a config from a JSON-style mapping.

    Unknown keys are ignored; known keys with the wrong type raise `ConfigError`.
    An optional `"preset"` key selects the base values before the overrides apply.
    """

    if not isinstance(payload, dict):
        raise ConfigError("Disturbance config must be a JSON object")
    cfg = base if base is not None else PRESET_HYBRID
    preset_name = payload.get("preset")
    if preset_name is not None:
        if not isinstance(preset_name, str):
            raise ConfigError("preset: expected string")
        cfg = preset(preset_name)

    defaults = {f.name: getattr(cfg, f.name) for f in fields(cfg)}
    overrides: dict[str, Any] = {}
    for key, value in payload.items():
        if key not in defaults:
            continue
        overrides[key] = _coerce(key, defaults[key], value)
    return replace(cfg, **overrides)


def config_to_dict(cfg: DisturbanceConfig) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(cfg):
        value = getattr(cfg, f.name)
        out[f.name] = list(value) if isinstance(value, tuple) else value
    return out


def load_config(path: Path) -> DisturbanceConfig:
    p = Path(path)
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {p}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {p}: {e}") from e
    return config_from_dict(payload)


def default_config_path() -> Path | None:
    """
    Config file used by the CLI when `--config` is not given.

    Set via `TREMOR_CONFIG`.
    """

    override = os.environ.get("TREMOR_CONFIG")
    if override:
        return Path(override)
    return None


__all__ = [
    "ConfigError",
    "DisturbanceConfig",
    "EASINGS",
    "EASING_QUADRATIC",
    "EASING_SMOOTHSTEP",
    "FALLBACK_TARGET_NAMES",
    "PRESETS",
    "config_from_dict",
    "config_to_dict",
    "default_config_path",
    "load_config",
    "preset",
]
