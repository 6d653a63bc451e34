from __future__ import annotations

import logging
import math
import os
import random
import struct
import wave
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from panda3d.core import AudioSound

logger = logging.getLogger(__name__)


class AudioSink(Protocol):
    """Looping rumble voice driven by the shake engine."""

    def play(self) -> None: ...

    def stop(self) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def is_playing(self) -> bool: ...


class NullAudioSink:
    """Silent sink for hosts without audio."""

    def play(self) -> None:
        return

    def stop(self) -> None:
        return

    def set_volume(self, volume: float) -> None:
        return

    def is_playing(self) -> bool:
        return False


@dataclass
class RecordingAudioSink:
    """Remembers every call; used by headless traces."""

    volume: float = 0.0
    playing: bool = False
    play_count: int = 0
    stop_count: int = 0
    volumes: list[float] = field(default_factory=list)

    def play(self) -> None:
        self.playing = True
        self.play_count += 1

    def stop(self) -> None:
        self.playing = False
        self.stop_count += 1

    def set_volume(self, volume: float) -> None:
        self.volume = float(volume)
        self.volumes.append(float(volume))

    def is_playing(self) -> bool:
        return bool(self.playing)


class Panda3DAudioSink:
    """Wraps a Panda3D `AudioSound` as a looping rumble voice."""

    def __init__(self, sound: Any) -> None:
        self._sound = sound
        self._sound.setLoop(True)
        self._sound.setVolume(0.0)

    @classmethod
    def load(cls, loader, path: Path) -> "Panda3DAudioSink | None":
        try:
            snd = loader.loadSfx(Path(path).as_posix())
        except Exception as e:
            logger.warning("Could not load rumble clip %s: %s", path, e)
            return None
        if snd is None:
            return None
        return cls(snd)

    def play(self) -> None:
        self._sound.play()

    def stop(self) -> None:
        self._sound.stop()

    def set_volume(self, volume: float) -> None:
        self._sound.setVolume(max(0.0, min(1.0, float(volume))))

    def is_playing(self) -> bool:
        return self._sound.status() == AudioSound.PLAYING


def audio_cache_dir() -> Path:
    """
    Directory for generated audio assets.

    Override for tests/dev via `TREMOR_CACHE_DIR`.
    """

    override = os.environ.get("TREMOR_CACHE_DIR")
    if override:
        return Path(override) / "audio_cache"
    return Path.home() / ".tremor" / "audio_cache"


def _write_wav(path: Path, *, samples: list[float], sample_rate: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(int(sample_rate))
        pcm = bytearray()
        for s in samples:
            x = max(-1.0, min(1.0, float(s)))
            pcm.extend(struct.pack("<h", int(x * 32767.0)))
        wf.writeframes(bytes(pcm))


def rumble_samples(
    *,
    duration_s: float = 4.0,
    amp: float = 0.7,
    sample_rate: int = 22050,
    base_hz: float = 38.0,
    seed: int = 11,
) -> list[float]:
    """
    Low rumble loop: filtered noise over a slow-beating sub tone.

    Whole cycles of the tone and beat keep the loop seam click-free.
    """

    total = max(1, int(float(duration_s) * float(sample_rate)))
    dur = float(total) / float(sample_rate)
    tone_hz = max(1.0, round(float(base_hz) * dur)) / dur
    beat_hz = max(1.0, round(0.5 * dur)) / dur
    rng = random.Random(int(seed))
    out: list[float] = []
    lp = 0.0
    lp2 = 0.0
    for i in range(total):
        t = float(i) / float(sample_rate)
        n = rng.uniform(-1.0, 1.0)
        lp = (lp * 0.96) + (n * 0.04)
        lp2 = (lp2 * 0.90) + (lp * 0.10)
        beat = 0.75 + 0.25 * math.sin(math.tau * beat_hz * t)
        tone = math.sin(math.tau * tone_hz * t) * 0.35
        out.append(float(amp) * beat * (tone + lp2 * 6.0))
    peak = max((abs(s) for s in out), default=0.0)
    if peak > 1.0:
        out = [s / peak for s in out]
    return out


def ensure_rumble_clip(*, root: Path | None = None, sample_rate: int = 22050) -> Path:
    """Write the procedural rumble loop once and return its path."""

    base = Path(root) if root is not None else audio_cache_dir()
    path = base / "rumble_loop_v1.wav"
    if not path.exists():
        _write_wav(path, samples=rumble_samples(sample_rate=sample_rate), sample_rate=sample_rate)
    return path


__all__ = [
    "AudioSink",
    "NullAudioSink",
    "Panda3DAudioSink",
    "RecordingAudioSink",
    "audio_cache_dir",
    "ensure_rumble_clip",
    "rumble_samples",
]
