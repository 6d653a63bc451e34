"""Envelope, signal composition, smoothing, audio gain and the engine state machine."""

from tremor.shake.audio_gain import AudioGainMapper
from tremor.shake.engine import EnginePhase, EngineState, ShakeEngine
from tremor.shake.envelope import EnvelopeCalculator
from tremor.shake.noise import CoherentNoise
from tremor.shake.signals import SignalComposer, TiltSample
from tremor.shake.smoothing import MotionSmoother, RestoreTween

__all__ = [
    "AudioGainMapper",
    "CoherentNoise",
    "EnginePhase",
    "EngineState",
    "EnvelopeCalculator",
    "MotionSmoother",
    "RestoreTween",
    "ShakeEngine",
    "SignalComposer",
    "TiltSample",
]
