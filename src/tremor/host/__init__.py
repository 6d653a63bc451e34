"""Host capabilities the engine is wired to: clock/scheduler, target transforms, audio."""

from tremor.host.audio import AudioSink, NullAudioSink, Panda3DAudioSink, RecordingAudioSink, ensure_rumble_clip
from tremor.host.scheduler import ManualScheduler, TaskManagerScheduler, TickScheduler
from tremor.host.targets import NodePathTarget, PoseTarget, TargetResolver, TransformHandle

__all__ = [
    "AudioSink",
    "ManualScheduler",
    "NodePathTarget",
    "NullAudioSink",
    "Panda3DAudioSink",
    "PoseTarget",
    "RecordingAudioSink",
    "TargetResolver",
    "TaskManagerScheduler",
    "TickScheduler",
    "TransformHandle",
    "ensure_rumble_clip",
]
