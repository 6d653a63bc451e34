from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace

from direct.gui.OnscreenText import OnscreenText
from direct.showbase.ShowBase import ShowBase
from direct.task import Task
from panda3d.core import CardMaker, LVector3f, NodePath, TextNode, loadPrcFileData

from tremor.common.diagnostics import DiagnosticLog
from tremor.config import PRESET_HYBRID, DisturbanceConfig
from tremor.host.audio import AudioSink, NullAudioSink, Panda3DAudioSink, ensure_rumble_clip
from tremor.host.scheduler import TaskManagerScheduler
from tremor.host.targets import TargetResolver
from tremor.shake.engine import ShakeEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewConfig:
    disturbance: DisturbanceConfig = PRESET_HYBRID
    # Render offscreen, skip audio, start immediately and exit after a few frames.
    smoke: bool = False
    smoke_frames: int = 30
    # Seed for the per-run phase offset; None draws a fresh one.
    seed: int | None = None


def _build_room(parent: NodePath, *, name: str) -> NodePath:
    """Graybox room: floor, three walls and a table block, all under one node."""

    room = parent.attachNewNode(name)
    cm = CardMaker(f"{name}-card")
    cm.setFrame(-4, 4, -4, 4)

    floor = room.attachNewNode(cm.generate())
    floor.setP(-90)
    floor.setColor(0.42, 0.40, 0.37, 1)

    cm.setFrame(-4, 4, 0, 3)
    for i, (pos, h) in enumerate(((LVector3f(0, 4, 0), 0), (LVector3f(-4, 0, 0), 90), (LVector3f(4, 0, 0), -90))):
        wall = room.attachNewNode(cm.generate())
        wall.setPos(pos)
        wall.setH(h)
        shade = 0.62 + 0.06 * i
        wall.setColor(shade, shade, shade * 0.96, 1)
        wall.setTwoSided(True)

    cm.setFrame(-0.8, 0.8, -0.5, 0.5)
    table = room.attachNewNode(cm.generate())
    table.setPos(0, 1.2, 0.75)
    table.setP(-90)
    table.setColor(0.55, 0.36, 0.22, 1)
    table.setTwoSided(True)
    return room


class ShakePreview(ShowBase):
    """Interactive preview: shakes a graybox room around a fixed camera."""

    def __init__(self, cfg: PreviewConfig) -> None:
        if cfg.smoke:
            loadPrcFileData("", "window-type offscreen")
            loadPrcFileData("", "audio-library-name null")
        super().__init__()

        self.cfg = cfg
        self.disableMouse()
        self.camera.setPos(0, -3.2, 1.6)
        self.camera.lookAt(0, 2.0, 1.0)

        disturbance = cfg.disturbance
        if cfg.smoke:
            disturbance = replace(disturbance, startup_delay=0.0)
        self.room = _build_room(self.render, name=disturbance.target_name)

        self.diagnostics = DiagnosticLog()
        self.engine = ShakeEngine(
            disturbance,
            scheduler=TaskManagerScheduler(self.taskMgr),
            resolver=TargetResolver(scene_root=self.render),
            audio=self._load_audio(),
            diagnostics=self.diagnostics,
            rng=None if cfg.seed is None else random.Random(int(cfg.seed)),
        )
        self.engine.arm()

        self._hud = OnscreenText(
            text="",
            pos=(-1.28, 0.92),
            scale=0.05,
            align=TextNode.ALeft,
            fg=(1, 1, 1, 1),
            mayChange=True,
        )
        self.accept("space", self.engine.stop)
        self.accept("escape", self.userExit)
        self.taskMgr.add(self._update_hud, "tremor-hud")

        if cfg.smoke:
            self._smoke_frames = max(1, int(cfg.smoke_frames))
            self.taskMgr.add(self._smoke_exit, "smoke-exit")

    def _load_audio(self) -> AudioSink:
        if self.cfg.smoke:
            return NullAudioSink()
        try:
            clip = ensure_rumble_clip()
        except OSError as e:
            logger.warning("Rumble clip unavailable: %s", e)
            return NullAudioSink()
        sink = Panda3DAudioSink.load(self.loader, clip)
        return sink if sink is not None else NullAudioSink()

    def _update_hud(self, task: Task) -> int:
        eng = self.engine
        lines = [f"phase: {eng.phase.value}"]
        if eng.is_active():
            lines.append(f"segment: {eng.envelope_phase()}")
            lines.append(f"intensity: {eng.current_intensity():.5f}")
            lines.append(f"offset: {eng.displacement().length():.4f}")
            lines.append(f"time: {eng.elapsed_active_time():.1f}s / {eng.config.total_duration:.0f}s")
            lines.append(f"gain: {eng.gain():.2f}")
        for item in self.diagnostics.items()[-3:]:
            lines.append(item.summary_line())
        lines.append("[space] stop early   [esc] quit")
        self._hud.setText("\n".join(lines))
        return Task.cont

    def _smoke_exit(self, task: Task) -> int:
        self._smoke_frames -= 1
        if self._smoke_frames <= 0:
            self.userExit()
            return Task.done
        return Task.cont


def run(*, disturbance: DisturbanceConfig = PRESET_HYBRID, smoke: bool = False, seed: int | None = None) -> None:
    app = ShakePreview(PreviewConfig(disturbance=disturbance, smoke=smoke, seed=seed))
    app.run()


__all__ = ["PreviewConfig", "ShakePreview", "run"]
