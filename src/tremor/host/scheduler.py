from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from direct.showbase.ShowBaseGlobal import globalClock
from direct.task import Task

FrameFn = Callable[[float], bool]


class TickScheduler(Protocol):
    """
    Host clock capability the shake engine depends on.

    `tick_each_frame` callbacks receive the frame delta in seconds and return True to
    keep running; returning False unregisters them.
    """

    def schedule_once(self, delay: float, fn: Callable[[], None]) -> None: ...

    def tick_each_frame(self, fn: FrameFn) -> None: ...

@dataclass
class _Deferred:
    due: float
    order: int
    fn: Callable[[], None]


class ManualScheduler:
    """Deterministic scheduler for headless runs and tests: the caller drives `advance(dt)`."""

    def __init__(self) -> None:
        self._now = 0.0
        self._order = 0
        self._deferred: list[_Deferred] = []
        self._frame_fns: list[FrameFn] = []

    @property
    def now(self) -> float:
        return float(self._now)

    def pending(self) -> int:
        return len(self._deferred)

    def frame_callbacks(self) -> int:
        return len(self._frame_fns)

    def schedule_once(self, delay: float, fn: Callable[[], None]) -> None:
        self._order += 1
        self._deferred.append(_Deferred(due=self._now + max(0.0, float(delay)), order=self._order, fn=fn))

    def tick_each_frame(self, fn: FrameFn) -> None:
        self._frame_fns.append(fn)

    def advance(self, dt: float) -> None:
        """
        Advance the clock by one frame.

        Deferred callbacks due within this frame fire first (in due order), then every
        frame callback runs once with `dt`.
        """

        frame_dt = max(0.0, float(dt))
        self._now += frame_dt
        due = sorted((d for d in self._deferred if d.due <= self._now + 1e-9), key=lambda d: (d.due, d.order))
        if due:
            fired = {id(d) for d in due}
            self._deferred = [d for d in self._deferred if id(d) not in fired]
            for d in due:
                d.fn()
        # Callbacks registered during this frame first run on the next one.
        current = list(self._frame_fns)
        keep: list[FrameFn] = []
        for fn in current:
            if fn(frame_dt):
                keep.append(fn)
        self._frame_fns = keep + self._frame_fns[len(current):]

    def run_for(self, seconds: float, *, fps: float = 60.0) -> int:
        step = 1.0 / max(1.0, float(fps))
        frames = max(0, int(round(float(seconds) / step)))
        for _ in range(frames):
            self.advance(step)
        return frames


class TaskManagerScheduler:
    """Adapter onto a Panda3D `direct.task` task manager (e.g. `ShowBase.taskMgr`)."""

    def __init__(self, task_mgr, *, name_prefix: str = "tremor") -> None:
        self._task_mgr = task_mgr
        self._prefix = str(name_prefix)
        self._serial = 0

    def _name(self, kind: str) -> str:
        self._serial += 1
        return f"{self._prefix}-{kind}-{self._serial}"

    def schedule_once(self, delay: float, fn: Callable[[], None]) -> None:
        def _fire(task):
            fn()
            return Task.done

        self._task_mgr.doMethodLater(max(0.0, float(delay)), _fire, self._name("once"))

    def tick_each_frame(self, fn: FrameFn) -> None:
        def _frame(task):
            return Task.cont if fn(float(globalClock.getDt())) else Task.done

        self._task_mgr.add(_frame, self._name("frame"))


__all__ = ["FrameFn", "ManualScheduler", "TaskManagerScheduler", "TickScheduler"]
