"""
Frame-driven scheduler for scene tests.

The host calls ``tick()`` once per rendered frame. Each call does a bounded
amount of work and returns; the scheduler never sleeps or waits on the host.
At most one scene test is active at a time.

A running scene's budget is decremented on every tick after the one that
loaded it. A ``finished`` signal emitted between ticks is acted on by the next
tick; if the budget reaches zero first, the scene is failed. FINISHING is
resolved within the tick that enters it, so the scheduler is IDLE again as
soon as that tick returns.

    IDLE ──pop──▶ RUNNING ──finished / budget spent──▶ FINISHING ──▶ IDLE
      │
      └──queue empty──▶ DRAINED (terminal)
"""

from __future__ import annotations

import sys
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol

from .scene import SceneTest, SceneTestDescriptor

if TYPE_CHECKING:
    from .harness import HarnessState


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHING = "finishing"
    DRAINED = "drained"


class SchedulingOrder(Enum):
    LIFO = "lifo"  # last discovered runs first
    FIFO = "fifo"  # discovery order


class SceneLoader(Protocol):
    def load_scene(self, descriptor: SceneTestDescriptor) -> SceneTest: ...

    def unload_scene(self, scene: SceneTest) -> None: ...


class SceneTestScheduler:
    """Runs the pending scene tests of a HarnessState one after another."""

    def __init__(self, state: HarnessState, loader: SceneLoader,
                 order: SchedulingOrder = SchedulingOrder.LIFO,
                 warmup_frames: int = 0, verbose: bool = False):
        self.state = state
        self.loader = loader
        self.order = order
        self.warmup_frames = warmup_frames
        self.verbose = verbose
        self.phase = SchedulerState.IDLE
        self.descriptor: Optional[SceneTestDescriptor] = None
        self.outcome: Optional[bool] = None
        self.timed_out = False
        self.listener = None

    def tick(self) -> SchedulerState:
        """Advance the state machine by one frame and return the new state."""
        if self.phase is SchedulerState.DRAINED:
            return self.phase

        if self.warmup_frames > 0:
            self.warmup_frames -= 1
            return self.phase

        if self.phase is SchedulerState.IDLE:
            self._start_next()
        elif self.phase is SchedulerState.RUNNING:
            self.state.frames_remaining -= 1
            if self.outcome is not None:
                self.phase = SchedulerState.FINISHING
            elif self.state.frames_remaining <= 0:
                self._time_out()

        if self.phase is SchedulerState.FINISHING:
            self._finish()
        return self.phase

    def _pop(self) -> Optional[SceneTestDescriptor]:
        pending = self.state.pending
        if not pending:
            return None
        if self.order is SchedulingOrder.LIFO:
            return pending.pop()
        return pending.pop(0)

    def _start_next(self):
        descriptor = self._pop()
        if descriptor is None:
            self.phase = SchedulerState.DRAINED
            self.state.terminal = True
            return

        print(f"Starting scene test {descriptor.name} (budget {descriptor.frame_budget} frames)")
        scene = self.loader.load_scene(descriptor)
        self.descriptor = descriptor
        self.outcome = None
        self.timed_out = False
        self.state.active = scene
        self.state.frames_remaining = descriptor.frame_budget
        self.phase = SchedulerState.RUNNING
        self.listener = self._make_listener(scene)
        getattr(scene, descriptor.signal).connect(self.listener)

    def _make_listener(self, scene: SceneTest):
        def on_finished(passed: bool):
            # Only the first signal of the active scene counts; it is acted
            # on by the next tick.
            if self.state.active is not scene or self.outcome is not None:
                return
            self.outcome = bool(passed)
        return on_finished

    def _time_out(self):
        self.timed_out = True
        self.outcome = False
        self.phase = SchedulerState.FINISHING
        print(
            f"✗ Scene test {self.descriptor.name} timed out after "
            f"{self.descriptor.frame_budget} frames",
            file=sys.stderr,
        )

    def _finish(self):
        descriptor = self.descriptor
        scene = self.state.active
        passed = bool(self.outcome)
        messages = tuple(scene.recorder.messages) if scene is not None else ()
        if self.timed_out:
            messages += (f"timed out after {descriptor.frame_budget} frames",)

        if passed:
            print(f"{descriptor.name}: passed")
        else:
            self.state.failures += 1
            print(f"{descriptor.name}: FAILED", file=sys.stderr)
        if self.verbose:
            used = descriptor.frame_budget - max(self.state.frames_remaining, 0)
            print(f"  {descriptor.name} used {used}/{descriptor.frame_budget} frames")

        self.state.record_scene(descriptor.name, passed, messages, timed_out=self.timed_out)
        getattr(scene, descriptor.signal).disconnect(self.listener)
        self.listener = None
        self.loader.unload_scene(scene)
        self.state.active = None
        self.state.frames_remaining = 0
        self.descriptor = None
        self.outcome = None
        self.timed_out = False
        self.phase = SchedulerState.IDLE
