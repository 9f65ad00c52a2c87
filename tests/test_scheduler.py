#!/usr/bin/env python3
"""Scene test scheduler state machine, driven tick by tick with a fake host."""

from __future__ import annotations

import io
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from sceneharness.harness import HarnessState
from sceneharness.scene import SceneTest, SceneTestDescriptor
from sceneharness.scheduler import SceneTestScheduler, SchedulerState, SchedulingOrder


class Silent(SceneTest):
    """Never finishes on its own."""


class FakeLoader:
    def __init__(self):
        self.loaded = []
        self.unloaded = []

    def load_scene(self, descriptor):
        scene = descriptor.scene_class()
        scene.name = descriptor.name
        self.loaded.append(descriptor.name)
        return scene

    def unload_scene(self, scene):
        self.unloaded.append(scene.name)


def _descriptor(name: str, budget: int = 600) -> SceneTestDescriptor:
    return SceneTestDescriptor(name=name, path=Path(f"{name}.py"), scene_class=Silent,
                               frame_budget=budget)


def _scheduler(*descriptors, order=SchedulingOrder.LIFO, warmup_frames=0):
    state = HarnessState(pending=list(descriptors))
    loader = FakeLoader()
    scheduler = SceneTestScheduler(state, loader, order=order, warmup_frames=warmup_frames)
    return state, loader, scheduler


def _tick(scheduler) -> SchedulerState:
    with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
        return scheduler.tick()


def _drain(scheduler, limit: int = 10000):
    for _ in range(limit):
        active = scheduler.state.active
        if active is not None:
            active.finish(True)
        if _tick(scheduler) is SchedulerState.DRAINED:
            return
    raise AssertionError("scheduler did not drain")


def test_lifo_runs_last_discovered_first():
    state, loader, scheduler = _scheduler(_descriptor("X"), _descriptor("Y"))
    _drain(scheduler)
    assert loader.loaded == ["Y", "X"]
    assert loader.unloaded == ["Y", "X"]
    assert state.failures == 0
    assert state.terminal


def test_fifo_runs_in_discovery_order():
    _, loader, scheduler = _scheduler(_descriptor("X"), _descriptor("Y"),
                                      order=SchedulingOrder.FIFO)
    _drain(scheduler)
    assert loader.loaded == ["X", "Y"]


def test_timeout_on_exactly_the_budget_tick():
    state, loader, scheduler = _scheduler(_descriptor("slow", budget=5))

    assert _tick(scheduler) is SchedulerState.RUNNING  # loads, no budget used
    assert state.frames_remaining == 5
    for remaining in (4, 3, 2, 1):
        assert _tick(scheduler) is SchedulerState.RUNNING
        assert state.frames_remaining == remaining
        assert state.failures == 0

    err = io.StringIO()
    with redirect_stdout(io.StringIO()), redirect_stderr(err):
        assert scheduler.tick() is SchedulerState.IDLE
    assert state.failures == 1
    assert state.active is None
    assert loader.unloaded == ["slow"]
    assert "timed out after 5 frames" in err.getvalue()
    assert state.scene_results[0].timed_out
    assert not state.scene_results[0].passed

    assert _tick(scheduler) is SchedulerState.DRAINED


def test_completion_before_budget_records_success():
    state, loader, scheduler = _scheduler(_descriptor("quick", budget=600))
    _tick(scheduler)
    scene = state.active

    _tick(scheduler)
    _tick(scheduler)
    scene.finish(True)
    assert _tick(scheduler) is SchedulerState.IDLE

    assert state.failures == 0
    assert state.frames_remaining == 0
    assert state.scene_results[0].passed
    assert not state.scene_results[0].timed_out
    assert loader.unloaded == ["quick"]


def test_completion_with_failure_counts_once():
    state, _, scheduler = _scheduler(_descriptor("bad"))
    _tick(scheduler)
    scene = state.active
    scene.finish(False)
    scene.finish(True)  # duplicate signal ignored
    _tick(scheduler)
    assert state.failures == 1
    assert not state.scene_results[0].passed


def test_failed_expectation_overrides_passing_finish():
    state, _, scheduler = _scheduler(_descriptor("mixed"))
    _tick(scheduler)
    scene = state.active
    with redirect_stderr(io.StringIO()):
        scene.expect_eq("rendered", "expected", "frame content")
    scene.finish(True)
    _tick(scheduler)
    assert state.failures == 1
    assert state.scene_results[0].messages == ("frame content: 'rendered' != 'expected'",)


def test_signal_from_unloaded_scene_is_ignored():
    state, _, scheduler = _scheduler(_descriptor("first"), _descriptor("second"),
                                     order=SchedulingOrder.FIFO)
    _tick(scheduler)
    first = state.active
    first.finish(True)
    _tick(scheduler)  # first done
    _tick(scheduler)  # second loaded
    first.finished.emit(False)
    assert scheduler.outcome is None
    assert scheduler.phase is SchedulerState.RUNNING


def test_listener_disconnected_when_scene_finishes():
    calls = []
    state, _, scheduler = _scheduler(_descriptor("only"))
    _tick(scheduler)
    scene = state.active
    scene.finished.connect(calls.append)
    scene.finish(True)
    _tick(scheduler)
    assert scheduler.listener is None
    assert scene.finished._callbacks == [calls.append]
    assert calls == [True]


def test_signal_on_last_budget_frame_wins_over_timeout():
    state, _, scheduler = _scheduler(_descriptor("edge", budget=2))
    _tick(scheduler)
    _tick(scheduler)
    state.active.finish(True)
    _tick(scheduler)
    assert state.failures == 0
    assert not state.scene_results[0].timed_out


def test_empty_queue_drains_and_stays_drained():
    state, loader, scheduler = _scheduler()
    assert _tick(scheduler) is SchedulerState.DRAINED
    assert _tick(scheduler) is SchedulerState.DRAINED
    assert state.terminal
    assert loader.loaded == []
    assert state.failures == 0


def test_warmup_frames_delay_first_load():
    state, loader, scheduler = _scheduler(_descriptor("later"), warmup_frames=3)
    for _ in range(3):
        assert _tick(scheduler) is SchedulerState.IDLE
    assert loader.loaded == []
    assert _tick(scheduler) is SchedulerState.RUNNING
    assert loader.loaded == ["later"]


def test_each_descriptor_consumed_once():
    state, loader, scheduler = _scheduler(*(_descriptor(f"s{i}", budget=1) for i in range(4)))
    for _ in range(100):
        if _tick(scheduler) is SchedulerState.DRAINED:
            break
    assert loader.loaded == ["s3", "s2", "s1", "s0"]
    assert state.failures == 4
    assert state.pending == []


if __name__ == "__main__":  # pragma: no cover
    for name, func in list(globals().items()):
        if name.startswith("test_") and callable(func):
            func()
    print("PASS")
