"""
Scene-based tests.

A scene test module (``scene_*.py``) defines one ``SceneTest`` subclass. The
host instantiates it when the scheduler loads it, calls ``process()`` once per
frame and ``render()`` whenever a frame is captured. The scene reports its
outcome by calling ``finish()``, which emits the ``finished`` signal.

Optional module attributes:
    FRAME_BUDGET: frames the scene may run before it is failed (default 600).
    SCENE: the SceneTest subclass to run, when the module defines several.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from PIL import ImageDraw

from .expectations import ExpectationRecorder
from .framework import DEFAULT_FRAME_BUDGET, DEFAULT_RMS_THRESHOLD


class Signal:
    """Minimal observer list, emitted synchronously."""

    def __init__(self):
        self._callbacks: List[Callable] = []

    def connect(self, callback: Callable):
        self._callbacks.append(callback)

    def disconnect(self, callback: Callable):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(self, *args):
        for callback in list(self._callbacks):
            callback(*args)


@dataclass(frozen=True)
class SceneTestDescriptor:
    """A scene waiting to be run by the scheduler."""

    name: str
    path: Path
    scene_class: type
    frame_budget: int = DEFAULT_FRAME_BUDGET
    signal: str = "finished"


class SceneTest:
    """Base class for frame-driven tests.

    Attributes set by the host before ``ready()``:
        name: scene test name (module stem)
        host: the host running the scene, used for frame capture
        comparator: the run's ScreenshotComparator
    """

    name: str = ""

    def __init__(self):
        self.recorder = ExpectationRecorder()
        self.finished = Signal()
        self.host = None
        self.comparator = None
        self.screenshot_count = 0
        self._done = False

    def expect(self, condition, message: str = "expectation failed") -> bool:
        return self.recorder.expect(condition, message)

    def expect_eq(self, actual, expected, message: str = "values differ") -> bool:
        return self.recorder.expect_eq(actual, expected, message)

    def ready(self):
        """Called once after the scene is loaded."""
        pass

    def process(self, frame: int):
        """Called once per frame while the scene is loaded."""
        pass

    def render(self, draw: ImageDraw.ImageDraw, size: Tuple[int, int]):
        """Draw the current state of the scene onto a canvas of ``size``."""
        pass

    def finish(self, passed: Optional[bool] = None):
        """Emit the outcome. Defaults to the expectation verdict.

        When comparing, the numbered screenshots taken must match the number
        of numbered baselines recorded for this scene.
        """
        if self._done:
            return
        self._done = True
        if self.comparator is not None and not self.comparator.record:
            self.expect_eq(self.screenshot_count,
                           self.comparator.numbered_truth_count(self.name),
                           "unexpected number of screenshots")
        if passed is None:
            passed = self.recorder.passed
        self.finished.emit(bool(passed) and self.recorder.passed)

    def take_screenshot(self, name: Optional[str] = None,
                        threshold: float = DEFAULT_RMS_THRESHOLD) -> bool:
        """Capture the current frame and compare it against its baseline.

        Unnamed screenshots are numbered per scene: ``<scene>_0000``,
        ``<scene>_0001``, ... Named screenshots are not counted. A mismatch is
        recorded as a failed expectation.
        """
        if name is None:
            name = f"{self.name}_{self.screenshot_count:04d}"
            self.screenshot_count += 1
        image = self.host.capture_frame()
        result = self.comparator.check(name, image, threshold=threshold)
        return self.expect(result.passed, result.message)
