"""Frame-stepped integration test harness with screenshot comparison."""

from .expectations import ExpectationRecorder
from .framework import (
    DimensionMismatchError,
    HarnessConfig,
    HarnessFault,
    ImageDecodeError,
    PreflightError,
    SceneLoadError,
    TestEnvironmentFault,
)
from .harness import Harness, HarnessState
from .scene import SceneTest, SceneTestDescriptor, Signal
from .scheduler import SceneTestScheduler, SchedulerState, SchedulingOrder
from .screenshot_compare import ScreenshotComparator, compare_images
from .unit import TestCaseResult, UnitTest

__version__ = "0.1.0"
