"""
Harness driver: discovery, unit tests, then scene tests, then the verdict.

All run state lives in a single HarnessState that is handed explicitly to
discovery, the unit executor and the scheduler.
"""

from __future__ import annotations

import json
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .discovery import EntryKind, load_unit_modules, resolve_scene, scan
from .framework import EXIT_FAILED, EXIT_PASSED, HarnessConfig
from .host import HeadlessHost, Host
from .scene import SceneTest, SceneTestDescriptor
from .scheduler import SceneTestScheduler, SchedulerState, SchedulingOrder
from .screenshot_compare import ScreenshotComparator
from .unit import TestCaseResult, run_unit_module


@dataclass(frozen=True)
class SceneResult:
    name: str
    passed: bool
    messages: Tuple[str, ...] = ()
    timed_out: bool = False


@dataclass
class HarnessState:
    """Everything that changes during a run."""

    pending: List[SceneTestDescriptor] = field(default_factory=list)
    active: Optional[SceneTest] = None
    frames_remaining: int = 0
    failures: int = 0
    terminal: bool = False
    unit_results: List[TestCaseResult] = field(default_factory=list)
    scene_results: List[SceneResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def record_unit(self, results: List[TestCaseResult]) -> bool:
        """Add a module's results. Returns the module verdict."""
        self.unit_results.extend(results)
        failed = sum(1 for r in results if not r.passed)
        self.failures += failed
        return failed == 0

    def record_scene(self, name: str, passed: bool, messages: Tuple[str, ...] = (),
                     timed_out: bool = False):
        self.scene_results.append(SceneResult(name, passed, tuple(messages), timed_out))

    @property
    def exit_code(self) -> int:
        return EXIT_PASSED if self.failures == 0 else EXIT_FAILED


def discover(state: HarnessState, config: HarnessConfig) -> HarnessState:
    """Run unit test modules as they are found and queue scene tests.

    Raises:
        TestEnvironmentFault: if a unit test file or case raises.
        SceneLoadError: if a scene test file cannot be resolved.
    """
    for entry in scan(config.test_dir, config.name_filter):
        if entry.kind is EntryKind.UNIT:
            for module in load_unit_modules(entry.path):
                results = run_unit_module(module)
                if not state.record_unit(results):
                    print(f"✗ {module.module_name}: {sum(not r.passed for r in results)} failed",
                          file=sys.stderr)
                elif config.verbose:
                    print(f"✓ {module.module_name}: {len(results)} passed")
        elif entry.kind is EntryKind.SCENE:
            descriptor = resolve_scene(entry.path, config.frame_budget)
            state.pending.append(descriptor)
            if config.verbose:
                print(f"  Queued scene test {descriptor.name}")
        else:
            state.skipped.append(entry.path.name)
            print(f"⚠ Skipping unrecognized test entry: {entry.path.name}")
    return state


class Harness:
    """Top-level owner of a harness run."""

    def __init__(self, config: HarnessConfig, host: Optional[Host] = None):
        self.config = config
        self.state = HarnessState()
        self.comparator = ScreenshotComparator(config.comparison_dir, record=config.record_screenshots)
        self.host = host if host is not None else HeadlessHost(self.comparator, config.resolution)
        self.scheduler = SceneTestScheduler(
            self.state,
            self.host,
            order=SchedulingOrder(config.order),
            warmup_frames=config.warmup_frames,
            verbose=config.verbose,
        )

    def run_unit_tests(self):
        print("\n[1/2] Unit tests")
        discover(self.state, self.config)

    def run_scene_tests(self):
        print(f"\n[2/2] Scene tests ({len(self.state.pending)} queued, "
              f"{self.scheduler.order.value} order)")
        self.host.run(lambda: self.scheduler.tick() is SchedulerState.DRAINED)

    def run(self) -> int:
        """Run everything and return the process exit code."""
        self.run_unit_tests()
        self.run_scene_tests()
        self.print_summary()
        if self.config.report_path is not None:
            self.write_report(self.config.report_path)
        return self.state.exit_code

    def print_summary(self):
        state = self.state
        unit_failed = [r.label for r in state.unit_results if not r.passed]
        scene_failed = [r.name for r in state.scene_results if not r.passed]
        total = len(state.unit_results) + len(state.scene_results)

        print("\n" + "=" * 70)
        print("SUMMARY")
        print("=" * 70)
        print(f"Unit test cases: {len(state.unit_results)} ({len(unit_failed)} failed)")
        print(f"Scene tests:     {len(state.scene_results)} ({len(scene_failed)} failed)")
        if state.skipped:
            print(f"Skipped entries: {len(state.skipped)}")
        for label in unit_failed + scene_failed:
            print(f"  ✗ {label}")

        if state.failures == 0:
            print(f"\n✓ ALL {total} TESTS PASSED")
        else:
            print(f"\n✗ {state.failures} OF {total} TESTS FAILED")

    def write_report(self, path: Path):
        payload = {
            "passed": self.state.failures == 0,
            "failures": self.state.failures,
            "record_screenshots": self.config.record_screenshots,
            "unit": [asdict(r) for r in self.state.unit_results],
            "scene": [asdict(r) for r in self.state.scene_results],
            "skipped": list(self.state.skipped),
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Report written to: {path}")
