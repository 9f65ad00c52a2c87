"""
Framework for the scene integration-test harness.

Provides:
- Error hierarchy for environment/host faults
- Default locations (test directory, screenshot comparison directory)
- Run configuration gathered from the command line and environment
- Exit codes shared by the driver and CLI
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

# Project root detection
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Default directories, overridable via environment
TEST_DIR = Path(os.environ.get("SCENEHARNESS_TEST_DIR", PROJECT_ROOT / "itest"))
COMPARISON_DIR = Path(
    os.environ.get("SCENEHARNESS_COMPARISON_DIR", PROJECT_ROOT / "_screenshots")
)

DEFAULT_FRAME_BUDGET = 600
DEFAULT_RMS_THRESHOLD = 0.1
DEFAULT_RESOLUTION = (300, 300)

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_FAULT = 2
EXIT_INTERRUPTED = 130


class PreflightError(Exception):
    """Raised when preflight checks fail."""
    pass


class HarnessFault(Exception):
    """An environment or host failure that cannot be reported as a test verdict.

    These abort the run; they are never folded into the failure count.
    """
    pass


class TestEnvironmentFault(HarnessFault):
    """A test body or hook raised instead of recording an expectation."""

    __test__ = False

    def __init__(self, module: str, case: str, cause: BaseException):
        super().__init__(f"{module}::{case} raised {type(cause).__name__}: {cause}")
        self.module = module
        self.case = case
        self.cause = cause


class SceneLoadError(HarnessFault):
    """A scene module could not be imported, resolved or instantiated."""
    pass


class ImageDecodeError(HarnessFault):
    """A stored screenshot could not be decoded."""
    pass


class DimensionMismatchError(HarnessFault):
    """Baseline and candidate screenshots have different sizes."""

    def __init__(self, test_name: str, truth_size: Tuple[int, int], candidate_size: Tuple[int, int]):
        super().__init__(
            f"Screenshot dimensions differ for {test_name}: "
            f"truth={truth_size}, candidate={candidate_size}"
        )
        self.test_name = test_name
        self.truth_size = truth_size
        self.candidate_size = candidate_size


def parse_resolution(text: str) -> Tuple[int, int]:
    """Parse a geometry string like ``1280x720``."""
    try:
        width, height = (int(part) for part in text.lower().split("x"))
    except ValueError:
        raise PreflightError(f"Invalid resolution {text!r}, expected WIDTHxHEIGHT")
    if width <= 0 or height <= 0:
        raise PreflightError(f"Invalid resolution {text!r}, dimensions must be positive")
    return width, height


@dataclass
class HarnessConfig:
    """Settings for a single harness run."""
    test_dir: Path = TEST_DIR
    comparison_dir: Path = COMPARISON_DIR
    record_screenshots: bool = False
    order: str = "lifo"
    frame_budget: int = DEFAULT_FRAME_BUDGET
    warmup_frames: int = 0
    resolution: Tuple[int, int] = DEFAULT_RESOLUTION
    name_filter: Tuple[str, ...] = ()
    report_path: Optional[Path] = None
    verbose: bool = False

    def preflight(self):
        """Validate settings before anything is loaded."""
        if not self.test_dir.is_dir():
            raise PreflightError(f"Test directory not found: {self.test_dir}")
        if self.frame_budget <= 0:
            raise PreflightError(f"Frame budget must be positive, got {self.frame_budget}")
        if self.warmup_frames < 0:
            raise PreflightError(f"Warm-up frames must not be negative, got {self.warmup_frames}")
        self.comparison_dir.mkdir(parents=True, exist_ok=True)
        if self.verbose:
            print(f"✓ Test directory: {self.test_dir}")
            print(f"✓ Comparison directory: {self.comparison_dir}")


def log_error(message: str):
    """Print a diagnostic to stderr."""
    print(message, file=sys.stderr)
