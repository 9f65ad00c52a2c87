"""Screenshot comparator for visual regression in scene tests.

Captured frames are compared against recorded ground-truth images using a
normalized RMS difference. In record mode the captured frame becomes the new
ground truth instead.

Artifacts under the comparison directory, overwritten on each run:
    <test>_truth.png       ground truth (record mode only)
    <test>_candidate.png   frame captured by the current run (compare mode)
    <test>_diff.png        differing pixels highlighted (on mismatch)
    <test>_diff.json       full metric payload (on mismatch)
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image

from .framework import DEFAULT_RMS_THRESHOLD, DimensionMismatchError, ImageDecodeError

TRUTH_SUFFIX = "_truth.png"
CANDIDATE_SUFFIX = "_candidate.png"
DIFF_SUFFIX = "_diff.png"
REPORT_SUFFIX = "_diff.json"

# Largest per-channel delta a pixel may have and still not count in diff_pixels.
PIXEL_TOLERANCE = 3


@dataclass
class ScreenshotDiffResult:
    """Metric payload of a screenshot comparison."""

    identical: bool
    rms: float  # root-mean-square channel difference, 0.0 (same) .. 1.0
    max_channel_delta: int
    total_pixels: int
    diff_pixels: int  # pixels with a channel delta above PIXEL_TOLERANCE
    diff_pct: float
    bbox: Optional[tuple[int, int, int, int]]  # (min_x, min_y, max_x, max_y) or None

    def describe(self) -> str:
        return (
            f"rms={self.rms:.6f} max_channel_delta={self.max_channel_delta} "
            f"diff_pixels={self.diff_pixels}/{self.total_pixels} "
            f"({self.diff_pct:.4f}%) bbox={self.bbox}"
        )


@dataclass
class ScreenshotCheckResult:
    """Verdict for one screenshot check."""

    test_name: str
    passed: bool
    recorded: bool
    message: str
    diff: Optional[ScreenshotDiffResult] = None
    threshold: Optional[float] = None


def image_load(path: Path) -> Image.Image:
    """Load and fully decode an image as RGB.

    Raises:
        ImageDecodeError: if the file cannot be read or decoded.
    """
    try:
        with Image.open(path) as img:
            img.load()
            return img.convert("RGB")
    except OSError as exc:
        raise ImageDecodeError(f"Failed to decode screenshot {path}: {exc}") from exc


def image_save(path: Path, image: Image.Image):
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path)


def file_exists(path: Path) -> bool:
    return Path(path).is_file()


def compare_images(truth: Image.Image, candidate: Image.Image,
                   test_name: str = "screenshot") -> ScreenshotDiffResult:
    """Compare two equal-size images over their RGB channels.

    Raises:
        DimensionMismatchError: if the images differ in size.
    """
    if truth.size != candidate.size:
        raise DimensionMismatchError(test_name, truth.size, candidate.size)

    width, height = truth.size
    total_pixels = width * height
    if total_pixels == 0:
        return ScreenshotDiffResult(True, 0.0, 0, 0, 0, 0.0, None)

    arr_truth = np.asarray(truth.convert("RGB"), dtype=np.float64)
    arr_cand = np.asarray(candidate.convert("RGB"), dtype=np.float64)
    delta = np.abs(arr_truth - arr_cand)

    rms = float(np.sqrt(np.mean(np.square(delta))) / 255.0)
    max_channel_delta = int(delta.max())

    mask = delta.max(axis=2) > PIXEL_TOLERANCE
    diff_pixels = int(mask.sum())
    if diff_pixels == 0:
        bbox = None
        diff_pct = 0.0
    else:
        ys, xs = np.nonzero(mask)
        bbox = (int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max()))
        diff_pct = (diff_pixels / float(total_pixels)) * 100.0

    return ScreenshotDiffResult(
        identical=(max_channel_delta == 0),
        rms=rms,
        max_channel_delta=max_channel_delta,
        total_pixels=total_pixels,
        diff_pixels=diff_pixels,
        diff_pct=diff_pct,
        bbox=bbox,
    )


def write_diff_image(truth: Image.Image, candidate: Image.Image, diff_out: Path):
    """Write differing pixels in red on black; sub-tolerance changes in dark red."""
    arr_truth = np.asarray(truth.convert("RGB"), dtype=np.int16)
    arr_cand = np.asarray(candidate.convert("RGB"), dtype=np.int16)
    per_pixel = np.abs(arr_truth - arr_cand).max(axis=2)

    out = np.zeros(arr_truth.shape, dtype=np.uint8)
    out[per_pixel > 0] = (96, 0, 0)
    out[per_pixel > PIXEL_TOLERANCE] = (255, 0, 0)
    image_save(diff_out, Image.fromarray(out))


class ScreenshotComparator:
    """Records or checks screenshots for the whole run.

    The mode is fixed at construction: ``record=True`` turns every check
    into a ground-truth capture.
    """

    def __init__(self, comparison_dir: Path, record: bool = False):
        self.comparison_dir = Path(comparison_dir)
        self.record = record

    def truth_path(self, test_name: str) -> Path:
        return self.comparison_dir / f"{test_name}{TRUTH_SUFFIX}"

    def candidate_path(self, test_name: str) -> Path:
        return self.comparison_dir / f"{test_name}{CANDIDATE_SUFFIX}"

    def numbered_truth_count(self, scene_name: str) -> int:
        """Count the recorded ``<scene>_NNNN`` baselines of a scene."""
        if not self.comparison_dir.is_dir():
            return 0
        pattern = f"{scene_name}_[0-9][0-9][0-9][0-9]{TRUTH_SUFFIX}"
        return sum(1 for _ in self.comparison_dir.glob(pattern))

    def check(self, test_name: str, image: Image.Image,
              threshold: float = DEFAULT_RMS_THRESHOLD) -> ScreenshotCheckResult:
        """Record or compare ``image`` for ``test_name``.

        Raises:
            DimensionMismatchError: if the truth image has a different size.
            ImageDecodeError: if the truth image cannot be decoded.
        """
        truth_path = self.truth_path(test_name)
        if self.record:
            image_save(truth_path, image)
            return ScreenshotCheckResult(
                test_name=test_name,
                passed=True,
                recorded=True,
                message=f"Recorded ground truth {truth_path}",
            )

        image_save(self.candidate_path(test_name), image)

        if not file_exists(truth_path):
            return ScreenshotCheckResult(
                test_name=test_name,
                passed=False,
                recorded=False,
                message=(
                    f"No ground truth for {test_name} at {truth_path}. "
                    "Run with --record-screenshots to record it."
                ),
                threshold=threshold,
            )

        truth = image_load(truth_path)
        diff = compare_images(truth, image, test_name)
        if diff.rms <= threshold:
            return ScreenshotCheckResult(
                test_name=test_name,
                passed=True,
                recorded=False,
                message=f"Screenshot {test_name} matches ({diff.describe()})",
                diff=diff,
                threshold=threshold,
            )

        write_diff_image(truth, image, self.comparison_dir / f"{test_name}{DIFF_SUFFIX}")
        self._write_report(test_name, diff, threshold)
        return ScreenshotCheckResult(
            test_name=test_name,
            passed=False,
            recorded=False,
            message=(
                f"Screenshot {test_name} differs from ground truth "
                f"(threshold={threshold}): {diff.describe()}"
            ),
            diff=diff,
            threshold=threshold,
        )

    def _write_report(self, test_name: str, diff: ScreenshotDiffResult, threshold: float):
        json_out = self.comparison_dir / f"{test_name}{REPORT_SUFFIX}"
        json_out.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "test": test_name,
            "threshold": threshold,
            "truth": str(self.truth_path(test_name)),
            "candidate": str(self.candidate_path(test_name)),
            "metrics": asdict(diff),
        }
        json_out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
