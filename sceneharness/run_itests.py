#!/usr/bin/env python3
"""Run the integration tests in a test directory.

Unit test modules (test_*.py) run first, synchronously. Scene tests
(scene_*.py) then run one at a time on the headless host, each with a frame
budget. Exit status: 0 all passed, 1 any test failed, 2 environment/host
fault, 130 interrupted.

Usage:
  sceneharness                          # Run everything in ./itest
  sceneharness --test-dir path/to/tests
  sceneharness --record-screenshots     # Record ground-truth screenshots
  sceneharness -t transform             # Only files whose name contains "transform"
  sceneharness --list                   # Classify test files, run nothing
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from .discovery import describe, scan
from .framework import (
    COMPARISON_DIR,
    DEFAULT_FRAME_BUDGET,
    EXIT_FAULT,
    EXIT_INTERRUPTED,
    EXIT_PASSED,
    TEST_DIR,
    HarnessConfig,
    HarnessFault,
    PreflightError,
    log_error,
    parse_resolution,
)
from .harness import Harness


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Frame-stepped integration test harness with screenshot comparison",
    )
    parser.add_argument(
        "--test-dir",
        type=Path,
        default=TEST_DIR,
        help=f"Directory scanned for test_*.py and scene_*.py (default: {TEST_DIR})",
    )
    parser.add_argument(
        "--comparison-dir",
        type=Path,
        default=COMPARISON_DIR,
        help=f"Directory for ground-truth and candidate screenshots (default: {COMPARISON_DIR})",
    )
    parser.add_argument(
        "--record-screenshots",
        action="store_true",
        help="Record captured frames as the new ground truth instead of comparing",
    )
    parser.add_argument(
        "--order",
        default="lifo",
        choices=["lifo", "fifo"],
        help="Scene test order: lifo (last discovered first) or fifo (default: lifo)",
    )
    parser.add_argument(
        "--frame-budget",
        type=int,
        default=DEFAULT_FRAME_BUDGET,
        help=(
            "Frames a scene test may run before it is failed, unless the scene "
            f"sets FRAME_BUDGET (default: {DEFAULT_FRAME_BUDGET})"
        ),
    )
    parser.add_argument(
        "--warmup-frames",
        type=int,
        default=0,
        help="Frames to render before the first scene test loads (default: 0)",
    )
    parser.add_argument(
        "--resolution",
        default="300x300",
        help="Headless render resolution as WIDTHxHEIGHT (default: 300x300)",
    )
    parser.add_argument(
        "-t", "--test",
        action="append",
        default=[],
        metavar="NAME",
        help="Only run test files whose name contains NAME (repeatable)",
    )
    parser.add_argument(
        "--list", action="store_true", help="List classified test files and exit",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write a JSON report of all results to this path",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose output",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> HarnessConfig:
    return HarnessConfig(
        test_dir=args.test_dir,
        comparison_dir=args.comparison_dir,
        record_screenshots=args.record_screenshots,
        order=args.order,
        frame_budget=args.frame_budget,
        warmup_frames=args.warmup_frames,
        resolution=parse_resolution(args.resolution),
        name_filter=tuple(args.test),
        report_path=args.report,
        verbose=args.verbose,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    print("=" * 70)
    print("Scene Integration Tests")
    print("=" * 70)

    try:
        config = config_from_args(args)
        config.preflight()

        if args.list:
            for line in describe(scan(config.test_dir, config.name_filter)):
                print(line)
            return EXIT_PASSED

        print(f"Test directory: {config.test_dir}")
        print(f"Screenshots: {'RECORD' if config.record_screenshots else 'compare'} "
              f"({config.comparison_dir})")
        return Harness(config).run()

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return EXIT_INTERRUPTED
    except PreflightError as e:
        log_error(f"\n✗ FAIL: Preflight checks failed\n\n{e}")
        return EXIT_FAULT
    except HarnessFault as e:
        log_error(f"\n✗ FAIL: {e}")
        if e.__cause__ is not None and args.verbose:
            import traceback

            traceback.print_exception(type(e.__cause__), e.__cause__, e.__cause__.__traceback__)
        return EXIT_FAULT


if __name__ == "__main__":
    sys.exit(main())
