"""Soft-failing expectations shared by unit tests and scene tests."""

import sys
from typing import Any, List

import numpy as np


class ExpectationRecorder:
    """Tracks whether any expectation failed, without aborting the test.

    Every expectation in a test body is evaluated and reported, so one run
    surfaces as many problems as possible.
    """

    def __init__(self):
        self.passed = True
        self.messages: List[str] = []

    def expect(self, condition: Any, message: str = "expectation failed") -> bool:
        """Record a failure when ``condition`` is falsy. Returns the condition."""
        if condition:
            return True
        print(f"  ✗ {message}", file=sys.stderr)
        self.messages.append(message)
        self.passed = False
        return False

    def expect_eq(self, actual: Any, expected: Any, message: str = "values differ") -> bool:
        """Record a failure when ``actual != expected`` (plain equality, no tolerance).

        Arrays compare equal when they have the same shape and elements.
        """
        if isinstance(actual, np.ndarray) or isinstance(expected, np.ndarray):
            equal = np.array_equal(actual, expected)
        else:
            equal = actual == expected
        return self.expect(bool(equal), f"{message}: {actual!r} != {expected!r}")
