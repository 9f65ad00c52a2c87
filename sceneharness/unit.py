"""
Unit test modules and their executor.

A unit test module is a ``UnitTest`` subclass. Its test cases are the methods
whose names start with ``test_``; they are registered, in declaration order,
when the class is created::

    class TransformTests(UnitTest):
        def before_each(self):
            self.identity = Transform.identity()

        def test_compose_identity(self):
            self.expect_eq(self.identity.compose(self.identity), self.identity, "identity")

Every case runs on a fresh instance, so no state leaks between cases.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from .expectations import ExpectationRecorder
from .framework import TestEnvironmentFault

CASE_PREFIX = "test_"


@dataclass(frozen=True)
class TestCaseResult:
    """Outcome of a single unit test case."""

    __test__ = False

    module: str
    case: str
    passed: bool
    messages: Tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return f"{self.module}::{self.case}"


class UnitTest:
    """Base class for synchronous test modules."""

    # Populated per subclass by __init_subclass__.
    cases: Dict[str, Callable] = {}
    module_name: str = ""
    explicit_name: bool = False

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        registry: Dict[str, Callable] = {}
        # Inherited cases first, then the ones this class declares, each in
        # declaration order. Overrides keep their original position.
        for base in reversed(cls.__mro__[1:]):
            for name, func in getattr(base, "cases", {}).items():
                registry[name] = func
        for name, attr in cls.__dict__.items():
            if name.startswith(CASE_PREFIX) and callable(attr):
                registry[name] = attr
        cls.cases = registry
        # Discovery renames classes after their file unless they chose a name.
        cls.explicit_name = "module_name" in cls.__dict__
        if not cls.explicit_name:
            cls.module_name = cls.__name__

    def __init__(self):
        self.recorder = ExpectationRecorder()

    def expect(self, condition, message: str = "expectation failed") -> bool:
        return self.recorder.expect(condition, message)

    def expect_eq(self, actual, expected, message: str = "values differ") -> bool:
        return self.recorder.expect_eq(actual, expected, message)

    def before_each(self):
        pass

    def after_each(self):
        pass


def run_case(module: type, case: str) -> TestCaseResult:
    """Run one case of ``module`` on a fresh instance.

    Raises:
        TestEnvironmentFault: if the hooks or the body raise.
    """
    name = module.module_name
    try:
        instance = module()
        instance.before_each()
        getattr(instance, case)()
        instance.after_each()
    except Exception as exc:
        raise TestEnvironmentFault(name, case, exc) from exc
    return TestCaseResult(
        module=name,
        case=case,
        passed=instance.recorder.passed,
        messages=tuple(instance.recorder.messages),
    )


def run_unit_module(module: type) -> List[TestCaseResult]:
    """Run every registered case of ``module`` in declaration order.

    Prints one ``<module>::<case>: passed|FAILED`` line per case. The module
    verdict is ``all(r.passed for r in results)``; an empty module passes.
    """
    results = []
    for case in module.cases:
        result = run_case(module, case)
        status = "passed" if result.passed else "FAILED"
        print(f"{result.label}: {status}")
        results.append(result)
    return results
