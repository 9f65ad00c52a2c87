"""
Test discovery and classification.

Scans a test directory (non-recursively, in directory-listing order) and
classifies each entry:
    test_*.py   unit test module, its UnitTest subclasses run immediately
    scene_*.py  scene test module, resolved to a SceneTestDescriptor
    anything else is skipped with a notice
"""

from __future__ import annotations

import importlib.util
import os
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Iterable, List, Optional, Sequence

from .framework import DEFAULT_FRAME_BUDGET, SceneLoadError, TestEnvironmentFault
from .scene import SceneTest, SceneTestDescriptor
from .unit import UnitTest

UNIT_PREFIX = "test_"
SCENE_PREFIX = "scene_"
MODULE_SUFFIX = ".py"


class EntryKind(Enum):
    UNIT = "unit"
    SCENE = "scene"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class DiscoveredEntry:
    path: Path
    kind: EntryKind

    @property
    def name(self) -> str:
        return self.path.stem


def classify(path: Path) -> EntryKind:
    """Classify a directory entry by its name alone."""
    name = path.name
    if path.is_dir() or not name.endswith(MODULE_SUFFIX):
        return EntryKind.UNRECOGNIZED
    if name.startswith(UNIT_PREFIX):
        return EntryKind.UNIT
    if name.startswith(SCENE_PREFIX):
        return EntryKind.SCENE
    return EntryKind.UNRECOGNIZED


def matches_filter(path: Path, name_filter: Sequence[str]) -> bool:
    if not name_filter:
        return True
    return any(wanted in path.stem for wanted in name_filter)


def scan(test_dir: Path, name_filter: Sequence[str] = ()) -> List[DiscoveredEntry]:
    """List and classify ``test_dir`` in the order the filesystem returns.

    No sorting is applied. Entries excluded by ``name_filter`` are dropped
    silently; unrecognized entries are kept so the caller can report them.
    """
    entries = []
    with os.scandir(test_dir) as listing:
        for dir_entry in listing:
            path = Path(dir_entry.path)
            if not matches_filter(path, name_filter):
                continue
            entries.append(DiscoveredEntry(path, classify(path)))
    return entries


def import_test_file(path: Path) -> ModuleType:
    """Import a test file as a standalone module named after its stem.

    No bytecode is written, so the test directory only ever holds tests.
    """
    module_name = f"_itest_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot load {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    dont_write_bytecode = sys.dont_write_bytecode
    sys.dont_write_bytecode = True
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    finally:
        sys.dont_write_bytecode = dont_write_bytecode
    return module


def _defined_here(module: ModuleType, base: type) -> List[type]:
    found = []
    for value in vars(module).values():
        if (isinstance(value, type) and issubclass(value, base) and value is not base
                and value.__module__ == module.__name__):
            found.append(value)
    return found


def load_unit_modules(path: Path) -> List[type]:
    """Import a unit test file and return its UnitTest subclasses in definition order.

    A file with a single class reports under the file stem; with several,
    each reports as ``<stem>.<ClassName>``.

    Raises:
        TestEnvironmentFault: if the file fails to import.
    """
    try:
        module = import_test_file(path)
    except Exception as exc:
        raise TestEnvironmentFault(path.stem, "<import>", exc) from exc

    classes = _defined_here(module, UnitTest)
    for cls in classes:
        if cls.explicit_name:
            continue
        cls.module_name = path.stem if len(classes) == 1 else f"{path.stem}.{cls.__name__}"
    return classes


def resolve_scene(path: Path, default_budget: int = DEFAULT_FRAME_BUDGET) -> SceneTestDescriptor:
    """Import a scene test file and describe it for the scheduler.

    Raises:
        SceneLoadError: if the file fails to import or does not define
            exactly one SceneTest subclass (or a ``SCENE`` attribute).
    """
    try:
        module = import_test_file(path)
    except Exception as exc:
        raise SceneLoadError(f"Failed to import scene test {path}: {exc}") from exc

    scene_class: Optional[type] = getattr(module, "SCENE", None)
    if scene_class is None:
        candidates = _defined_here(module, SceneTest)
        if len(candidates) != 1:
            raise SceneLoadError(
                f"{path} must define exactly one SceneTest subclass or set SCENE, "
                f"found {len(candidates)}"
            )
        scene_class = candidates[0]
    elif not (isinstance(scene_class, type) and issubclass(scene_class, SceneTest)):
        raise SceneLoadError(f"{path}: SCENE is not a SceneTest subclass")

    budget = getattr(module, "FRAME_BUDGET", default_budget)
    if not isinstance(budget, int) or budget <= 0:
        raise SceneLoadError(f"{path}: FRAME_BUDGET must be a positive integer, got {budget!r}")

    return SceneTestDescriptor(
        name=path.stem,
        path=path,
        scene_class=scene_class,
        frame_budget=budget,
    )


def describe(entries: Iterable[DiscoveredEntry]) -> List[str]:
    """Human-readable listing used by ``--list``."""
    return [f"  [{entry.kind.value:>12}] {entry.path.name}" for entry in entries]
