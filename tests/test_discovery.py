#!/usr/bin/env python3
"""Discovery: classification of test directory entries and module loading."""

from __future__ import annotations

import os
import tempfile
import textwrap
from pathlib import Path

from sceneharness.discovery import (
    EntryKind,
    classify,
    load_unit_modules,
    resolve_scene,
    scan,
)
from sceneharness.framework import SceneLoadError, TestEnvironmentFault


def _write(path: Path, source: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(source), encoding="utf-8")
    return path


def test_classify_by_name():
    with tempfile.TemporaryDirectory() as td:
        root = Path(td)
        (root / "subdir").mkdir()
        cases = {
            "test_math.py": EntryKind.UNIT,
            "scene_cube.py": EntryKind.SCENE,
            "helpers.py": EntryKind.UNRECOGNIZED,
            "test_data.json": EntryKind.UNRECOGNIZED,
            "scene_cube.tscn": EntryKind.UNRECOGNIZED,
            "__init__.py": EntryKind.UNRECOGNIZED,
        }
        for name in cases:
            (root / name).write_text("", encoding="utf-8")
        for name, kind in cases.items():
            assert classify(root / name) is kind, name
        assert classify(root / "subdir") is EntryKind.UNRECOGNIZED


def test_scan_is_not_recursive_and_keeps_listing_order():
    with tempfile.TemporaryDirectory() as td:
        root = Path(td)
        for name in ("test_b.py", "scene_a.py", "README.txt"):
            (root / name).write_text("", encoding="utf-8")
        _write(root / "nested" / "test_hidden.py", "")

        entries = scan(root)
        listing = [entry.name for entry in os.scandir(root)]
        assert [e.path.name for e in entries] == listing
        assert "test_hidden.py" not in [e.path.name for e in entries]


def test_scan_name_filter_drops_other_files():
    with tempfile.TemporaryDirectory() as td:
        root = Path(td)
        for name in ("test_transform.py", "test_mesh.py", "scene_transform.py"):
            (root / name).write_text("", encoding="utf-8")
        names = sorted(e.path.name for e in scan(root, ("transform",)))
        assert names == ["scene_transform.py", "test_transform.py"]


def test_load_unit_modules_names_by_file_stem():
    with tempfile.TemporaryDirectory() as td:
        path = _write(Path(td) / "test_single.py", """
            from sceneharness import UnitTest

            class Only(UnitTest):
                def test_one(self):
                    pass
        """)
        modules = load_unit_modules(path)
        assert [m.module_name for m in modules] == ["test_single"]
        assert list(modules[0].cases) == ["test_one"]


def test_load_unit_modules_several_classes_and_ignores_imports():
    with tempfile.TemporaryDirectory() as td:
        path = _write(Path(td) / "test_multi.py", """
            from sceneharness import UnitTest
            from sceneharness.unit import UnitTest as Alias

            class First(UnitTest):
                def test_a(self):
                    pass

            class Second(UnitTest):
                module_name = "custom"

                def test_b(self):
                    pass
        """)
        modules = load_unit_modules(path)
        assert [m.module_name for m in modules] == ["test_multi.First", "custom"]


def test_load_unit_modules_keeps_explicit_name_of_single_class():
    with tempfile.TemporaryDirectory() as td:
        path = _write(Path(td) / "test_named.py", """
            from sceneharness import UnitTest

            class Named(UnitTest):
                module_name = "geometry"

                def test_one(self):
                    pass
        """)
        modules = load_unit_modules(path)
        assert [m.module_name for m in modules] == ["geometry"]


def test_import_writes_no_bytecode_into_test_dir():
    with tempfile.TemporaryDirectory() as td:
        path = _write(Path(td) / "test_plain.py", """
            from sceneharness import UnitTest

            class Plain(UnitTest):
                def test_one(self):
                    pass
        """)
        load_unit_modules(path)
        load_unit_modules(path)
        assert [e.path.name for e in scan(Path(td))] == ["test_plain.py"]


def test_unit_import_error_is_environment_fault():
    with tempfile.TemporaryDirectory() as td:
        path = _write(Path(td) / "test_broken.py", "import definitely_not_a_module_xyz\n")
        try:
            load_unit_modules(path)
        except TestEnvironmentFault as exc:
            assert exc.module == "test_broken"
        else:
            raise AssertionError("expected TestEnvironmentFault")


def test_resolve_scene_reads_budget_and_class():
    with tempfile.TemporaryDirectory() as td:
        path = _write(Path(td) / "scene_budget.py", """
            from sceneharness import SceneTest

            FRAME_BUDGET = 42

            class Budgeted(SceneTest):
                pass
        """)
        descriptor = resolve_scene(path)
        assert descriptor.name == "scene_budget"
        assert descriptor.frame_budget == 42
        assert descriptor.scene_class.__name__ == "Budgeted"
        assert descriptor.signal == "finished"


def test_resolve_scene_default_budget():
    with tempfile.TemporaryDirectory() as td:
        path = _write(Path(td) / "scene_plain.py", """
            from sceneharness import SceneTest

            class Plain(SceneTest):
                pass
        """)
        assert resolve_scene(path).frame_budget == 600
        assert resolve_scene(path, default_budget=30).frame_budget == 30


def test_resolve_scene_requires_single_scene_or_explicit_choice():
    with tempfile.TemporaryDirectory() as td:
        ambiguous = _write(Path(td) / "scene_two.py", """
            from sceneharness import SceneTest

            class A(SceneTest):
                pass

            class B(SceneTest):
                pass
        """)
        try:
            resolve_scene(ambiguous)
        except SceneLoadError as exc:
            assert "found 2" in str(exc)
        else:
            raise AssertionError("expected SceneLoadError")

        chosen = _write(Path(td) / "scene_chosen.py", """
            from sceneharness import SceneTest

            class A(SceneTest):
                pass

            class B(SceneTest):
                pass

            SCENE = B
        """)
        assert resolve_scene(chosen).scene_class.__name__ == "B"


def test_resolve_scene_import_error_is_load_error():
    with tempfile.TemporaryDirectory() as td:
        path = _write(Path(td) / "scene_syntax.py", "def broken(:\n")
        try:
            resolve_scene(path)
        except SceneLoadError:
            pass
        else:
            raise AssertionError("expected SceneLoadError")


if __name__ == "__main__":  # pragma: no cover
    for name, func in list(globals().items()):
        if name.startswith("test_") and callable(func):
            func()
    print("PASS")
