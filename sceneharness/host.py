"""
In-process headless host for running scene tests without a render engine.

Implements the host side of the harness: frame stepping, scene lifecycle and
frame capture. Frames are rendered in software into a Pillow canvas by the
active scene's ``render()`` hook.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Tuple

from PIL import Image, ImageDraw

from .framework import DEFAULT_RESOLUTION, HarnessFault, SceneLoadError, TestEnvironmentFault
from .scene import SceneTest, SceneTestDescriptor
from .screenshot_compare import ScreenshotComparator

BACKGROUND = (32, 32, 32)


class Host(Protocol):
    """What the harness needs from a rendering host."""

    def tick(self) -> bool: ...

    def load_scene(self, descriptor: SceneTestDescriptor) -> SceneTest: ...

    def unload_scene(self, scene: SceneTest) -> None: ...

    def capture_frame(self) -> Image.Image: ...

    def run(self, on_frame: Callable[[], bool]) -> int: ...


class HeadlessHost:
    """Software host: one scene at a time, rendered on demand.

    Each ``tick()`` readies a freshly loaded scene, advances the active scene
    by one frame and then invokes the frame callback (the scheduler).
    """

    def __init__(self, comparator: ScreenshotComparator,
                 resolution: Tuple[int, int] = DEFAULT_RESOLUTION,
                 background: Tuple[int, int, int] = BACKGROUND):
        self.comparator = comparator
        self.resolution = resolution
        self.background = background
        self.frame = 0
        self.scene: Optional[SceneTest] = None
        self._scene_frame = 0
        self._needs_ready = False
        self.on_frame: Optional[Callable[[], object]] = None

    def load_scene(self, descriptor: SceneTestDescriptor) -> SceneTest:
        """Instantiate a scene. Its ``ready()`` runs at the start of the next frame.

        Raises:
            SceneLoadError: if the scene cannot be constructed.
        """
        try:
            scene = descriptor.scene_class()
        except Exception as exc:
            raise SceneLoadError(f"Failed to instantiate scene {descriptor.name}: {exc}") from exc
        scene.name = descriptor.name
        scene.host = self
        scene.comparator = self.comparator
        self.scene = scene
        self._scene_frame = 0
        self._needs_ready = True
        return scene

    def unload_scene(self, scene: SceneTest):
        if self.scene is scene:
            self.scene = None
            self._needs_ready = False
        scene.host = None

    def tick(self) -> bool:
        """Advance one frame. Returns whether a scene is active afterwards."""
        self.frame += 1
        scene = self.scene
        if scene is not None:
            hook = "ready"
            try:
                if self._needs_ready:
                    self._needs_ready = False
                    scene.ready()
                hook = "process"
                self._scene_frame += 1
                scene.process(self._scene_frame)
            except HarnessFault:
                raise
            except Exception as exc:
                raise TestEnvironmentFault(scene.name, hook, exc) from exc
        if self.on_frame is not None:
            self.on_frame()
        return self.scene is not None

    def capture_frame(self) -> Image.Image:
        """Render the active scene into a new RGB image."""
        image = Image.new("RGB", self.resolution, self.background)
        if self.scene is not None:
            self.scene.render(ImageDraw.Draw(image), image.size)
        return image

    def run(self, on_frame: Callable[[], bool]) -> int:
        """Tick until ``on_frame`` returns True. Returns the number of frames run."""
        done = False

        def frame_callback():
            nonlocal done
            done = bool(on_frame())

        self.on_frame = frame_callback
        try:
            frames = 0
            while not done:
                self.tick()
                frames += 1
            return frames
        finally:
            self.on_frame = None
