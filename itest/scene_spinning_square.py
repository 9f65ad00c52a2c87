"""A square rotated a fixed step per frame, screenshotted at two poses."""

import math

from sceneharness import SceneTest

FRAME_BUDGET = 120

STEP = math.pi / 40
HALF_SIZE = 60


class SpinningSquare(SceneTest):
    def ready(self):
        self.angle = 0.0

    def process(self, frame):
        self.angle = STEP * frame
        if frame == 10:
            self.take_screenshot()
        elif frame == 20:
            self.take_screenshot()
            self.expect(abs(self.angle - math.pi / 2) < 1e-9, "square turned a quarter")
            self.finish()

    def render(self, draw, size):
        width, height = size
        cx, cy = width / 2, height / 2
        c, s = math.cos(self.angle), math.sin(self.angle)
        corners = []
        for x, y in ((-1, -1), (1, -1), (1, 1), (-1, 1)):
            corners.append((cx + HALF_SIZE * (x * c - y * s), cy + HALF_SIZE * (x * s + y * c)))
        draw.polygon(corners, fill=(200, 40, 40))
