from __future__ import annotations

from typing import Callable, Optional, Protocol, Tuple

import numpy as np

from pose_kit.types import DetectionSet
from pose_kit.visualize import draw_poses


class Renderer(Protocol):
    def render(self, frame: np.ndarray, detections: DetectionSet) -> None: ...

    def clear(self) -> None: ...


class NullRenderer:
    """Keeps the latest detections and draws nothing."""

    def __init__(self) -> None:
        self.last: Optional[DetectionSet] = None

    def render(self, frame: np.ndarray, detections: DetectionSet) -> None:
        self.last = detections

    def clear(self) -> None:
        self.last = None


class WindowRenderer:
    """
    Shows annotated frames in an OpenCV window.

    Pressing `q` or ESC calls `on_quit` (the runner wires it to the scheduler's stop).
    """

    def __init__(
        self,
        canvas_size: Tuple[int, int],
        *,
        window_name: str = "live-pose",
        on_quit: Optional[Callable[[], None]] = None,
    ):
        self.canvas_size = canvas_size
        self.window_name = window_name
        self.on_quit = on_quit
        self._opened = False

    def render(self, frame: np.ndarray, detections: DetectionSet) -> None:
        import cv2

        vis = draw_poses(frame, detections, canvas_size=self.canvas_size)
        cv2.imshow(self.window_name, vis)
        self._opened = True
        key = cv2.waitKey(1) & 0xFF
        if key in (ord("q"), 27) and self.on_quit is not None:
            self.on_quit()

    def clear(self) -> None:
        import cv2

        if self._opened:
            cv2.destroyWindow(self.window_name)
            self._opened = False
