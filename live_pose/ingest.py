from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import cv2
import numpy as np

from pose_kit.errors import InvalidFrame

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """
    What the scheduler needs from a video source.

    `read()` returns the current frame or None when none is available;
    `is_streaming` is False once the source has closed.
    """

    @property
    def is_streaming(self) -> bool: ...

    def read(self) -> Optional[np.ndarray]: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class CaptureInfo:
    fps: Optional[float]
    width: Optional[int]
    height: Optional[int]


def open_capture(*, video: Optional[str] = None, webcam: Optional[int] = None, rtsp: Optional[str] = None) -> cv2.VideoCapture:
    sources = [video is not None, webcam is not None, rtsp is not None]
    if sum(bool(s) for s in sources) != 1:
        raise ValueError("Exactly one of video/webcam/rtsp must be provided.")

    if video is not None:
        cap = cv2.VideoCapture(video)
    elif rtsp is not None:
        cap = cv2.VideoCapture(rtsp)
    else:
        cap = cv2.VideoCapture(int(webcam))

    if not cap.isOpened():
        raise RuntimeError("Failed to open video source.")
    return cap


def get_capture_info(cap: cv2.VideoCapture) -> CaptureInfo:
    fps = cap.get(cv2.CAP_PROP_FPS)
    if fps is None or fps <= 0:
        fps_val = None
    else:
        fps_val = float(fps)

    w = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
    h = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
    w_val = int(w) if w and w > 0 else None
    h_val = int(h) if h and h > 0 else None

    return CaptureInfo(fps=fps_val, width=w_val, height=h_val)


class CaptureSource:
    """
    `FrameSource` over a `cv2.VideoCapture` (file, webcam or RTSP).

    The first failed read closes the source; there is no reconnect.
    """

    def __init__(self, cap: cv2.VideoCapture):
        self.cap = cap
        self._ended = not cap.isOpened()

    @property
    def is_streaming(self) -> bool:
        return not self._ended

    def read(self) -> Optional[np.ndarray]:
        if self._ended:
            return None
        ok, frame = self.cap.read()
        if not ok or frame is None:
            logger.info("Capture returned no frame; closing source")
            self.close()
            return None
        return frame

    def close(self) -> None:
        self._ended = True
        self.cap.release()


def load_image(path: str) -> np.ndarray:
    img = cv2.imread(path)
    if img is None:
        raise InvalidFrame(f"Could not read image at path: {path}")
    return img


class ImageSource:
    """
    `FrameSource` over one still image: a single frame, then closed.
    """

    def __init__(self, image: np.ndarray):
        self._image: Optional[np.ndarray] = image

    @classmethod
    def from_path(cls, path: str) -> "ImageSource":
        return cls(load_image(path))

    @property
    def is_streaming(self) -> bool:
        return self._image is not None

    def read(self) -> Optional[np.ndarray]:
        image = self._image
        self._image = None
        return image

    def close(self) -> None:
        self._image = None
