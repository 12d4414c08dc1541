from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import InvalidFrame


@dataclass(frozen=True)
class PreprocessConfig:
    """
    - bgr_input: frames come from OpenCV (BGR); convert to RGB before normalizing
    """

    bgr_input: bool = True


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    x_ratio: float
    y_ratio: float
    orig_size: Tuple[int, int]


def _check_frame(frame: np.ndarray) -> Tuple[int, int]:
    if frame is None or not hasattr(frame, "shape"):
        raise InvalidFrame("frame must be a NumPy array (H, W, 3).")
    if frame.ndim != 3 or frame.shape[2] != 3:
        raise InvalidFrame(f"Expected frame shape (H, W, 3), got {getattr(frame, 'shape', None)}")
    h, w = frame.shape[:2]
    if h == 0 or w == 0:
        raise InvalidFrame(f"Zero-area frame: {w}x{h}")
    return h, w


def pad_to_square(frame: np.ndarray) -> np.ndarray:
    """
    Zero-pad the frame on the bottom and right into a max(w, h) square.

    Content stays anchored at (0, 0), so mapping back only needs a scale.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for pad_to_square(). Install with `pip install opencv-python`.") from e

    h, w = _check_frame(frame)
    max_size = max(w, h)
    return cv2.copyMakeBorder(
        frame,
        0,
        max_size - h,  # bottom only
        0,
        max_size - w,  # right only
        cv2.BORDER_CONSTANT,
        value=(0, 0, 0),
    )


def preprocess(
    frame: np.ndarray,
    model_width: int,
    model_height: int,
    cfg: PreprocessConfig = PreprocessConfig(),
) -> PreprocessResult:
    """
    Pad, resize and normalize a frame into a [1, model_height, model_width, 3] tensor.

    Returns:
        blob: float32 NHWC tensor in [0, 1], RGB
        x_ratio, y_ratio: max(w, h) / w and max(w, h) / h
        orig_size: (width, height) of the source frame
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for preprocess(). Install with `pip install opencv-python`.") from e

    h, w = _check_frame(frame)
    max_size = max(w, h)

    padded = pad_to_square(frame)
    img = cv2.resize(padded, (int(model_width), int(model_height)), interpolation=cv2.INTER_LINEAR)
    if cfg.bgr_input:
        img = img[:, :, ::-1]

    blob = img.astype(np.float32) / 255.0
    blob = np.ascontiguousarray(blob)[None, ...]

    return PreprocessResult(
        blob=blob,
        x_ratio=max_size / w,
        y_ratio=max_size / h,
        orig_size=(w, h),
    )
