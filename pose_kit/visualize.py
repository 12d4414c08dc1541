from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from .types import DetectionSet

# COCO-17 keypoint order.
KEYPOINT_NAMES = (
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
)

SKELETON: Tuple[Tuple[int, int], ...] = (
    (15, 13),
    (13, 11),
    (16, 14),
    (14, 12),
    (11, 12),
    (5, 11),
    (6, 12),
    (5, 6),
    (5, 7),
    (6, 8),
    (7, 9),
    (8, 10),
    (1, 2),
    (0, 1),
    (0, 2),
    (1, 3),
    (2, 4),
    (3, 5),
    (4, 6),
)

BOX_COLOR = (255, 56, 56)  # BGR
LIMB_COLOR = (0, 194, 255)
JOINT_COLOR = (72, 249, 10)


def draw_poses(
    image_bgr: np.ndarray,
    detections: DetectionSet,
    *,
    canvas_size: Optional[Tuple[int, int]] = None,
    skeleton: Sequence[Tuple[int, int]] = SKELETON,
    keypoint_threshold: float = 0.5,
    show_score: bool = True,
    box_thickness: int = 2,
    radius: int = 3,
    font_scale: float = 0.5,
) -> np.ndarray:
    """
    Draw boxes, scores, keypoints and skeleton on a BGR image and return a copy.

    Args:
        image_bgr: frame the detections were computed on (H, W, 3).
        detections: display-space detections from `PosePipeline.detect`.
        canvas_size: (width, height) of the display canvas (the model input size).
            When given, coordinates are mapped onto the full-resolution image;
            when None they are drawn as-is.
        keypoint_threshold: joints with lower visibility are not drawn.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_poses(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]
    if canvas_size is not None:
        detections = detections.to_frame_pixels((w, h), canvas_size)

    def _pt(x: float, y: float) -> Tuple[int, int]:
        return int(np.clip(round(x), 0, w - 1)), int(np.clip(round(y), 0, h - 1))

    for det in detections:
        x1, y1, x2, y2 = det.box.as_xyxy()
        p1, p2 = _pt(x1, y1), _pt(x2, y2)
        cv2.rectangle(out, p1, p2, BOX_COLOR, thickness=box_thickness)

        if show_score:
            label = f"{det.score:.2f}"
            (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 1)
            y_text_top = p1[1] - th - baseline
            if y_text_top < 0:
                y_text_top = p1[1]
            cv2.rectangle(
                out,
                (p1[0], y_text_top),
                (min(p1[0] + tw, w - 1), min(y_text_top + th + baseline, h - 1)),
                BOX_COLOR,
                thickness=-1,
            )
            cv2.putText(
                out,
                label,
                (p1[0], min(y_text_top + th, h - 1)),
                cv2.FONT_HERSHEY_SIMPLEX,
                font_scale,
                (255, 255, 255),
                thickness=1,
                lineType=cv2.LINE_AA,
            )

        kps = det.keypoints
        for a, b in skeleton:
            if a >= len(kps) or b >= len(kps):
                continue
            ka, kb = kps[a], kps[b]
            if ka.visibility < keypoint_threshold or kb.visibility < keypoint_threshold:
                continue
            cv2.line(out, _pt(ka.x, ka.y), _pt(kb.x, kb.y), LIMB_COLOR, thickness=2, lineType=cv2.LINE_AA)

        for kp in kps:
            if kp.visibility < keypoint_threshold:
                continue
            cv2.circle(out, _pt(kp.x, kp.y), radius, JOINT_COLOR, thickness=-1, lineType=cv2.LINE_AA)

    return out
