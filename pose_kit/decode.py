from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .errors import ShapeMismatch

BOX_ATTRIBUTES = 4
SCORE_INDEX = 4
KEYPOINT_OFFSET = 5
KEYPOINT_VALUES = 3  # x, y, visibility


@dataclass(frozen=True)
class DecodedOutput:
    """
    Index-aligned per-detection arrays in model-input pixel space.

    - boxes: (N, 4) as y1, x1, y2, x2
    - scores: (N,)
    - keypoints: (N, K, 3) as x, y, visibility
    """

    boxes: np.ndarray
    scores: np.ndarray
    keypoints: np.ndarray

    def __len__(self) -> int:
        return int(self.scores.shape[0])


def expected_attributes(keypoint_count: int) -> int:
    return KEYPOINT_OFFSET + KEYPOINT_VALUES * int(keypoint_count)


def decode(raw_output: np.ndarray, keypoint_count: int = 17) -> DecodedOutput:
    """
    Decode a pose head output of shape [1, 5 + 3K, N].

    The score is read from attribute 4 as-is: the export is assumed to emit
    post-activation confidence.
    """

    p = np.asarray(raw_output)
    if p.ndim != 3:
        raise ShapeMismatch(f"Expected output shape [1, attributes, detections], got {p.shape}.")
    if p.shape[0] != 1:
        raise ShapeMismatch(f"Batch > 1 is not supported (got shape {p.shape}). Pass one frame at a time.")

    attrs = expected_attributes(keypoint_count)
    if p.shape[1] != attrs:
        raise ShapeMismatch(
            f"Expected {attrs} attributes per detection for {keypoint_count} keypoints, got shape {p.shape}."
        )

    # [1, A, N] -> [N, A]
    det = np.transpose(p, (0, 2, 1))[0].astype(np.float32, copy=False)

    cx = det[:, 0]
    cy = det[:, 1]
    # negative extents collapse to a zero-size box so corners stay ordered
    w = np.maximum(det[:, 2], 0.0)
    h = np.maximum(det[:, 3], 0.0)
    x1 = cx - w / 2
    y1 = cy - h / 2
    boxes = np.stack([y1, x1, y1 + h, x1 + w], axis=1)

    scores = det[:, SCORE_INDEX].copy()
    keypoints = det[:, KEYPOINT_OFFSET:].reshape(-1, int(keypoint_count), KEYPOINT_VALUES).copy()

    return DecodedOutput(boxes=boxes, scores=scores, keypoints=keypoints)
