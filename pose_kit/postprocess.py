from dataclasses import dataclass, field

import numpy as np

from .decode import DecodedOutput
from .nms import NMSConfig, nms
from .types import BoundingBox, Detection, DetectionSet, Keypoint, ScaleRatios


@dataclass(frozen=True)
class PosePostConfig:
    """
    Configuration for pose post processing.
    """

    keypoint_count: int = 17
    nms: NMSConfig = field(default_factory=NMSConfig)

    def __post_init__(self) -> None:
        if self.keypoint_count <= 0:
            raise ValueError("keypoint_count must be > 0")


def scale_boxes(boxes: np.ndarray, ratios: ScaleRatios) -> np.ndarray:
    """
    Scale (N, 4) yxyx boxes by the letterbox ratios. Returns a new array.
    """

    out = np.array(boxes, dtype=np.float64, copy=True).reshape(-1, 4)
    out[:, [0, 2]] *= ratios.y_ratio
    out[:, [1, 3]] *= ratios.x_ratio
    return out


def scale_keypoints(keypoints: np.ndarray, ratios: ScaleRatios) -> np.ndarray:
    """
    Scale (N, K, 3) keypoints along x and y. Visibility is left untouched.
    """

    out = np.array(keypoints, dtype=np.float64, copy=True)
    out[..., 0] *= ratios.x_ratio
    out[..., 1] *= ratios.y_ratio
    return out


def gather(decoded: DecodedOutput, indices: np.ndarray, ratios: ScaleRatios) -> DetectionSet:
    """
    Pick the suppressed indices out of the decoded arrays and map them into
    display space.
    """

    idx = np.asarray(indices, dtype=np.int64).reshape(-1)
    if idx.size == 0:
        return DetectionSet(detections=(), ratios=ratios)

    boxes = scale_boxes(decoded.boxes[idx], ratios)
    scores = decoded.scores[idx]
    keypoints = scale_keypoints(decoded.keypoints[idx], ratios)

    detections = tuple(
        Detection(
            box=BoundingBox(y1=float(y1), x1=float(x1), y2=float(y2), x2=float(x2)),
            score=float(score),
            keypoints=tuple(Keypoint(float(x), float(y), float(v)) for x, y, v in kps),
        )
        for (y1, x1, y2, x2), score, kps in zip(boxes, scores, keypoints)
    )
    return DetectionSet(detections=detections, ratios=ratios)


class PosePostprocessor:
    """
    Suppression + gather for decoded pose output.

    Input is a `DecodedOutput` in model-input pixel space; output is a
    `DetectionSet` in display space ordered by descending score.
    """

    def __init__(self, cfg: PosePostConfig = PosePostConfig()):
        self.cfg = cfg

    def suppress(self, decoded: DecodedOutput) -> np.ndarray:
        return nms(decoded.boxes, decoded.scores, self.cfg.nms)

    def process(self, decoded: DecodedOutput, ratios: ScaleRatios) -> DetectionSet:
        return gather(decoded, self.suppress(decoded), ratios)
