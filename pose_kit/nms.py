from __future__ import annotations

import asyncio
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class NMSConfig:
    max_outputs: int = 10
    iou_threshold: float = 0.45
    score_threshold: float = 0.3

    def __post_init__(self) -> None:
        if self.max_outputs < 0:
            raise ValueError("max_outputs must be >= 0")
        if not (0.0 <= self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be within [0, 1]")
        if not (0.0 <= self.score_threshold <= 1.0):
            raise ValueError("score_threshold must be within [0, 1]")


def iou_yxyx(box: np.ndarray, others: np.ndarray) -> np.ndarray:
    """
    IoU between one (y1, x1, y2, x2) box and an (M, 4) array of boxes.
    """

    yy1 = np.maximum(box[0], others[:, 0])
    xx1 = np.maximum(box[1], others[:, 1])
    yy2 = np.minimum(box[2], others[:, 2])
    xx2 = np.minimum(box[3], others[:, 3])

    h = np.maximum(0.0, yy2 - yy1)
    w = np.maximum(0.0, xx2 - xx1)
    inter = w * h

    area = max(0.0, float(box[2] - box[0])) * max(0.0, float(box[3] - box[1]))
    areas = np.maximum(0.0, others[:, 2] - others[:, 0]) * np.maximum(0.0, others[:, 3] - others[:, 1])
    union = area + areas - inter

    iou = np.zeros(others.shape[0], dtype=np.float64)
    valid = union > 0
    iou[valid] = inter[valid] / union[valid]
    return iou


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig = NMSConfig()) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N, 4) in yxyx and scores shape (N,).

    Scores below `score_threshold` are dropped (the threshold itself is kept).
    A candidate is suppressed only when its IoU with a kept box is strictly
    greater than `iou_threshold`. Equal scores keep the lower index first.

    Returns indices of boxes to keep, best first.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] != scores.shape[0]:
        raise ValueError(f"boxes and scores disagree: {boxes.shape[0]} vs {scores.shape[0]}")

    if boxes.size == 0 or cfg.max_outputs == 0:
        return np.empty((0,), dtype=np.int32)

    candidates = np.where(scores >= cfg.score_threshold)[0]
    # stable sort on negated scores keeps ties in index order
    order = candidates[np.argsort(-scores[candidates], kind="stable")]
    keep = []

    while order.size > 0 and len(keep) < cfg.max_outputs:
        i = order[0]
        keep.append(i)

        rest = order[1:]
        if rest.size == 0:
            break
        iou = iou_yxyx(boxes[i], boxes[rest])
        order = rest[iou <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int32)


def suppress(
    boxes: np.ndarray,
    scores: np.ndarray,
    max_outputs: int = 10,
    iou_threshold: float = 0.45,
    score_threshold: float = 0.3,
) -> np.ndarray:
    return nms(
        boxes,
        scores,
        NMSConfig(max_outputs=max_outputs, iou_threshold=iou_threshold, score_threshold=score_threshold),
    )


async def suppress_async(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig = NMSConfig()) -> np.ndarray:
    """
    Run `nms` on a worker thread so an event loop is not blocked.
    """

    return await asyncio.to_thread(nms, boxes, scores, cfg)
