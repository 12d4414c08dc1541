from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    Box in row-major corner form (y1, x1, y2, x2).
    """

    y1: float
    x1: float
    y2: float
    x2: float

    def __post_init__(self) -> None:
        if self.y1 > self.y2 or self.x1 > self.x2:
            raise ValueError(f"Invalid box corners: {self.as_yxyx()}")

    def as_yxyx(self) -> Tuple[float, float, float, float]:
        return self.y1, self.x1, self.y2, self.x2

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    visibility: float


@dataclass(frozen=True)
class ScaleRatios:
    """
    Factors mapping model-input coordinates back to the source frame.
    """

    x_ratio: float = 1.0
    y_ratio: float = 1.0


@dataclass(frozen=True)
class Detection:
    """
    A single pose detection after suppression.
    """

    box: BoundingBox
    score: float
    keypoints: Tuple[Keypoint, ...] = ()


@dataclass(frozen=True)
class DetectionSet:
    """
    Final detections for one frame, ordered by descending score.

    Coordinates are in display space: the source frame stretched onto a
    canvas of the model-input size.
    """

    detections: Tuple[Detection, ...] = ()
    ratios: ScaleRatios = field(default_factory=ScaleRatios)

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    def __getitem__(self, idx: int) -> Detection:
        return self.detections[idx]

    def to_frame_pixels(self, frame_size: Tuple[int, int], canvas_size: Tuple[int, int]) -> "DetectionSet":
        """
        Convert display-space coordinates to source pixel coordinates.

        Args:
            frame_size: (width, height) of the source frame
            canvas_size: (width, height) of the display canvas (model input size)
        """

        frame_w, frame_h = frame_size
        canvas_w, canvas_h = canvas_size
        if canvas_w <= 0 or canvas_h <= 0:
            raise ValueError(f"canvas_size must be positive, got {canvas_size}")
        sx = float(frame_w) / float(canvas_w)
        sy = float(frame_h) / float(canvas_h)

        out = []
        for det in self.detections:
            b = det.box
            out.append(
                Detection(
                    box=BoundingBox(y1=b.y1 * sy, x1=b.x1 * sx, y2=b.y2 * sy, x2=b.x2 * sx),
                    score=det.score,
                    keypoints=tuple(Keypoint(k.x * sx, k.y * sy, k.visibility) for k in det.keypoints),
                )
            )
        return DetectionSet(detections=tuple(out), ratios=self.ratios)
