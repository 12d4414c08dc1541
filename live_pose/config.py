from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from pose_kit.nms import NMSConfig
from pose_kit.postprocess import PosePostConfig

from .scheduler import SchedulerConfig


@dataclass(frozen=True)
class DetectProfile:
    schema_version: int = 1
    max_outputs: int = 10
    iou_threshold: float = 0.45
    score_threshold: float = 0.3
    keypoint_count: int = 17
    fps_publish_interval_ms: float = 1000.0
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("detect_profile schema_version must be 1")
        if self.max_outputs <= 0:
            raise ValueError("max_outputs must be > 0")
        if not (0.0 <= self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be within [0, 1]")
        if not (0.0 <= self.score_threshold <= 1.0):
            raise ValueError("score_threshold must be within [0, 1]")
        if self.keypoint_count <= 0:
            raise ValueError("keypoint_count must be > 0")
        if self.fps_publish_interval_ms <= 0:
            raise ValueError("fps_publish_interval_ms must be > 0")

    def post_config(self) -> PosePostConfig:
        return PosePostConfig(
            keypoint_count=self.keypoint_count,
            nms=NMSConfig(
                max_outputs=self.max_outputs,
                iou_threshold=self.iou_threshold,
                score_threshold=self.score_threshold,
            ),
        )

    def scheduler_config(self) -> SchedulerConfig:
        return SchedulerConfig(publish_interval_ms=self.fps_publish_interval_ms)


def _get_number(payload: Dict[str, Any], key: str, default: float) -> float:
    if key not in payload:
        return float(default)
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _get_int(payload: Dict[str, Any], key: str, default: Optional[int] = None) -> int:
    if key not in payload:
        if default is None:
            raise ValueError(f"Missing required key: {key}")
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def load_detect_profile(path: Path) -> DetectProfile:
    if not path.exists():
        raise FileNotFoundError(f"Detect profile not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detect profile JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detect profile must be a JSON object")

    allowed = {
        "schema_version",
        "max_outputs",
        "iou_threshold",
        "score_threshold",
        "keypoint_count",
        "fps_publish_interval_ms",
        "notes",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detect profile keys: {unknown}")

    defaults = DetectProfile()
    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise ValueError("notes must be a string if provided")

    return DetectProfile(
        schema_version=_get_int(payload, "schema_version"),
        max_outputs=_get_int(payload, "max_outputs", defaults.max_outputs),
        iou_threshold=_get_number(payload, "iou_threshold", defaults.iou_threshold),
        score_threshold=_get_number(payload, "score_threshold", defaults.score_threshold),
        keypoint_count=_get_int(payload, "keypoint_count", defaults.keypoint_count),
        fps_publish_interval_ms=_get_number(payload, "fps_publish_interval_ms", defaults.fps_publish_interval_ms),
        notes=notes,
    )
