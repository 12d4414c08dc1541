"""
Live pose detection built on top of `pose_kit`.

`pose_kit` owns the per-frame detection pipeline; this package owns
everything around it:
- frame sources (video file, webcam, RTSP, still image)
- the frame scheduler and its rolling FPS metric
- detect profiles and JSON run configs
- the command-line runner
"""

from __future__ import annotations

from .config import DetectProfile, load_detect_profile
from .ingest import CaptureInfo, CaptureSource, FrameSource, ImageSource, get_capture_info, load_image, open_capture
from .render import NullRenderer, Renderer, WindowRenderer
from .scheduler import FrameScheduler, InferenceSession, SchedulerConfig, SchedulerState

__all__ = [
    "DetectProfile",
    "load_detect_profile",
    "CaptureInfo",
    "CaptureSource",
    "FrameSource",
    "ImageSource",
    "get_capture_info",
    "load_image",
    "open_capture",
    "NullRenderer",
    "Renderer",
    "WindowRenderer",
    "FrameScheduler",
    "InferenceSession",
    "SchedulerConfig",
    "SchedulerState",
]
