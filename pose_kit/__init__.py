"""
Lightweight pose-detection helpers for YOLO-style pose exports.

Framework-agnostic: works with NumPy arrays emitted by ONNX Runtime or
PyTorch tensors converted to NumPy. No external dependencies beyond NumPy and
OpenCV for resizing and drawing.
"""

from .decode import DecodedOutput, decode
from .errors import InvalidFrame, PoseKitError, ShapeMismatch
from .letterbox import PreprocessConfig, pad_to_square, preprocess
from .metadata import PoseMetadata, load_pose_metadata
from .nms import NMSConfig, nms, suppress, suppress_async
from .postprocess import PosePostConfig, PosePostprocessor, gather
from .runtime import PosePipeline, find_project_root, load_pipeline, resolve_path
from .scope import ScopeMonitor, TensorScope
from .types import BoundingBox, Detection, DetectionSet, Keypoint, ScaleRatios
from .visualize import draw_poses

__all__ = [
    "BoundingBox",
    "Keypoint",
    "Detection",
    "DetectionSet",
    "ScaleRatios",
    "PoseKitError",
    "InvalidFrame",
    "ShapeMismatch",
    "PreprocessConfig",
    "pad_to_square",
    "preprocess",
    "DecodedOutput",
    "decode",
    "NMSConfig",
    "nms",
    "suppress",
    "suppress_async",
    "PosePostConfig",
    "PosePostprocessor",
    "gather",
    "PosePipeline",
    "load_pipeline",
    "find_project_root",
    "resolve_path",
    "ScopeMonitor",
    "TensorScope",
    "PoseMetadata",
    "load_pose_metadata",
    "draw_poses",
]
