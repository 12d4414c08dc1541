from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np

from .decode import DecodedOutput, decode
from .letterbox import PreprocessConfig, preprocess
from .nms import suppress_async
from .postprocess import PosePostConfig, PosePostprocessor, gather
from .scope import ScopeMonitor, TensorScope
from .types import DetectionSet, ScaleRatios

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
RenderFn = Callable[[np.ndarray, DetectionSet], None]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """
    Best-effort project root discovery, so relative model paths like
    `models/yolov8n-pose.onnx` resolve the same from any working directory.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


class PosePipeline:
    """
    Plug-and-play pipeline: preprocess (pad to square) -> inference -> decode -> NMS -> gather.

    The pipeline expects BGR frames (OpenCV-style) as `np.ndarray` and returns a
    `DetectionSet` in display space (see `DetectionSet.to_frame_pixels`).
    All intermediate tensors of a call live in one `TensorScope`.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        *,
        input_size: Optional[Tuple[int, int]] = None,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        pre_cfg: PreprocessConfig = PreprocessConfig(),
        post_cfg: PosePostConfig = PosePostConfig(),
        monitor: Optional[ScopeMonitor] = None,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.pre_cfg = pre_cfg
        self.post = PosePostprocessor(post_cfg)
        self.monitor = monitor

        if input_size is None and backend is not None:
            input_size = getattr(backend, "input_size", None)
        if input_size is None:
            raise ValueError("input_size is required when the backend does not expose one.")
        model_w, model_h = int(input_size[0]), int(input_size[1])
        if model_w <= 0 or model_h <= 0:
            raise ValueError(f"input_size must be positive, got {input_size}")
        self.input_size = (model_w, model_h)

    @property
    def keypoint_count(self) -> int:
        return self.post.cfg.keypoint_count

    def warmup(self) -> None:
        """
        Push one all-ones tensor through the model so the first real frame
        does not pay for lazy initialization.
        """

        model_w, model_h = self.input_size
        with TensorScope() as scope:
            dummy = scope.track(np.ones((1, model_h, model_w, 3), dtype=np.float32))
            out = scope.track(self._infer_fn(dummy))
            logger.info("Warm-up done (output shape %s)", getattr(out, "shape", None))

    def _forward(self, frame: np.ndarray, scope: TensorScope) -> Tuple[DecodedOutput, ScaleRatios]:
        model_w, model_h = self.input_size
        prep = preprocess(frame, model_w, model_h, self.pre_cfg)
        raw = scope.track(self._infer_fn(scope.track(prep.blob)))
        decoded = scope.track(decode(raw, self.keypoint_count))
        return decoded, ScaleRatios(x_ratio=prep.x_ratio, y_ratio=prep.y_ratio)

    @staticmethod
    def _finish(
        frame: np.ndarray,
        detections: DetectionSet,
        render: Optional[RenderFn],
        on_complete: Optional[Callable[[], None]],
    ) -> None:
        if render is not None:
            render(frame, detections)
        if on_complete is not None:
            on_complete()

    def detect(
        self,
        frame: np.ndarray,
        *,
        render: Optional[RenderFn] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> DetectionSet:
        """
        Run one detection on `frame`.

        `render` receives the frame and the final detections; `on_complete`
        runs after rendering and before the tensor scope is released. Once
        gathered, the intermediate arrays are only referenced by the scope, so
        they are freed when it closes.
        """

        with TensorScope(self.monitor) as scope:
            decoded, ratios = self._forward(frame, scope)
            detections = gather(decoded, scope.track(self.post.suppress(decoded)), ratios)
            del decoded
            self._finish(frame, detections, render, on_complete)

        return detections

    async def detect_async(
        self,
        frame: np.ndarray,
        *,
        render: Optional[RenderFn] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> DetectionSet:
        """
        `detect` for event-loop callers: suppression runs on a worker thread.
        """

        with TensorScope(self.monitor) as scope:
            decoded, ratios = self._forward(frame, scope)
            indices = await suppress_async(decoded.boxes, decoded.scores, self.post.cfg.nms)
            detections = gather(decoded, scope.track(indices), ratios)
            del decoded, indices
            self._finish(frame, detections, render, on_complete)

        return detections

    def __call__(self, frame: np.ndarray) -> DetectionSet:
        return self.detect(frame)


def load_pipeline(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    input_size: Optional[Tuple[int, int]] = None,
    pre_cfg: PreprocessConfig = PreprocessConfig(),
    post_cfg: PosePostConfig = PosePostConfig(),
    monitor: Optional[ScopeMonitor] = None,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
    torch_device: str = "cpu",
    torch_output_index: int = 0,
) -> PosePipeline:
    """
    Create a pipeline for a model on disk.

        pipe = load_pipeline("models/yolov8n-pose.onnx")

    Args:
        model_path: path to the exported model; relative paths resolve against project root by default
        backend: "onnxruntime" or "torchscript"; None infers from the extension
        input_size: (width, height) override; required for TorchScript models
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(
                providers=onnx_providers,
                input_name=onnx_input_name,
                output_name=onnx_output_name,
            ),
        )
        logger.info("Loaded %s with providers %s", resolved.name, list(ort_backend.providers_in_use))
        return PosePipeline(
            ort_backend.infer,
            input_size=input_size,
            backend=ort_backend,
            backend_name="onnxruntime",
            pre_cfg=pre_cfg,
            post_cfg=post_cfg,
            monitor=monitor,
        )

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        if input_size is None:
            raise ValueError("TorchScript models do not expose their input size; pass input_size=(w, h).")
        ts_backend = TorchScriptBackend(
            resolved,
            TorchScriptBackendConfig(device=torch_device, output_index=torch_output_index, input_size=input_size),
        )
        logger.info("Loaded %s on %s", resolved.name, torch_device)
        return PosePipeline(
            ts_backend.infer,
            input_size=input_size,
            backend=ts_backend,
            backend_name="torchscript",
            pre_cfg=pre_cfg,
            post_cfg=post_cfg,
            monitor=monitor,
        )

    raise ValueError(f"Unsupported backend: {backend!r}")
