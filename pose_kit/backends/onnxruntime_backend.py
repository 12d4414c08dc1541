from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name/output_name: override auto-selected I/O names if needed
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None


def _dim(value: Any) -> Optional[int]:
    # Dynamic axes come back as strings or None.
    return int(value) if isinstance(value, int) and value > 0 else None


def input_layout(shape: Sequence[Any]) -> Tuple[str, Optional[int], Optional[int]]:
    """
    Guess ("nhwc" | "nchw", width, height) from a 4-D model input shape.
    """

    if len(shape) != 4:
        raise ValueError(f"Expected a 4-D model input, got {list(shape)}")
    if _dim(shape[1]) == 3 and _dim(shape[3]) != 3:
        return "nchw", _dim(shape[3]), _dim(shape[2])
    return "nhwc", _dim(shape[2]), _dim(shape[1])


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Accepts the pipeline's NHWC float32 blob (1, H, W, 3). Models exported
    channels-first get the blob transposed to (1, 3, H, W) before the run.
    Returns the primary output as a NumPy array.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        model_input = self.session.get_inputs()[0]
        self.input_name = cfg.input_name or model_input.name
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name
        self.layout, width, height = input_layout(model_input.shape)
        self.input_size: Optional[Tuple[int, int]] = (width, height) if width and height else None

    @property
    def providers_in_use(self) -> Sequence[str]:
        return tuple(self.session.get_providers())

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    def infer(self, blob: np.ndarray, extra_inputs: Optional[Dict[str, Any]] = None) -> np.ndarray:
        if self.layout == "nchw":
            blob = np.ascontiguousarray(np.transpose(blob, (0, 3, 1, 2)))
        inputs: Dict[str, Any] = {self.input_name: blob}
        if extra_inputs:
            inputs.update(extra_inputs)
        outputs = self.session.run([self.output_name], inputs)
        return outputs[0]
