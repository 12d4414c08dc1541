from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - output_index: if the model returns multiple outputs, select this index
    - input_size: (width, height) the model was exported with
    - channels_first: feed (1, 3, H, W) instead of the pipeline's (1, H, W, 3)
    """

    device: str = "cpu"
    output_index: int = 0
    input_size: Optional[Tuple[int, int]] = None
    channels_first: bool = True


class TorchScriptBackend:
    """
    Minimal TorchScript backend using `torch.jit.load`.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        self.output_index = cfg.output_index
        self.channels_first = cfg.channels_first
        self.input_size = cfg.input_size

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model

    def infer(self, blob: np.ndarray) -> np.ndarray:
        torch = self._torch
        x = torch.as_tensor(blob, device=self.device).float()
        if self.channels_first:
            x = x.permute(0, 3, 1, 2)
        x = x.contiguous()

        with torch.no_grad():
            y = self.model(x)

        if isinstance(y, (tuple, list)):
            y = y[self.output_index]

        if hasattr(y, "detach"):
            y = y.detach()
        return y.to("cpu").numpy()
