"""
Inference adapters for pose_kit.

Backends are kept in a separate module so the core (preprocess/decode/NMS)
stays importable without installing an inference runtime.
"""

from __future__ import annotations

__all__ = []
