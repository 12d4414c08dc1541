from __future__ import annotations


class PoseKitError(Exception):
    """Base class for errors raised by the detection pipeline."""


class InvalidFrame(PoseKitError, ValueError):
    """
    The source frame cannot be processed (zero area, wrong shape, undecodable).

    Aborts a single detection call only; a streaming session keeps going.
    """


class ShapeMismatch(PoseKitError, ValueError):
    """
    The model output does not match the expected attribute layout.

    This means the model and the pipeline disagree on the export format, so a
    streaming session cannot continue.
    """
