from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

import numpy as np

from pose_kit.errors import InvalidFrame, ShapeMismatch
from pose_kit.runtime import RenderFn
from pose_kit.types import DetectionSet

from .ingest import FrameSource
from .render import NullRenderer, Renderer

logger = logging.getLogger(__name__)

MetricSink = Callable[[int], None]
Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.perf_counter() * 1000.0


class Detector(Protocol):
    def detect(
        self,
        frame: np.ndarray,
        *,
        render: Optional[RenderFn] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> DetectionSet: ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    SOURCE_ENDED = "source_ended"


@dataclass(frozen=True)
class SchedulerConfig:
    publish_interval_ms: float = 1000.0

    def __post_init__(self) -> None:
        if self.publish_interval_ms <= 0:
            raise ValueError("publish_interval_ms must be > 0")


@dataclass
class InferenceSession:
    """
    Rolling FPS accumulators for one streaming session.
    """

    last_publish_ms: float = 0.0
    total_inference_ms: float = 0.0
    inference_count: int = 0

    def record(self, elapsed_ms: float) -> None:
        self.total_inference_ms += elapsed_ms
        self.inference_count += 1

    def maybe_publish(self, now_ms: float, interval_ms: float) -> Optional[int]:
        """
        Return floor(1000 / average latency) once `interval_ms` has passed
        since the last publish, and reset the window. Otherwise None.

        A window whose average is 0 (clock too coarse to measure it) is reset
        without publishing.
        """

        if now_ms - self.last_publish_ms < interval_ms or self.inference_count == 0:
            return None
        average_ms = self.total_inference_ms / self.inference_count
        self.total_inference_ms = 0.0
        self.inference_count = 0
        self.last_publish_ms = now_ms
        if average_ms <= 0:
            return None
        return int(math.floor(1000.0 / average_ms))


def _has_frame(frame: Optional[np.ndarray]) -> bool:
    return frame is not None and getattr(frame, "ndim", 0) >= 2 and frame.shape[0] > 0 and frame.shape[1] > 0


class FrameScheduler:
    """
    Drives continuous detection over a frame source and publishes a rolling FPS.

    States: IDLE -> RUNNING -> (STOPPED | SOURCE_ENDED).

    Only one detection is ever in flight: the next tick is requested by the
    detector's completion callback, and `tick()` refuses to re-enter while a
    detection is running.
    """

    def __init__(
        self,
        detector: Detector,
        source: FrameSource,
        *,
        renderer: Optional[Renderer] = None,
        metric_sink: Optional[MetricSink] = None,
        clock: Clock = monotonic_ms,
        cfg: SchedulerConfig = SchedulerConfig(),
    ):
        self.detector = detector
        self.source = source
        self.renderer = renderer if renderer is not None else NullRenderer()
        self.metric_sink = metric_sink
        self.clock = clock
        self.cfg = cfg

        self._state = SchedulerState.IDLE
        self._session: Optional[InferenceSession] = None
        self._busy = False
        self._next_requested = False
        self.last_fps: Optional[int] = None
        self.frames_processed = 0
        self.frames_dropped = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def session(self) -> Optional[InferenceSession]:
        return self._session

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def next_requested(self) -> bool:
        return self._next_requested

    def start(self) -> None:
        if self._state is not SchedulerState.IDLE:
            raise RuntimeError(f"Cannot start scheduler in state {self._state.value}")
        self._session = InferenceSession()
        self._state = SchedulerState.RUNNING
        self._next_requested = True
        self._publish(0)
        logger.info("Streaming started")

    def stop(self) -> None:
        if self._state is not SchedulerState.RUNNING:
            return
        self._halt(SchedulerState.STOPPED)
        logger.info("Streaming stopped after %d frames", self.frames_processed)

    def tick(self) -> bool:
        """
        Process the current frame. Returns True when another tick is requested.
        """

        if self._state is not SchedulerState.RUNNING:
            return False
        if self._busy:
            raise RuntimeError("A detection is already in flight for this source.")

        self._next_requested = False
        frame = self.source.read()
        if not _has_frame(frame):
            if not self.source.is_streaming:
                self.renderer.clear()
                self._halt(SchedulerState.SOURCE_ENDED)
                logger.info("Source ended after %d frames", self.frames_processed)
                return False
            # open stream without a frame yet
            self._next_requested = True
            return True

        self._busy = True
        start = self.clock()
        try:
            self.detector.detect(frame, render=self.renderer.render, on_complete=self._request_next)
        except InvalidFrame as exc:
            self.frames_dropped += 1
            logger.warning("Dropped frame: %s", exc)
            self._next_requested = self._state is SchedulerState.RUNNING
            return self._next_requested
        except ShapeMismatch:
            logger.error("Model output does not match the pose layout; stopping stream")
            self._halt(SchedulerState.STOPPED)
            raise
        except Exception:
            self._halt(SchedulerState.STOPPED)
            raise
        finally:
            self._busy = False
        end = self.clock()

        self.frames_processed += 1
        self._account(end - start, end)
        return self._next_requested

    def run(self, max_ticks: Optional[int] = None) -> int:
        """
        Blocking loop: tick until the source ends, `stop()` is called, or
        `max_ticks` ticks have run. Returns the number of ticks.
        """

        if self._state is SchedulerState.IDLE:
            self.start()

        ticks = 0
        while self._state is SchedulerState.RUNNING and self._next_requested:
            if max_ticks is not None and ticks >= max_ticks:
                break
            self.tick()
            ticks += 1
        return ticks

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _request_next(self) -> None:
        if self._state is SchedulerState.RUNNING:
            self._next_requested = True

    def _account(self, elapsed_ms: float, now_ms: float) -> None:
        logger.debug("inference_ms=%.2f", elapsed_ms)
        if self._session is None:
            return
        self._session.record(elapsed_ms)
        fps = self._session.maybe_publish(now_ms, self.cfg.publish_interval_ms)
        if fps is not None:
            logger.info("fps=%d", fps)
            self._publish(fps)

    def _publish(self, fps: int) -> None:
        self.last_fps = fps
        if self.metric_sink is not None:
            self.metric_sink(fps)

    def _halt(self, state: SchedulerState) -> None:
        self._state = state
        self._session = None
        self._next_requested = False
