import unittest
from typing import List, Optional

import numpy as np

from live_pose.render import NullRenderer
from live_pose.scheduler import FrameScheduler, InferenceSession, SchedulerConfig, SchedulerState
from pose_kit.errors import InvalidFrame, ShapeMismatch
from pose_kit.runtime import PosePipeline
from pose_kit.scope import ScopeMonitor
from pose_kit.types import DetectionSet


class FakeClock:
    def __init__(self, values: List[float]):
        self.values = list(values)

    def __call__(self) -> float:
        return self.values.pop(0)


class ListSource:
    """Yields the given frames, then closes."""

    def __init__(self, frames: List[Optional[np.ndarray]], streaming_after: bool = False):
        self.frames = list(frames)
        self.streaming_after = streaming_after
        self.reads = 0

    @property
    def is_streaming(self) -> bool:
        return bool(self.frames) or self.streaming_after

    def read(self) -> Optional[np.ndarray]:
        self.reads += 1
        if not self.frames:
            return None
        return self.frames.pop(0)

    def close(self) -> None:
        self.frames = []


class RecordingRenderer(NullRenderer):
    def __init__(self) -> None:
        super().__init__()
        self.rendered = 0
        self.cleared = 0

    def render(self, frame, detections) -> None:
        super().render(frame, detections)
        self.rendered += 1

    def clear(self) -> None:
        super().clear()
        self.cleared += 1


class FakeDetector:
    def __init__(self, fail_on: Optional[dict] = None, call_back: bool = True):
        self.fail_on = fail_on or {}
        self.call_back = call_back
        self.calls = 0

    def detect(self, frame, *, render=None, on_complete=None) -> DetectionSet:
        self.calls += 1
        if self.calls in self.fail_on:
            raise self.fail_on[self.calls]
        dets = DetectionSet()
        if render is not None:
            render(frame, dets)
        if on_complete is not None and self.call_back:
            on_complete()
        return dets


def _frames(n: int) -> List[np.ndarray]:
    return [np.zeros((48, 64, 3), dtype=np.uint8) for _ in range(n)]


def _raw_output() -> np.ndarray:
    det = np.zeros((2, 56), dtype=np.float32)
    det[0, :5] = [32, 32, 16, 16, 0.9]
    det[1, :5] = [8, 8, 4, 4, 0.5]
    return det.T[None, ...]


class TestInferenceSession(unittest.TestCase):
    def test_publish_after_interval(self) -> None:
        s = InferenceSession(last_publish_ms=0.0)
        s.record(10.0)
        self.assertIsNone(s.maybe_publish(999.0, 1000.0))
        s.record(30.0)
        self.assertEqual(s.maybe_publish(1000.0, 1000.0), 50)
        self.assertEqual((s.total_inference_ms, s.inference_count, s.last_publish_ms), (0.0, 0, 1000.0))

    def test_zero_average_not_published(self) -> None:
        s = InferenceSession()
        s.record(0.0)
        self.assertIsNone(s.maybe_publish(1000.0, 1000.0))
        self.assertEqual((s.inference_count, s.last_publish_ms), (0, 1000.0))
        s.record(4.0)
        self.assertEqual(s.maybe_publish(2000.0, 1000.0), 250)


class TestFrameScheduler(unittest.TestCase):
    def test_fps_accounting(self) -> None:
        published = []
        # (start, end) per frame: 10 ms, 20 ms, 30 ms
        clock = FakeClock([100.0, 110.0, 500.0, 520.0, 970.0, 1000.0])
        sched = FrameScheduler(FakeDetector(), ListSource(_frames(3)), metric_sink=published.append, clock=clock)
        sched.start()
        sched.tick()
        sched.tick()
        self.assertEqual(published, [0])
        sched.tick()
        self.assertEqual(published, [0, 50])
        self.assertEqual(sched.last_fps, 50)
        self.assertEqual(sched.session.inference_count, 0)
        self.assertEqual(sched.session.last_publish_ms, 1000.0)

    def test_first_publish_window_starts_at_zero(self) -> None:
        published = []
        clock = FakeClock([5000.0, 5010.0])
        sched = FrameScheduler(FakeDetector(), ListSource(_frames(2)), metric_sink=published.append, clock=clock)
        sched.start()
        self.assertEqual(sched.session.last_publish_ms, 0.0)
        sched.tick()
        self.assertEqual(published, [0, 100])
        self.assertEqual(sched.session.last_publish_ms, 5010.0)

    def test_clean_termination(self) -> None:
        renderer = RecordingRenderer()
        detector = FakeDetector()
        empty = np.zeros((48, 0, 3), dtype=np.uint8)
        sched = FrameScheduler(detector, ListSource([empty]), renderer=renderer)
        sched.start()
        # the zero-width frame is the last one, so the source is closed after reading it
        self.assertFalse(sched.tick())
        self.assertEqual(sched.state, SchedulerState.SOURCE_ENDED)
        self.assertEqual(renderer.cleared, 1)
        self.assertEqual(detector.calls, 0)
        self.assertFalse(sched.next_requested)
        self.assertIsNone(sched.session)
        self.assertFalse(sched.tick())
        self.assertEqual(sched.run(), 0)

    def test_run_until_source_ends(self) -> None:
        renderer = RecordingRenderer()
        sched = FrameScheduler(FakeDetector(), ListSource(_frames(5)), renderer=renderer)
        ticks = sched.run()
        self.assertEqual(ticks, 6)
        self.assertEqual(sched.frames_processed, 5)
        self.assertEqual(renderer.rendered, 5)
        self.assertEqual(sched.state, SchedulerState.SOURCE_ENDED)

    def test_at_most_one_detection_in_flight(self) -> None:
        monitor = ScopeMonitor()
        pipeline = PosePipeline(lambda blob: _raw_output(), input_size=(64, 64), monitor=monitor)
        renderer = RecordingRenderer()
        sched = FrameScheduler(pipeline, ListSource(_frames(4)), renderer=renderer)
        sched.run()
        self.assertEqual(monitor.opened, 4)
        self.assertEqual(monitor.closed, 4)
        self.assertEqual(monitor.peak_active, 1)
        self.assertEqual(len(renderer.last), 2)
        self.assertEqual(renderer.rendered, 4)

    def test_reentrant_tick_rejected(self) -> None:
        sched: FrameScheduler

        class ReentrantRenderer(NullRenderer):
            def render(self, frame, detections) -> None:
                sched.tick()

        sched = FrameScheduler(FakeDetector(), ListSource(_frames(2)), renderer=ReentrantRenderer())
        sched.start()
        with self.assertRaises(RuntimeError):
            sched.tick()
        self.assertEqual(sched.state, SchedulerState.STOPPED)
        self.assertFalse(sched.busy)

    def test_next_tick_only_after_completion(self) -> None:
        sched = FrameScheduler(FakeDetector(call_back=False), ListSource(_frames(3)))
        ticks = sched.run()
        self.assertEqual(ticks, 1)
        self.assertEqual(sched.frames_processed, 1)
        self.assertEqual(sched.state, SchedulerState.RUNNING)

    def test_invalid_frame_skips_single_tick(self) -> None:
        detector = FakeDetector(fail_on={2: InvalidFrame("bad")})
        sched = FrameScheduler(detector, ListSource(_frames(3)))
        sched.run()
        self.assertEqual(detector.calls, 3)
        self.assertEqual(sched.frames_processed, 2)
        self.assertEqual(sched.frames_dropped, 1)
        self.assertEqual(sched.state, SchedulerState.SOURCE_ENDED)

    def test_shape_mismatch_stops_session(self) -> None:
        detector = FakeDetector(fail_on={1: ShapeMismatch("bad layout")})
        sched = FrameScheduler(detector, ListSource(_frames(3)))
        with self.assertRaises(ShapeMismatch):
            sched.run()
        self.assertEqual(sched.state, SchedulerState.STOPPED)
        self.assertIsNone(sched.session)
        self.assertEqual(detector.calls, 1)

    def test_stop_from_renderer(self) -> None:
        sched: FrameScheduler

        class StoppingRenderer(NullRenderer):
            def render(self, frame, detections) -> None:
                sched.stop()

        sched = FrameScheduler(FakeDetector(), ListSource(_frames(5)), renderer=StoppingRenderer())
        ticks = sched.run()
        self.assertEqual(ticks, 1)
        self.assertEqual(sched.state, SchedulerState.STOPPED)
        self.assertFalse(sched.next_requested)

    def test_open_stream_without_frame_waits(self) -> None:
        detector = FakeDetector()
        source = ListSource([None] + _frames(1), streaming_after=True)
        sched = FrameScheduler(detector, source)
        sched.start()
        self.assertTrue(sched.tick())
        self.assertEqual(detector.calls, 0)
        self.assertTrue(sched.tick())
        self.assertEqual(detector.calls, 1)
        self.assertEqual(sched.state, SchedulerState.RUNNING)

    def test_max_ticks(self) -> None:
        sched = FrameScheduler(FakeDetector(), ListSource(_frames(10)))
        self.assertEqual(sched.run(max_ticks=3), 3)
        self.assertEqual(sched.frames_processed, 3)
        self.assertEqual(sched.state, SchedulerState.RUNNING)

    def test_start_twice_rejected(self) -> None:
        sched = FrameScheduler(FakeDetector(), ListSource(_frames(1)))
        sched.start()
        with self.assertRaises(RuntimeError):
            sched.start()

    def test_config_validation(self) -> None:
        with self.assertRaises(ValueError):
            SchedulerConfig(publish_interval_ms=0)


if __name__ == "__main__":
    unittest.main()
