import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

import cv2
import numpy as np

from live_pose import runner
from pose_kit.runtime import PosePipeline


def _raw_output() -> np.ndarray:
    det = np.zeros((2, 56), dtype=np.float32)
    det[0, :5] = [32, 32, 16, 16, 0.9]
    det[1, :5] = [8, 8, 4, 4, 0.1]
    return det.T[None, ...]


def _fake_load_pipeline(model_path, **kwargs) -> PosePipeline:
    return PosePipeline(
        lambda blob: _raw_output(),
        input_size=(64, 64),
        post_cfg=kwargs["post_cfg"],
        monitor=kwargs.get("monitor"),
    )


class TestRunner(unittest.TestCase):
    def _write_image(self) -> str:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "frame.png"
        cv2.imwrite(str(path), np.zeros((48, 64, 3), dtype=np.uint8))
        return str(path)

    def test_image_run_prints_detections(self) -> None:
        image = self._write_image()
        buf = io.StringIO()
        with mock.patch.object(runner, "load_pipeline", side_effect=_fake_load_pipeline), redirect_stdout(buf):
            code = runner.main(["--image", image, "--model", "m.onnx"])
        self.assertEqual(code, 0)
        self.assertIn("Detections: 1", buf.getvalue())

    def test_unreadable_image_reports_error(self) -> None:
        err = io.StringIO()
        with mock.patch.object(runner, "load_pipeline", side_effect=_fake_load_pipeline), redirect_stderr(err):
            code = runner.main(["--image", "/nonexistent/frame.png", "--model", "m.onnx", "--no-warmup"])
        self.assertEqual(code, 2)
        self.assertIn("Could not read image", err.getvalue())

    def test_requires_exactly_one_source(self) -> None:
        with self.assertRaises(SystemExit):
            runner.main(["--model", "m.onnx"])
        with self.assertRaises(SystemExit):
            runner.main(["--model", "m.onnx", "--video", "a.mp4", "--webcam", "0"])

    def test_requires_model(self) -> None:
        with self.assertRaises(SystemExit):
            runner.main(["--image", "a.jpg"])

    def test_parse_ort_providers(self) -> None:
        self.assertEqual(
            runner._parse_ort_providers(" 'CUDAExecutionProvider', `CPUExecutionProvider` ,"),
            ["CUDAExecutionProvider", "CPUExecutionProvider"],
        )
        self.assertIsNone(runner._parse_ort_providers(None))


if __name__ == "__main__":
    unittest.main()
