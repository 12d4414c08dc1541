import unittest

import numpy as np

from pose_kit.decode import decode, expected_attributes
from pose_kit.errors import ShapeMismatch


def make_raw_output(rows, keypoint_count: int = 17) -> np.ndarray:
    """
    rows: list of (cx, cy, w, h, score). Keypoint j of detection i is
    (10 * i + j, 100 + 10 * i + j, 0.5).
    """

    attrs = expected_attributes(keypoint_count)
    det = np.zeros((len(rows), attrs), dtype=np.float32)
    for i, (cx, cy, w, h, score) in enumerate(rows):
        det[i, :5] = [cx, cy, w, h, score]
        for j in range(keypoint_count):
            det[i, 5 + 3 * j : 8 + 3 * j] = [10 * i + j, 100 + 10 * i + j, 0.5]
    return det.T[None, ...]  # [1, attrs, N]


class TestPoseDecode(unittest.TestCase):
    def test_shapes_are_index_aligned(self) -> None:
        raw = make_raw_output([(50, 60, 20, 40, 0.9), (10, 10, 4, 4, 0.2), (5, 5, 2, 2, 0.4)])
        self.assertEqual(raw.shape, (1, 56, 3))
        out = decode(raw)
        self.assertEqual(out.boxes.shape, (3, 4))
        self.assertEqual(out.scores.shape, (3,))
        self.assertEqual(out.keypoints.shape, (3, 17, 3))
        self.assertEqual(len(out), 3)

    def test_center_to_corner_yxyx(self) -> None:
        out = decode(make_raw_output([(50, 60, 20, 40, 0.9)]))
        # y1 = 60 - 20, x1 = 50 - 10, y2 = y1 + 40, x2 = x1 + 20
        self.assertTrue(np.allclose(out.boxes[0], [40, 40, 80, 60]))

    def test_negative_extent_gives_zero_size_box(self) -> None:
        out = decode(make_raw_output([(32, 32, -4, 8, 0.9)]))
        self.assertTrue(np.allclose(out.boxes[0], [28, 32, 36, 32]))
        y1, x1, y2, x2 = out.boxes[0]
        self.assertLessEqual(y1, y2)
        self.assertLessEqual(x1, x2)

    def test_keypoints_are_xyv_triplets(self) -> None:
        out = decode(make_raw_output([(0, 0, 1, 1, 0.5), (0, 0, 1, 1, 0.5)]))
        self.assertTrue(np.allclose(out.keypoints[0, 3], [3, 103, 0.5]))
        self.assertTrue(np.allclose(out.keypoints[1, 16], [26, 126, 0.5]))

    def test_score_read_without_activation(self) -> None:
        # The export is assumed to emit post-activation confidence; attribute 4
        # must come through untouched (no sigmoid), even when out of [0, 1].
        out = decode(make_raw_output([(0, 0, 1, 1, 1.7), (0, 0, 1, 1, -0.25)]))
        self.assertTrue(np.allclose(out.scores, [1.7, -0.25]))

    def test_custom_keypoint_count(self) -> None:
        out = decode(make_raw_output([(8, 8, 4, 4, 0.6)], keypoint_count=5), keypoint_count=5)
        self.assertEqual(out.keypoints.shape, (1, 5, 3))

    def test_attribute_mismatch_fails_fast(self) -> None:
        raw = np.zeros((1, 55, 10), dtype=np.float32)
        with self.assertRaises(ShapeMismatch):
            decode(raw)
        with self.assertRaises(ShapeMismatch):
            decode(make_raw_output([(0, 0, 1, 1, 0.5)]), keypoint_count=16)

    def test_batch_and_rank_checked(self) -> None:
        with self.assertRaises(ShapeMismatch):
            decode(np.zeros((2, 56, 10), dtype=np.float32))
        with self.assertRaises(ShapeMismatch):
            decode(np.zeros((56, 10), dtype=np.float32))

    def test_input_not_mutated(self) -> None:
        raw = make_raw_output([(50, 60, 20, 40, 0.9)])
        before = raw.copy()
        out = decode(raw)
        out.keypoints[...] = 0
        out.scores[...] = 0
        self.assertTrue(np.array_equal(raw, before))


if __name__ == "__main__":
    unittest.main()
