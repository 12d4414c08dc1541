import tempfile
import unittest
from pathlib import Path

from pose_kit.metadata import load_pose_metadata


class TestPoseMetadata(unittest.TestCase):
    def _write(self, text: str) -> str:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "metadata.yaml"
        path.write_text(text, encoding="utf-8")
        return str(path)

    def test_block_list_kpt_shape(self) -> None:
        meta = load_pose_metadata(
            self._write(
                "description: Ultralytics YOLOv8n-pose model\n"
                "stride: 32\n"
                "names:\n"
                "  0: person\n"
                "kpt_shape:\n"
                "- 17\n"
                "- 3\n"
            )
        )
        self.assertEqual(meta.names, {0: "person"})
        self.assertEqual(meta.kpt_shape, (17, 3))
        self.assertEqual(meta.keypoint_count, 17)

    def test_flow_list_kpt_shape(self) -> None:
        meta = load_pose_metadata(self._write("names:\n  0: 'hand'\nkpt_shape: [21, 3]\n"))
        self.assertEqual(meta.names, {0: "hand"})
        self.assertEqual(meta.keypoint_count, 21)

    def test_missing_kpt_shape_defaults(self) -> None:
        meta = load_pose_metadata(self._write("# comment\nnames:\n  0: person\n"))
        self.assertEqual(meta.kpt_shape, (17, 3))

    def test_xy_only_keypoints_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_pose_metadata(self._write("kpt_shape: [17, 2]\n"))


if __name__ == "__main__":
    unittest.main()
