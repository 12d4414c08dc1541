from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class PoseMetadata:
    names: Dict[int, str] = field(default_factory=dict)
    kpt_shape: Tuple[int, int] = (17, 3)

    @property
    def keypoint_count(self) -> int:
        return self.kpt_shape[0]


def _parse_int_list(text: str) -> List[int]:
    text = text.strip().strip("[]")
    return [int(part) for part in text.split(",") if part.strip()]


def load_pose_metadata(metadata_path: str) -> PoseMetadata:
    """
    Load class names and keypoint shape from an exported model's `metadata.yaml`.

    Only the two keys the pipeline needs are read:

        names:
          0: person
        kpt_shape: [17, 3]     # or as a block list:  kpt_shape:\\n- 17\\n- 3

    Avoids a PyYAML dependency.
    """

    names: Dict[int, str] = {}
    kpt: List[int] = []
    section = None

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue

            if not raw[0].isspace() and not line.startswith("-"):
                key, _, value = line.partition(":")
                key = key.strip()
                value = value.strip()
                section = key
                if key == "kpt_shape" and value:
                    kpt = _parse_int_list(value)
                continue

            if section == "names" and ":" in line:
                left, right = line.split(":", 1)
                left = left.strip()
                if left.isdigit():
                    names[int(left)] = right.strip().strip("'").strip('"')
            elif section == "kpt_shape" and line.startswith("-"):
                kpt.append(int(line[1:].strip()))

    if not kpt:
        return PoseMetadata(names=names)
    if len(kpt) != 2 or kpt[0] <= 0 or kpt[1] not in (2, 3):
        raise ValueError(f"Unsupported kpt_shape in {metadata_path}: {kpt}")
    if kpt[1] != 3:
        raise ValueError(f"Only (x, y, visibility) keypoints are supported, got kpt_shape {kpt}")
    return PoseMetadata(names=names, kpt_shape=(kpt[0], kpt[1]))
