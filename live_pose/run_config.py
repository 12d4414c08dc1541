from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, List, Sequence


def load_run_config(path: Path) -> Dict[str, object]:
    if not path.exists():
        raise FileNotFoundError(f"Run config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid run config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Run config must be a JSON object")
    return payload


def collect_cli_dests(parser: argparse.ArgumentParser, argv: Sequence[str]) -> set[str]:
    dests: set[str] = set()
    for opt, action in parser._option_string_actions.items():
        for arg in argv:
            if arg == opt or arg.startswith(f"{opt}="):
                dests.add(action.dest)
                break
    return dests


def _coerce_str_list(value: object, key: str) -> List[str]:
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError(f"{key} must not be an empty string")
        return [value]
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        cleaned = [item.strip() for item in value]
        if not cleaned or any(not item for item in cleaned):
            raise ValueError(f"{key} must not contain empty strings")
        return cleaned
    raise ValueError(f"{key} must be a string or list of strings")


SOURCE_KEYS = ("video", "webcam", "rtsp", "image")

STR_KEYS = {"video", "rtsp", "image", "model", "metadata", "backend", "profile", "log_level", "torch_device"}
INT_KEYS = {"webcam", "max_frames", "input_width", "input_height"}
BOOL_KEYS = {"show", "no_warmup"}


def apply_run_config(
    *,
    args: argparse.Namespace,
    payload: Dict[str, object],
    cli_dests: set[str],
    parser: argparse.ArgumentParser,
) -> None:
    """
    Copy run config values onto `args`. Options given on the command line win.
    """

    allowed = {action.dest for action in parser._actions if action.dest != "help"}
    if "config" in payload:
        raise ValueError("run config must not include the 'config' key")
    if "source" in payload and any(k in payload for k in SOURCE_KEYS):
        raise ValueError("Use either 'source' block or top-level video/webcam/rtsp/image keys, not both.")
    unknown = sorted(k for k in payload.keys() if k not in allowed and k != "source")
    if unknown:
        raise ValueError(f"Unknown run config keys: {unknown}")

    cli_has_source = any(k in cli_dests for k in SOURCE_KEYS)

    source = payload.get("source")
    if source is not None:
        if not isinstance(source, dict):
            raise ValueError("run config 'source' must be an object")
        source_unknown = sorted(k for k in source.keys() if k not in SOURCE_KEYS)
        if source_unknown:
            raise ValueError(f"Unknown run config source keys: {source_unknown}")
        non_empty = [k for k in SOURCE_KEYS if source.get(k) not in (None, "")]
        if len(non_empty) > 1:
            raise ValueError("run config 'source' must set only one of video/webcam/rtsp/image")
        if not cli_has_source:
            payload = {**{k: source[k] for k in non_empty}, **{k: v for k, v in payload.items() if k != "source"}}

    for key, value in payload.items():
        if key == "source":
            continue
        if key in cli_dests:
            continue
        if key in SOURCE_KEYS and cli_has_source:
            continue
        if value is None:
            continue
        if key == "onnx_providers":
            if isinstance(value, list):
                setattr(args, key, ",".join(_coerce_str_list(value, key)))
            elif isinstance(value, str) and value.strip():
                setattr(args, key, value)
            else:
                raise ValueError("onnx_providers must be a non-empty string or list of strings")
            continue
        if key in STR_KEYS:
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"{key} must be a non-empty string")
            setattr(args, key, value)
            continue
        if key in BOOL_KEYS:
            if not isinstance(value, bool):
                raise ValueError(f"{key} must be a boolean")
            setattr(args, key, value)
            continue
        if key in INT_KEYS:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{key} must be an integer")
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(f"{key} must be an integer")
            setattr(args, key, int(value))
            continue
        raise ValueError(f"Unsupported run config key: {key}")
