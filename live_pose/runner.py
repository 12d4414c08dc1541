from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pose_kit import PosePipeline, PreprocessConfig, ScopeMonitor, load_pipeline, load_pose_metadata
from pose_kit.errors import InvalidFrame, ShapeMismatch

from .config import DetectProfile, load_detect_profile
from .ingest import CaptureSource, ImageSource, get_capture_info, open_capture
from .render import NullRenderer, Renderer, WindowRenderer
from .run_config import apply_run_config, collect_cli_dests, load_run_config
from .scheduler import FrameScheduler, SchedulerState

logger = logging.getLogger("live_pose")


def _sanitize_ort_provider_name(name: str) -> str:
    # Shell line continuations and copy/paste can leave stray backticks/quotes.
    return str(name).strip().strip("'\"`")


def _parse_ort_providers(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    parts: List[str] = []
    for p in str(raw).split(","):
        cleaned = _sanitize_ort_provider_name(p)
        if cleaned:
            parts.append(cleaned)
    return parts or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Live multi-keypoint pose detection on an image or video stream.")
    src = parser.add_argument_group("source (exactly one, here or in --config)")
    src.add_argument("--video", type=str, default=None, help="Path to a video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index.")
    src.add_argument("--rtsp", type=str, default=None, help="RTSP stream URL.")
    src.add_argument("--image", type=str, default=None, help="Path to a still image (single detection).")

    parser.add_argument("--config", type=str, default=None, help="JSON run config; CLI options take precedence.")
    parser.add_argument("--model", type=str, default=None, help="Exported pose model (.onnx / .torchscript).")
    parser.add_argument("--backend", type=str, default=None, choices=["onnxruntime", "torchscript"])
    parser.add_argument("--metadata", type=str, default=None, help="Model metadata.yaml (reads kpt_shape).")
    parser.add_argument("--profile", type=str, default=None, help="JSON detect profile (thresholds, keypoints).")
    parser.add_argument("--onnx-providers", type=str, default=None, help="Comma-separated ORT providers.")
    parser.add_argument("--torch-device", type=str, default="cpu")
    parser.add_argument("--input-width", type=int, default=None, help="Model input width override.")
    parser.add_argument("--input-height", type=int, default=None, help="Model input height override.")
    parser.add_argument("--no-warmup", action="store_true", help="Skip the warm-up inference.")
    parser.add_argument("--show", action="store_true", help="Show annotated frames in a window.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = until the source ends).")
    parser.add_argument("--log-level", type=str, default="INFO")
    return parser


def _resolve_profile(args: argparse.Namespace) -> DetectProfile:
    profile = load_detect_profile(Path(args.profile)) if args.profile else DetectProfile()
    if args.metadata:
        meta = load_pose_metadata(args.metadata)
        if args.profile and meta.keypoint_count != profile.keypoint_count:
            raise ValueError(
                f"Profile keypoint_count={profile.keypoint_count} disagrees with metadata kpt_shape={meta.kpt_shape}."
            )
        profile = DetectProfile(
            max_outputs=profile.max_outputs,
            iou_threshold=profile.iou_threshold,
            score_threshold=profile.score_threshold,
            keypoint_count=meta.keypoint_count,
            fps_publish_interval_ms=profile.fps_publish_interval_ms,
            notes=profile.notes,
        )
    return profile


def _input_size(args: argparse.Namespace) -> Optional[Tuple[int, int]]:
    if args.input_width is None and args.input_height is None:
        return None
    if args.input_width is None or args.input_height is None:
        raise ValueError("--input-width and --input-height must be given together")
    if args.input_width < 32 or args.input_height < 32:
        raise ValueError("--input-width/--input-height must be >= 32")
    return int(args.input_width), int(args.input_height)


def run_image(pipeline: PosePipeline, path: str, *, show: bool) -> int:
    try:
        source = ImageSource.from_path(path)
    except InvalidFrame as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    frame = source.read()
    source.close()

    renderer: Renderer = WindowRenderer(pipeline.input_size) if show else NullRenderer()
    try:
        detections = pipeline.detect(frame, render=renderer.render)
    except ShapeMismatch as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        renderer.clear()
        return 2

    h, w = frame.shape[:2]
    for det in detections.to_frame_pixels((w, h), pipeline.input_size):
        print(f"score={det.score:.3f} box_xyxy={tuple(round(v, 1) for v in det.box.as_xyxy())}")
    print(f"Detections: {len(detections)}")

    if show:
        import cv2

        cv2.waitKey(0)
        renderer.clear()
    return 0


def run_stream(pipeline: PosePipeline, args: argparse.Namespace, profile: DetectProfile) -> int:
    cap = open_capture(video=args.video, webcam=args.webcam, rtsp=args.rtsp)
    info = get_capture_info(cap)
    logger.info("Source opened: %sx%s @ %s fps", info.width, info.height, info.fps)
    source = CaptureSource(cap)

    def _print_fps(fps: int) -> None:
        if fps:
            print(f"FPS: {fps}")

    def _quit() -> None:
        scheduler.stop()

    renderer: Renderer = WindowRenderer(pipeline.input_size, on_quit=_quit) if args.show else NullRenderer()

    scheduler = FrameScheduler(
        pipeline,
        source,
        renderer=renderer,
        metric_sink=_print_fps,
        cfg=profile.scheduler_config(),
    )

    try:
        scheduler.run(max_ticks=args.max_frames if args.max_frames and args.max_frames > 0 else None)
    except ShapeMismatch as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    finally:
        scheduler.stop()
        source.close()
        renderer.clear()

    print(f"Frames processed: {scheduler.frames_processed}")
    if scheduler.frames_dropped:
        print(f"Frames dropped: {scheduler.frames_dropped}")
    print(f"Last FPS: {scheduler.last_fps}")
    if scheduler.state is SchedulerState.SOURCE_ENDED:
        print("Source ended.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(argv)

    if args.config:
        payload = load_run_config(Path(args.config))
        apply_run_config(args=args, payload=payload, cli_dests=collect_cli_dests(parser, argv), parser=parser)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    source_count = sum(int(getattr(args, k) is not None) for k in ("video", "webcam", "rtsp", "image"))
    if source_count != 1:
        parser.error("Exactly one source must be set: --video, --webcam, --rtsp or --image (or via --config).")
    if not args.model:
        parser.error("--model is required (or set 'model' in --config).")
    if args.max_frames < 0:
        parser.error("--max-frames must be >= 0")

    profile = _resolve_profile(args)
    pipeline = load_pipeline(
        args.model,
        backend=args.backend,
        input_size=_input_size(args),
        pre_cfg=PreprocessConfig(),
        post_cfg=profile.post_config(),
        monitor=ScopeMonitor(),
        onnx_providers=_parse_ort_providers(args.onnx_providers),
        torch_device=args.torch_device,
    )
    if not args.no_warmup:
        pipeline.warmup()

    if args.image is not None:
        return run_image(pipeline, args.image, show=bool(args.show))
    return run_stream(pipeline, args, profile)
