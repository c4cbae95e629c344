from __future__ import annotations
import argparse
import time

from .background import BackgroundSynthesizer
from .capture import FrameSource
from .compositor import Compositor
from .config import AppConfig
from .display import PreviewWindow
from .logging import get_logger, setup_logging
from .pipeline import Pipeline
from .profiler import get_profiler
from .segmentation import create_segmenter
from .selection import BackgroundMode, Selection

BACKGROUND_CHOICES = ["blur", "black", "white", "gradient", "image"]


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Backdrop: live virtual background preview")
    p.add_argument(
        "--background",
        type=str,
        choices=BACKGROUND_CHOICES,
        default=None,
        help="Initial background mode. Default: from config.",
    )
    p.add_argument(
        "--background-image",
        type=str,
        default=None,
        help="Image used by the 'image' background mode.",
    )
    p.add_argument(
        "--debug-mask",
        action="store_true",
        help="Start with the raw segmentation mask shown (toggle with M).",
    )
    p.add_argument(
        "--segmenter",
        type=str,
        choices=["mediapipe", "yolo"],
        default=None,
        help="Segmentation backend (mediapipe, yolo). Default: from config.",
    )
    p.add_argument("--seg-width", type=int, default=None, help="Segmentation input width.")
    p.add_argument("--seg-height", type=int, default=None, help="Segmentation input height.")
    p.add_argument("--yolo-model", type=str, default=None, help="YOLO model path.")
    p.add_argument("--camera", type=int, default=None, help="Camera index.")
    p.add_argument("--width", type=int, default=None, help="Capture width.")
    p.add_argument("--height", type=int, default=None, help="Capture height.")
    p.add_argument(
        "--no-mirror",
        action="store_true",
        help="Do not flip frames horizontally.",
    )
    p.add_argument(
        "--fullscreen",
        action="store_true",
        help="Open in fullscreen on the primary monitor.",
    )
    p.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Minimum log level (DEBUG, INFO, WARNING...). Default: from config.",
    )
    p.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log to a file instead of the console.",
    )
    return p


def config_from_args(args) -> AppConfig:
    cfg = AppConfig()
    if args.background is not None:
        cfg.background = args.background
    if args.background_image is not None:
        cfg.background_image = args.background_image
    if args.debug_mask:
        cfg.debug_mask = True
    if args.segmenter is not None:
        cfg.segmenter = args.segmenter
    if args.seg_width is not None:
        cfg.seg_width = args.seg_width
    if args.seg_height is not None:
        cfg.seg_height = args.seg_height
    if args.yolo_model is not None:
        cfg.yolo_model = args.yolo_model
    if args.camera is not None:
        cfg.camera_index = args.camera
    if args.width is not None:
        cfg.width = args.width
    if args.height is not None:
        cfg.height = args.height
    if args.no_mirror:
        cfg.mirror = False
    if args.fullscreen:
        cfg.fullscreen = True
    if args.log_level is not None:
        cfg.log_level = args.log_level
    if args.log_file is not None:
        cfg.log_file = args.log_file
    return cfg


def describe(pipeline: Pipeline) -> str:
    sel = pipeline.requested
    if pipeline.state.offline:
        return "camera offline"
    text = sel.mode.display_name
    if sel.debug_mask:
        text += " [mask]"
    return text


def main(argv=None):
    args = build_parser().parse_args(argv)
    cfg = config_from_args(args)

    # --- logging ---
    setup_logging(cfg.log_level, cfg.log_file)
    logger = get_logger(__name__)

    # --- pipeline ---
    source = FrameSource(
        cfg.camera_index,
        cfg.width,
        cfg.height,
        mirror=cfg.mirror,
        max_read_failures=cfg.max_read_failures,
    )
    segmenter = create_segmenter(cfg)
    pipeline = Pipeline(
        source,
        segmenter,
        BackgroundSynthesizer(cfg.background_image),
        Compositor(),
        Selection(BackgroundMode.from_name(cfg.background), cfg.debug_mask),
    )

    window = PreviewWindow(
        cfg,
        on_mode=pipeline.select,
        on_toggle_debug=pipeline.toggle_debug_mask,
    )

    logger.info("1 blur  2 black  3 white  4 gradient  5 image  M mask  ESC quit")

    profiler = get_profiler()
    shown = 0
    last_log = time.monotonic()
    title = None
    try:
        pipeline.start()
        while not window.should_close():
            window.poll()
            if window.upload(*pipeline.output.latest()):
                shown += 1
            window.render()

            text = describe(pipeline)
            if text != title:
                window.set_title(text)
                title = text

            # --- Performance logging ---
            now = time.monotonic()
            elapsed = now - last_log
            if elapsed >= cfg.log_interval:
                logger.info(f"Preview FPS: {shown / elapsed:.2f}")
                profiler.log_stats()
                shown = 0
                last_log = now
    finally:
        pipeline.stop()
        segmenter.close()
        window.close()
