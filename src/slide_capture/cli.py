"""
Command Line Interface
======================

Usage:
    slide-capture capture lecture.mp4 -o ./captures --direction bottom-right \
        --width 75 --height 75 --interval 1.0
    slide-capture serve --port 8002

capture:
    Samples a recorded video offline. Each tick advances the playback
    position by --interval seconds, so the result matches what a live
    session would have retained at that tick period. Prints the path of
    the archive, if any frame was retained.

serve:
    Runs the HTTP/WebSocket service (slide_capture.main:app).
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from slide_capture.capture import CaptureEngine, LoggingObserver, ZipArchiveSink
from slide_capture.config import Settings, build_settings, load_config, setup_logging
from slide_capture.errors import ConfigurationError
from slide_capture.models.geometry import CropDirection
from slide_capture.models.session import CaptureStatus
from slide_capture.stream import VideoFileLocator


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: search common locations)",
    )
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    parser = argparse.ArgumentParser(
        prog="slide-capture",
        description="Keep one frame per distinct slide of a presentation video",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    capture = commands.add_parser(
        "capture",
        parents=[common],
        help="Capture slides from a video file",
    )
    capture.add_argument("video", help="Video file path or URL")
    capture.add_argument(
        "-o", "--output-dir",
        default=None,
        help="Directory the zip archive is written to",
    )
    capture.add_argument(
        "--direction",
        default=None,
        choices=[d.value for d in CropDirection],
        help="Crop anchor",
    )
    capture.add_argument("--width", type=float, default=None, help="Crop width in percent")
    capture.add_argument("--height", type=float, default=None, help="Crop height in percent")
    capture.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds of video between samples",
    )
    capture.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Minimum perceptual hash similarity (percent) for a duplicate",
    )
    capture.add_argument(
        "--format",
        dest="image_format",
        default=None,
        choices=["webp", "png", "jpeg"],
        help="Encoding of retained frames",
    )

    serve = commands.add_parser("serve", parents=[common], help="Run the capture service")
    serve.add_argument("--host", default=None, help="Bind host")
    serve.add_argument("--port", type=int, default=None, help="Bind port")

    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Layer command line options over loaded settings."""
    data = settings.model_dump()

    overrides = {
        ("export", "output_dir"): getattr(args, "output_dir", None),
        ("export", "image_format"): getattr(args, "image_format", None),
        ("crop", "direction"): getattr(args, "direction", None),
        ("crop", "width_percentage"): getattr(args, "width", None),
        ("crop", "height_percentage"): getattr(args, "height", None),
        ("capture", "tick_interval_sec"): getattr(args, "interval", None),
        ("thresholds", "phash_min_similarity"): getattr(args, "threshold", None),
        ("server", "host"): getattr(args, "host", None),
        ("server", "port"): getattr(args, "port", None),
    }
    for (section, key), value in overrides.items():
        if value is not None:
            data[section][key] = value

    if args.verbose:
        data["logging"]["level"] = "DEBUG"
        data["logging"]["format"] = "text"

    # Overrides are validated like file values
    return build_settings(data)


async def capture_video(settings: Settings, video: str) -> Optional[str]:
    """
    Run one offline capture session over a video file.

    Returns:
        Path of the written archive, or None if nothing was retained
    """
    locator = VideoFileLocator(video, step_sec=settings.capture.tick_interval_sec)
    if locator.locate() is None:
        logger.error(f"Could not open {video}")
        return None

    engine = CaptureEngine(
        locator=locator,
        sink=ZipArchiveSink(settings.export.output_dir, settings.export.archive_prefix),
        crop=settings.crop_region(),
        thresholds=settings.similarity_thresholds(),
        timings=settings.capture_timings(),
        thumbnail_size=settings.capture.thumbnail_size,
        image_format=settings.export.image_format,
        quality=settings.export.quality,
        observers=[LoggingObserver()],
        timers=False,
        log_every_n_ticks=settings.observability.log_every_n_ticks,
    )

    try:
        await engine.start()

        while engine.status == CaptureStatus.SEARCHING:
            await engine.search_tick()
            if engine.status == CaptureStatus.SEARCHING:
                await asyncio.sleep(settings.capture.search_interval_sec)

        if engine.status == CaptureStatus.TIMED_OUT:
            logger.error(f"Could not open {video}")
            return None

        while engine.status == CaptureStatus.CAPTURING:
            await engine.tick()

        if engine.status != CaptureStatus.STOPPED:
            await engine.stop()
    finally:
        await engine.close()
        locator.release()

    logger.info(
        f"Capture finished: {len(engine.retained_frames)} frame(s) retained, "
        f"{engine.metrics.duplicates} duplicate(s)"
    )
    return str(engine.last_archive) if engine.last_archive is not None else None


def serve(settings: Settings) -> None:
    import uvicorn

    from slide_capture.main import create_app

    uvicorn.run(create_app(settings), host=settings.server.host, port=settings.server.port)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = apply_overrides(load_config(args.config), args)
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    setup_logging(settings)

    if args.command == "serve":
        serve(settings)
        return 0

    archive = asyncio.run(capture_video(settings, args.video))
    if archive is None:
        print("No frames retained")
        return 1
    print(archive)
    return 0


if __name__ == "__main__":
    sys.exit(main())
