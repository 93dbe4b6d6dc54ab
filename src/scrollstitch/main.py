#!/usr/bin/env python3
"""
ScrollStitch - long screenshots from overlapping screen captures
Command-line entry point
"""

import sys
import argparse
import logging
from pathlib import Path

from scrollstitch.core.errors import StitchError
from scrollstitch.core.exporter import ExportSettings, save_image
from scrollstitch.core.stitcher import (
    ScrollStitcher,
    StitchFailure,
    StitchWarning,
    collect_image_paths,
    load_images,
)
from scrollstitch.utils.logger import get_log_file_path, setup_logger

logger = logging.getLogger("scrollstitch.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ScrollStitch - stitch scrolling screenshots or a screen recording"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--input",
        type=str,
        nargs="+",
        help="Image files, or a directory of screenshots"
    )
    source.add_argument(
        "--video",
        type=str,
        help="Screen recording to stitch"
    )
    parser.add_argument(
        "--output",
        type=str,
        required=True,
        help="Output file path for the stitched image"
    )
    parser.add_argument(
        "--mode",
        type=str,
        default="generic",
        choices=["generic", "list_content"],
        help="Matcher mode for screenshots (default: generic)"
    )
    parser.add_argument(
        "--no-reorder",
        action="store_true",
        help="Keep screenshots in the given order"
    )
    parser.add_argument(
        "--top-crop",
        type=float,
        default=0.0,
        help="Rows to crop from the top of the result"
    )
    parser.add_argument(
        "--bottom-crop",
        type=float,
        default=0.0,
        help="Rows to crop from the bottom of the result"
    )
    parser.add_argument(
        "--format",
        type=str,
        default=None,
        choices=["png", "jpeg"],
        help="Output format (default: from the output file extension)"
    )
    parser.add_argument(
        "--resolution",
        type=str,
        default="large",
        choices=["large", "medium", "small"],
        help="Output size (default: large)"
    )
    parser.add_argument(
        "--jpeg-quality",
        type=int,
        default=95,
        help="JPEG quality, 1-100 (default: 95)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output to the console"
    )
    return parser


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    setup_logger("scrollstitch", logging.DEBUG if args.verbose else logging.INFO)
    log_file = get_log_file_path()
    if log_file is not None:
        logger.info(f"Log file: {log_file.absolute()}")

    output = Path(args.output)
    format_name = args.format or ("jpeg" if output.suffix.lower() in (".jpg", ".jpeg") else "png")
    try:
        settings = ExportSettings.from_names(
            format_name, args.resolution, jpeg_quality=args.jpeg_quality
        )
    except ValueError as e:
        logger.error(str(e))
        return 1

    stitcher = ScrollStitcher(mode=args.mode, reorder=not args.no_reorder)

    if args.video:
        video_path = Path(args.video)
        if not video_path.exists():
            logger.error(f"Video does not exist: {video_path}")
            return 1
        outcome = stitcher.stitch_video(video_path)
    else:
        paths = collect_image_paths(args.input)
        missing = [p for p in paths if not p.exists()]
        if missing:
            logger.error(f"Input path does not exist: {missing[0]}")
            return 1
        logger.info(f"Found {len(paths)} images")
        outcome = stitcher.stitch(load_images(paths))

    if isinstance(outcome, StitchFailure):
        logger.error(f"Stitching failed ({outcome.kind}): {outcome.message}")
        return 1

    image = outcome.image
    if args.top_crop or args.bottom_crop:
        plan = outcome.plan.adjust_top_crop(args.top_crop).adjust_bottom_crop(args.bottom_crop)
        try:
            image = stitcher.compositor.render_full_resolution(plan)
        except StitchError as e:
            logger.error(f"Re-render after cropping failed: {e}")
            return 1

    save_image(image, output, settings)
    if isinstance(outcome, StitchWarning):
        logger.warning(f"Completed with warnings: {outcome.message}")
    logger.info(f"Saved {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
