"""
Command-line editing: load one image, optionally crop / filter / remove the
background, and write a PNG.

    image-studio photo.jpg -o out.png --crop 0 0 400 300 --brightness 20 --blur 2
"""
import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from ..models.errors import ImageStudioError
from ..models.filter_state import FilterState, PARAMETER_RANGES, PointOperation
from ..models.scene import CropSelection, SceneTransform
from ..services.image_service import ImageService
from ..services.filter_service import FilterService
from ..services.cropping_service import CroppingService
from ..services.background_service import BackgroundService

logger = logging.getLogger("image_studio.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="image-studio", description="Crop, filter and export an image.")
    parser.add_argument("input", help="JPEG or PNG file")
    parser.add_argument("-o", "--output", required=True, help="Output path (PNG recommended)")
    parser.add_argument("--crop", nargs=4, type=float, metavar=("X", "Y", "W", "H"),
                        help="Crop rectangle in source pixels (clamped to the image)")

    point = parser.add_mutually_exclusive_group()
    point.add_argument("--grayscale", action="store_true")
    point.add_argument("--invert", action="store_true")

    for name, (lo, hi) in PARAMETER_RANGES.items():
        parser.add_argument(f"--{name.replace('_', '-')}", type=float, default=0.0,
                            help=f"{lo:g} .. {hi:g}")

    parser.add_argument("--remove-background", action="store_true",
                        help="Clear the background (requires the segmentation extra)")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def state_from_args(args) -> FilterState:
    state = FilterState()
    for name in PARAMETER_RANGES:
        value = getattr(args, name)
        if value:
            state = state.with_parameter(name, value)
    if args.grayscale:
        state = state.with_point_operation(PointOperation.GRAYSCALE)
    elif args.invert:
        state = state.with_point_operation(PointOperation.INVERT)
    return state


def crop_with_pixels(cropping_service: CroppingService, image, x, y, w, h):
    """Pixel-space crop with the same clamping and rounding as the interactive tool."""
    identity = SceneTransform(1.0, 0.0, 0.0, image.width, image.height)
    selection = CropSelection(left=x, top=y, width=w, height=h)
    rect = cropping_service.map_selection(image, identity, selection)
    return cropping_service.crop_rect(image, rect)


def run(args) -> int:
    image_service = ImageService()
    filter_service = FilterService()
    cropping_service = CroppingService(image_service)

    image = image_service.load(args.input)
    logger.info(f"Loaded {args.input}: {image.width}x{image.height}")

    if args.crop:
        image = crop_with_pixels(cropping_service, image, *args.crop)
        logger.info(f"Cropped to {image.width}x{image.height}")

    state = state_from_args(args)
    result = filter_service.apply(image, state)

    if args.remove_background:
        result = BackgroundService().remove_background(result)

    result.path = Path(args.output)
    image_service.save(result)
    logger.info(f"Saved {result.path}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    try:
        return run(args)
    except (ImageStudioError, FileNotFoundError) as err:
        logger.error(f"{type(err).__name__}: {err}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
