import logging
import math

from ..models.image import Image
from ..models.errors import EmptyCropError, InvalidImageError
from ..models.scene import CropSelection, PixelRect, SceneTransform
from .image_service import ImageService

logger = logging.getLogger(__name__)

# Float noise tolerated before rounding onto the pixel grid.
_GRID_EPS = 1e-6


class CroppingService:
    """
    Crop extractor: maps a scene-space selection onto source pixels and copies them.
    """

    def __init__(self, image_service: ImageService = None):
        self.image_service = image_service or ImageService()

    @staticmethod
    def selection_to_image_space(transform: SceneTransform, selection: CropSelection):
        """
        Scene box → fractional (x, y, w, h) in source pixels, unclamped.
        """
        if transform.scale_factor <= 0:
            raise InvalidImageError(f"Invalid scale factor {transform.scale_factor}")

        box = selection.box()
        scale = transform.scale_factor
        x = (box.x - transform.offset_x) / scale
        y = (box.y - transform.offset_y) / scale
        w = box.w / scale
        h = box.h / scale
        return x, y, w, h

    @staticmethod
    def clamp_to_image(x: float, y: float, w: float, h: float, img_w: int, img_h: int):
        """
        Clamp the origin at 0, then cap the extent at the image size measured
        from the clamped origin.
        """
        x = max(0.0, x)
        y = max(0.0, y)
        w = min(w, img_w - x)
        h = min(h, img_h - y)
        return x, y, w, h

    def map_selection(self, image: Image, transform: SceneTransform, selection: CropSelection) -> PixelRect:
        img_w, img_h = image.width, image.height
        if img_w <= 0 or img_h <= 0:
            raise InvalidImageError(f"Cannot crop a {img_w}x{img_h} image")

        x, y, w, h = self.selection_to_image_space(transform, selection)
        if x + w <= 0 or y + h <= 0:
            raise EmptyCropError(f"Selection ends at ({x + w:.2f}, {y + h:.2f}), before the image")

        x, y, w, h = self.clamp_to_image(x, y, w, h, img_w, img_h)
        if w <= 0 or h <= 0:
            raise EmptyCropError(f"Selection resolves to {w:.2f}x{h:.2f} px after clamping")

        # Floor the origin, ceil the far edge, both kept on the image grid.
        px = min(int(math.floor(x + _GRID_EPS)), img_w - 1)
        py = min(int(math.floor(y + _GRID_EPS)), img_h - 1)
        right = min(int(math.ceil(x + w - _GRID_EPS)), img_w)
        bottom = min(int(math.ceil(y + h - _GRID_EPS)), img_h)
        if right <= px or bottom <= py:
            raise EmptyCropError(f"Selection rounds to an empty {right - px}x{bottom - py} rectangle")

        return PixelRect(px, py, right - px, bottom - py)

    def crop_rect(self, image: Image, rect: PixelRect) -> Image:
        """Copy an integer pixel rectangle into a new, frozen image."""
        new_pixels = self.image_service.crop_pixels(
            image,
            bound_r=rect.x + rect.width,
            bound_l=rect.x,
            bound_t=rect.y,
            bound_b=rect.y + rect.height,
        )
        return self.image_service.freeze(self.image_service.create_image(new_pixels, image.path))

    def extract(self, image: Image, transform: SceneTransform, selection: CropSelection) -> Image:
        rect = self.map_selection(image, transform, selection)
        cropped = self.crop_rect(image, rect)
        logger.info(
            f"Cropped {image.width}x{image.height} → {cropped.width}x{cropped.height} at ({rect.x},{rect.y})"
        )
        return cropped
