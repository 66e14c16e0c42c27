from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv

from ..models.image import Image
from ..models.errors import InvalidImageError
from ..models.scene import CropSelection, SceneBox, SceneTransform, Viewport

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def default_viewport() -> Viewport:
    return Viewport(
        width=float(os.getenv("VIEWPORT_WIDTH", "700")),
        height=float(os.getenv("VIEWPORT_HEIGHT", "500")),
        margin=float(os.getenv("VIEWPORT_MARGIN", "40")),
    )


class SceneService:
    """
    Scene model of the crop tool: one fitted image plus one selection rectangle.

    *   Holds no pixels, only geometry in scene coordinates.
    *   The transform is recomputed from scratch on every load.
    """

    def __init__(self, viewport: Viewport = None, selection_ratio: float = None):
        self.viewport = viewport or default_viewport()
        self.selection_ratio = (
            selection_ratio
            if selection_ratio is not None
            else float(os.getenv("DEFAULT_SELECTION_RATIO", "0.5"))
        )
        self.transform: Optional[SceneTransform] = None
        self.selection: Optional[CropSelection] = None

    # ─── Fit transform ─────────────────────────────────────────────
    @staticmethod
    def compute_fit(width: int, height: int, viewport: Viewport) -> SceneTransform:
        """
        Uniform scale that fits the image into the viewport minus margin,
        centered. Raises InvalidImageError for degenerate sizes.
        """
        if width <= 0 or height <= 0:
            raise InvalidImageError(f"Cannot fit a {width}x{height} image")

        avail_w = viewport.width - viewport.margin
        avail_h = viewport.height - viewport.margin
        if avail_w <= 0 or avail_h <= 0:
            raise InvalidImageError(f"Viewport {viewport} leaves no room after margin")

        scale = min(avail_h / height, avail_w / width)
        offset_x = (viewport.width - width * scale) / 2
        offset_y = (viewport.height - height * scale) / 2
        return SceneTransform(scale, offset_x, offset_y, width, height)

    def default_selection(self, transform: SceneTransform) -> CropSelection:
        """Selection of `selection_ratio` of the fitted image, centered over it."""
        ratio = self.selection_ratio
        inset = (1.0 - ratio) / 2
        return CropSelection(
            left=transform.offset_x + transform.scene_width * inset,
            top=transform.offset_y + transform.scene_height * inset,
            width=transform.scene_width * ratio,
            height=transform.scene_height * ratio,
        )

    # ─── Public API ────────────────────────────────────────────────
    def load_image(self, image: Image, viewport: Viewport = None) -> SceneTransform:
        if viewport is not None:
            self.viewport = viewport
        transform = self.compute_fit(image.width, image.height, self.viewport)
        self.transform = transform
        self.selection = self.default_selection(transform)
        logger.info(
            f"Scene fitted {image.width}x{image.height} at scale {transform.scale_factor:.4f} "
            f"offset=({transform.offset_x:.1f},{transform.offset_y:.1f})"
        )
        return transform

    def update_selection(
        self,
        left: float,
        top: float,
        width: float,
        height: float,
        scale_x: float = 1.0,
        scale_y: float = 1.0,
    ) -> CropSelection:
        """
        Accept a user move/resize. Only negative sizes and scales are clamped;
        bounds are enforced when the selection is extracted.
        """
        if self.transform is None:
            raise InvalidImageError("No image loaded into the scene")

        self.selection = CropSelection(
            left=float(left),
            top=float(top),
            width=max(0.0, float(width)),
            height=max(0.0, float(height)),
            scale_x=max(0.0, float(scale_x)),
            scale_y=max(0.0, float(scale_y)),
        )
        logger.debug(f"Selection updated: {self.selection.box()}")
        return self.selection

    def image_scene_bounds(self) -> SceneBox:
        if self.transform is None:
            raise InvalidImageError("No image loaded into the scene")
        return self.transform.image_box()

    def clear(self) -> None:
        self.transform = None
        self.selection = None
