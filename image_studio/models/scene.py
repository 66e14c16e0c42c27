from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class Viewport:
    """Fixed on-screen area the image is fitted into (scene units)."""
    width: float = 700.0
    height: float = 500.0
    margin: float = 40.0


@dataclass(frozen=True)
class SceneBox:
    """Axis-aligned box in scene coordinates. Always a fresh snapshot."""
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h


@dataclass(frozen=True)
class SceneTransform:
    """
    Maps source pixel space → scene space: scene = pixel * scale_factor + offset.
    Computed once per image load; never updated incrementally.
    """
    scale_factor: float
    offset_x: float
    offset_y: float
    image_width: int
    image_height: int

    @property
    def scene_width(self) -> float:
        return self.image_width * self.scale_factor

    @property
    def scene_height(self) -> float:
        return self.image_height * self.scale_factor

    def image_box(self) -> SceneBox:
        """On-scene bounds of the fitted image."""
        return SceneBox(self.offset_x, self.offset_y, self.scene_width, self.scene_height)


@dataclass
class CropSelection:
    """
    Overlay rectangle in scene coordinates.

    width/height are the rectangle's own size, scale_x/scale_y the resize
    multipliers applied by the interactive tool. Rotation is not representable.
    """
    left: float
    top: float
    width: float
    height: float
    scale_x: float = 1.0
    scale_y: float = 1.0

    def box(self) -> SceneBox:
        """Effective box (size times scale), recomputed on every call."""
        return SceneBox(
            self.left,
            self.top,
            self.width * self.scale_x,
            self.height * self.scale_y,
        )


@dataclass(frozen=True)
class PixelRect:
    """Integer rectangle in source pixel space, [x, x+width) × [y, y+height)."""
    x: int
    y: int
    width: int
    height: int
