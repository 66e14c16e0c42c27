from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np


@dataclass
class Image:
    """
    Simple data object: RGB or RGBA pixels (+ optional source path for bookkeeping).
    No OpenCV logic outside the repositories/services.
    """
    pixels: np.ndarray # Shape (H, W, 3) RGB or (H, W, 4) RGBA, dtype uint8.
    path: Path | None = None # Source of the image.

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def has_alpha(self) -> bool:
        return self.pixels.ndim == 3 and self.pixels.shape[2] == 4

    @property
    def is_frozen(self) -> bool:
        """True when the pixel buffer is read-only (a committed source image)."""
        return not self.pixels.flags.writeable
