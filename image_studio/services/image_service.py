from pathlib import Path
from typing import Union
import base64
import logging
import os

import numpy as np
from dotenv import load_dotenv

from ..models.image import Image
from ..models.errors import EmptyCropError
from ..repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageService:
    """I/O helpers and raw pixel slicing.  No filter logic, no scene math."""
    def __init__(self, image_repository: ImageRepository = None):
        self.EXPORT_FILENAME = os.getenv("EXPORT_FILENAME", "processed-image.png")
        self.image_repository = image_repository or ImageRepository()

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        return self.image_repository.create_image(pixels, path)

    def freeze(self, image: Image) -> Image:
        """Read-only copy, suitable to become a session's source image."""
        return self.image_repository.freeze(image)

    def decode_upload(self, data: bytes, filename: str | None = None) -> Image:
        """Decode an uploaded byte stream (JPEG/PNG) into a source image."""
        return self.image_repository.decode(data, filename)

    def load(self, path: str | Path) -> Image:
        """Load a single image from disk into an Image object."""
        return self.image_repository.load(path)

    def save(self, image: Image) -> None:
        """
        Business-level method to save the image to its path.
        """
        self.image_repository.save(image)

    def encode_png(self, image: Image) -> bytes:
        return self.image_repository.encode_png(image)

    def to_data_url(self, image: Image) -> str:
        """Encode Image → PNG data URL for JSON responses."""
        encoded = base64.b64encode(self.encode_png(image)).decode("utf-8")
        return f"data:image/png;base64,{encoded}"

    def crop_pixels(self, img: Image, bound_r, bound_l, bound_t, bound_b) -> np.ndarray:
        width = bound_r - bound_l
        height = bound_b - bound_t
        logger.debug(f"Crop bounds=({bound_l},{bound_t},{bound_r},{bound_b}) → width={width}, height={height}")

        if bound_l >= bound_r or bound_t >= bound_b:
            img_h, img_w = img.pixels.shape[:2]
            logger.warning(
                f"Invalid crop bounds for {img_w}x{img_h} image: "
                f"left={bound_l}, right={bound_r}, top={bound_t}, bottom={bound_b}"
            )
            raise EmptyCropError(f"Invalid crop bounds would create {width}x{height} image")

        return img.pixels[bound_t:bound_b, bound_l:bound_r].copy()
