from pathlib import Path
from typing import Union
from io import BytesIO
import logging
import os

import numpy as np
from PIL import Image as PILImage, ImageOps, UnidentifiedImageError
from dotenv import load_dotenv

from ..models.image import Image
from ..models.errors import DecodeError, InvalidImageError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Formats accepted at the upload boundary (Pillow format names).
SUPPORTED_FORMATS = {"JPEG", "PNG"}


class ImageRepository:
    """
    Handles byte/file I/O for Image entities. Only place that talks to Pillow codecs.
    """
    def __init__(self):
        self.VALID_EXTS = {
            ext.strip().lower()
            for ext in os.getenv("VALID_IMAGE_EXTENSIONS", ".jpg,.jpeg,.png").split(",")
            if ext.strip()
        }

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    @staticmethod
    def freeze(image: Image) -> Image:
        """
        Return a new Image whose pixels are a contiguous, read-only copy.
        Source images are replaced, never mutated.
        """
        pixels = np.ascontiguousarray(image.pixels, dtype=np.uint8).copy()
        pixels.setflags(write=False)
        return Image(pixels=pixels, path=image.path)

    @staticmethod
    def _validate_pixels(pixels: np.ndarray) -> None:
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise InvalidImageError(f"Unsupported pixel layout {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InvalidImageError(f"Image has zero dimension {pixels.shape[1]}x{pixels.shape[0]}")

    @staticmethod
    def _to_array(pil: PILImage.Image) -> np.ndarray:
        has_alpha = "A" in pil.getbands() or (pil.mode == "P" and "transparency" in pil.info)
        target = "RGBA" if has_alpha else "RGB"
        if pil.mode != target:
            pil = pil.convert(target)
        return np.asarray(pil, dtype=np.uint8)

    def decode(self, data: bytes, filename: str | None = None) -> Image:
        """
        Decode uploaded bytes into a frozen Image.
        Either returns a fully loaded buffer with positive dimensions or raises.
        """
        if not data:
            raise DecodeError("Empty upload")

        try:
            with PILImage.open(BytesIO(data)) as pil:
                if pil.format not in SUPPORTED_FORMATS:
                    raise DecodeError(f"Unsupported image format: {pil.format}")
                pil.load()
                oriented = ImageOps.exif_transpose(pil)
                pixels = self._to_array(oriented)
        except (UnidentifiedImageError, PILImage.DecompressionBombError, OSError, SyntaxError, ValueError) as err:
            raise DecodeError(f"Could not decode {filename or 'upload'}: {err}") from err

        self._validate_pixels(pixels)
        logger.debug(f"Decoded {filename or 'upload'}: {pixels.shape}")
        return self.freeze(self.create_image(pixels, filename or None))

    def load(self, path: Union[str, Path]) -> Image:
        path = Path(path)
        if path.suffix.lower() not in self.VALID_EXTS:
            raise DecodeError(f"Unsupported file extension: {path.suffix}")
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return self.decode(path.read_bytes(), str(path))

    @staticmethod
    def encode_png(image: Image) -> bytes:
        """Lossless PNG encoding of the pixel buffer."""
        buffer = BytesIO()
        PILImage.fromarray(np.ascontiguousarray(image.pixels)).save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def save(image: Image) -> None:
        pil = PILImage.fromarray(np.ascontiguousarray(image.pixels))
        if image.has_alpha and Path(image.path).suffix.lower() in {".jpg", ".jpeg"}:
            pil = pil.convert("RGB")
        pil.save(image.path)
