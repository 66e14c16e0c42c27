import logging
import os

import numpy as np
from dotenv import load_dotenv

from ..models.image import Image
from ..models.errors import ProcessingError
from .segmentation_service import SegmentationService

load_dotenv()

logger = logging.getLogger(__name__)


class BackgroundService:
    """
    Business‑level helper for background removal.

    • Uses SegmentationService to get the person mask.
    • Returns a **new** RGBA Image whose alpha channel is the matte;
      colour channels are left untouched.
    """

    def __init__(self, seg_service: SegmentationService = None, threshold: float = None):
        self.seg_service = seg_service or SegmentationService()
        self.threshold = (
            threshold if threshold is not None
            else float(os.getenv("SEGMENTATION_THRESHOLD", "0.5"))
        )

    @staticmethod
    def _compose_alpha(pixels: np.ndarray, alpha_u8: np.ndarray) -> np.ndarray:
        """
        Attach the matte as alpha. An existing alpha channel is intersected
        with the matte so already transparent pixels stay transparent.
        """
        rgb = pixels[:, :, :3]
        if pixels.shape[2] == 4:
            alpha_u8 = np.minimum(alpha_u8, pixels[:, :, 3])
        return np.dstack([rgb, alpha_u8]).astype(np.uint8)

    # --------------------------------------------------------------
    def remove_background(self, img: Image) -> Image:
        """
        Clear the background of *img*. Any failure of the underlying model is
        reported as ProcessingError; the input image is never modified.
        """
        try:
            mask = self.seg_service.mask_person(img, thr=self.threshold)
        except Exception as err:
            logger.error(f"Background removal failed: {err}", exc_info=True)
            raise ProcessingError(f"Segmentation failed: {err}") from err

        if mask.shape != img.pixels.shape[:2]:
            raise ProcessingError(f"Mask shape {mask.shape} does not match image {img.pixels.shape[:2]}")

        out = self._compose_alpha(img.pixels, mask.astype(np.uint8))
        logger.info(f"Background removed: {img.width}x{img.height}, foreground {np.mean(mask > 127):.1%}")
        return Image(pixels=out, path=img.path)
