from __future__ import annotations

import logging
import os

import cv2
import numpy as np
from dotenv import load_dotenv

from ..models.image import Image
from ..models.filter_state import FilterState, PointOperation

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Luminance weights of the saturate colour matrix (Rec. 709, as used by CSS filters).
_LUMA = np.array([0.213, 0.715, 0.072], dtype=np.float32)


class FilterService:
    """
    Derives the displayed image from a source image and a FilterState.

    *   Always starts from the source; never reads a previous result.
    *   Point operations replace the continuous pass entirely.
    *   Pure: same source + same state → byte-identical pixels.
    """

    def __init__(self,
                 blur_radius_factor: float = None,
                 sharpen_sigma: float = None,
                 denoise_strength: float = None):
        self.blur_radius_factor = (
            blur_radius_factor if blur_radius_factor is not None
            else float(os.getenv("BLUR_RADIUS_FACTOR", "0.5"))
        )
        # Secondary passes
        self.sharpen_sigma = (
            sharpen_sigma if sharpen_sigma is not None
            else float(os.getenv("SHARPEN_SIGMA", "1.0"))
        )
        self.denoise_strength = (
            denoise_strength if denoise_strength is not None
            else float(os.getenv("DENOISE_STRENGTH", "0.3"))
        )

    # ─── Public API ────────────────────────────────────────────────
    def apply(self, source: Image, state: FilterState) -> Image:
        if state.point_operation is not PointOperation.NONE:
            pixels = self.apply_point_operation(source.pixels, state.point_operation)
        elif not state.has_continuous:
            pixels = source.pixels.copy()
        else:
            pixels = self.apply_continuous(source.pixels, state)

        logger.debug(f"Applied {state.to_dict()} to {source.width}x{source.height}")
        return Image(pixels=pixels, path=source.path)

    def apply_point_operation(self, pixels: np.ndarray, op: PointOperation) -> np.ndarray:
        rgb, alpha = self._split_alpha(pixels)
        if op is PointOperation.GRAYSCALE:
            out = self.grayscale(rgb)
        elif op is PointOperation.INVERT:
            out = self.invert(rgb)
        else:
            out = rgb.copy()
        return self._merge_alpha(out, alpha)

    def apply_continuous(self, pixels: np.ndarray, state: FilterState) -> np.ndarray:
        """
        One pass with the whole vector, in the order:
        blur → brightness → contrast → saturation → noise reduction → sharpness.
        """
        rgb, alpha = self._split_alpha(pixels)
        work = rgb.astype(np.float32)

        radius = state.blur_radius(self.blur_radius_factor)
        if radius > 0:
            work = cv2.GaussianBlur(work, (0, 0), sigmaX=radius, sigmaY=radius)
        if state.brightness != 0:
            work = np.clip(work * state.brightness_factor, 0, 255)
        if state.contrast != 0:
            work = np.clip((work - 127.5) * state.contrast_factor + 127.5, 0, 255)
        if state.saturation != 0:
            work = np.clip(self.saturate(work, state.saturation_factor), 0, 255)

        out = self._to_uint8(work)

        if state.noise_reduction > 0:
            out = self.denoise(out, state.noise_reduction * self.denoise_strength)
        if state.sharpness > 0:
            out = self.sharpen(out, state.sharpness / 25.0, self.sharpen_sigma)

        return self._merge_alpha(out, alpha)

    # ─── Point operations ──────────────────────────────────────────
    @staticmethod
    def grayscale(rgb: np.ndarray) -> np.ndarray:
        """Plain channel average, replicated into R, G and B."""
        avg = np.rint(rgb.astype(np.float32).mean(axis=2))
        avg = avg.astype(np.uint8)
        return np.repeat(avg[:, :, None], 3, axis=2)

    @staticmethod
    def invert(rgb: np.ndarray) -> np.ndarray:
        return 255 - rgb

    # ─── Continuous helpers ────────────────────────────────────────
    @staticmethod
    def saturate(rgb_f: np.ndarray, s: float) -> np.ndarray:
        """Luminance-preserving saturation matrix; s=1 is identity, s=0 is gray."""
        matrix = (1.0 - s) * np.tile(_LUMA, (3, 1)) + s * np.eye(3, dtype=np.float32)
        return rgb_f @ matrix.T.astype(np.float32)

    @staticmethod
    def denoise(rgb_u8: np.ndarray, h: float) -> np.ndarray:
        h = float(max(h, 0.0))
        if h == 0:
            return rgb_u8
        return cv2.fastNlMeansDenoisingColored(
            np.ascontiguousarray(rgb_u8), None, h, h, 7, 21
        )

    @staticmethod
    def sharpen(rgb_u8: np.ndarray, amount: float, sigma: float = 1.0) -> np.ndarray:
        """Unsharp mask: out = img + amount * (img - blur(img))."""
        work = rgb_u8.astype(np.float32)
        blurred = cv2.GaussianBlur(work, (0, 0), sigmaX=sigma, sigmaY=sigma)
        return FilterService._to_uint8(work + amount * (work - blurred))

    # ─── Pixel plumbing ────────────────────────────────────────────
    @staticmethod
    def _split_alpha(pixels: np.ndarray):
        if pixels.shape[2] == 4:
            return np.ascontiguousarray(pixels[:, :, :3]), pixels[:, :, 3:].copy()
        return np.ascontiguousarray(pixels), None

    @staticmethod
    def _merge_alpha(rgb: np.ndarray, alpha):
        if alpha is None:
            return np.ascontiguousarray(rgb, dtype=np.uint8)
        return np.concatenate([rgb.astype(np.uint8), alpha], axis=2)

    @staticmethod
    def _to_uint8(work: np.ndarray) -> np.ndarray:
        return np.clip(np.rint(work), 0, 255).astype(np.uint8)
