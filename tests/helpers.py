"""Shared test doubles and synthetic images."""
from io import BytesIO

import numpy as np
from PIL import Image as PILImage


def make_pixels(width, height, channels=3):
    """Deterministic gradient with distinct values per row/column."""
    ys, xs = np.mgrid[0:height, 0:width]
    r = xs * 255 // max(width - 1, 1)
    g = ys * 255 // max(height - 1, 1)
    b = (xs * 7 + ys * 13) % 256
    planes = [r, g, b]
    if channels == 4:
        planes.append(np.full_like(r, 200))
    return np.dstack(planes).astype(np.uint8)


def encode(pixels, fmt="PNG"):
    buffer = BytesIO()
    PILImage.fromarray(pixels).save(buffer, format=fmt)
    return buffer.getvalue()


class HalfMaskEngine:
    """Stands in for the segmentation model: left half is the person."""

    def __init__(self):
        self.calls = 0

    def predict(self, rgb):
        self.calls += 1
        mask = np.zeros(rgb.shape[:2], dtype=np.float32)
        mask[:, : rgb.shape[1] // 2] = 1.0
        return mask


class FailingEngine:
    def predict(self, rgb):
        raise RuntimeError("model crashed")
