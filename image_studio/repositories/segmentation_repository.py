# repositories/segmentation_repository.py
import cv2
import numpy as np
from ..models.segmentation_engine import SegmentationEngine

class SegmentationRepository:
    """
    One‑image inference + mask cleanup.

    • Calls the MediaPipe engine (created on first use).
    • Post‑processes the soft mask into an 8‑bit alpha matte.
    """

    def __init__(self, engine=None) -> None:
        self._engine = engine

    @property
    def engine(self):
        if self._engine is None:
            self._engine = SegmentationEngine()
        return self._engine

    # ---------- private helpers ----------
    @staticmethod
    def _clean_mask(mask_u8: np.ndarray) -> np.ndarray:
        """
        1) Close small holes
        2) Erode 1 px fringe
        3) Feather edge → smooth alpha ramp (kept soft for the matte)
        """
        kernel = np.ones((5, 5), np.uint8)

        closed = cv2.morphologyEx(mask_u8, cv2.MORPH_CLOSE, kernel, iterations=2)
        eroded = cv2.erode(closed, np.ones((2, 2), np.uint8), iterations=1)

        return cv2.GaussianBlur(eroded, (0, 0), sigmaX=1.5, sigmaY=1.5)

    # ---------- public API ----------
    def retrieve_mask(self, rgb: np.ndarray, thr: float = 0.5) -> np.ndarray:
        """
        Returns uint8 mask (H, W) with 0‑255 values.
        thr : soft‑mask threshold in [0,1]
        """
        soft = np.asarray(self.engine.predict(rgb), dtype="float32")   # float32 0‑1
        if soft.shape != rgb.shape[:2]:
            soft = cv2.resize(soft, (rgb.shape[1], rgb.shape[0]), interpolation=cv2.INTER_LINEAR)
        raw = (soft > thr).astype("uint8") * 255
        return self._clean_mask(raw)
