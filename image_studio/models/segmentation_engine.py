# models/segmentation_engine.py
"""
Process-wide person segmentation model (MediaPipe Selfie Segmentation).

The graph is built lazily by the first caller and shared afterwards; calls
into it are serialised.
"""
from __future__ import annotations
import os
import threading

import numpy as np
from dotenv import load_dotenv

load_dotenv()


class SegmentationEngine:
    _shared: "SegmentationEngine" | None = None
    _create_lock = threading.Lock()

    def __new__(cls):
        with cls._create_lock:
            if cls._shared is None:
                engine = super().__new__(cls)
                engine._build_graph()
                cls._shared = engine
        return cls._shared

    def _build_graph(self) -> None:
        # Heavy import; only paid when background removal is first requested.
        import mediapipe as mp

        # 0 = general model (256x256), 1 = landscape model (144x256)
        variant = int(os.getenv("SEGMENTATION_MODEL_SELECTION", "1"))
        self._graph = mp.solutions.selfie_segmentation.SelfieSegmentation(model_selection=variant)
        self._graph_lock = threading.Lock()

    def predict(self, rgb: np.ndarray) -> np.ndarray:
        """Person probability per pixel, float32 (H, W) in [0, 1], for a uint8 RGB frame."""
        with self._graph_lock:
            output = self._graph.process(np.ascontiguousarray(rgb))

        mask = output.segmentation_mask
        if mask is None:
            return np.zeros(rgb.shape[:2], dtype=np.float32)
        return np.clip(mask.astype(np.float32), 0.0, 1.0)
