# services/segmentation_service.py
from collections import OrderedDict
import numpy as np
from ..models.image import Image
from ..repositories.segmentation_repository import SegmentationRepository

class SegmentationService:
    """
    Caches masks at the business‑logic layer, keyed by the image object.
    """

    _CACHE_SIZE = 8

    def __init__(self, repo: SegmentationRepository = None) -> None:
        self.repo = repo or SegmentationRepository()
        self._mask_cache: "OrderedDict[int, tuple[Image, np.ndarray]]" = OrderedDict()

    def mask_person(self, img: Image, thr: float = 0.5) -> np.ndarray:
        key = id(img)
        cached = self._mask_cache.get(key)
        # the Image is kept alongside its mask so its id cannot be recycled
        if cached is None or cached[0] is not img:
            rgb = np.ascontiguousarray(img.pixels[:, :, :3])
            self._mask_cache[key] = (img, self.repo.retrieve_mask(rgb, thr))
            while len(self._mask_cache) > self._CACHE_SIZE:
                self._mask_cache.popitem(last=False)
        return self._mask_cache[key][1]
