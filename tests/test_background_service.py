import numpy as np
import pytest

from image_studio.models.errors import ProcessingError
from image_studio.models.image import Image
from image_studio.repositories.segmentation_repository import SegmentationRepository
from image_studio.services.background_service import BackgroundService
from image_studio.services.segmentation_service import SegmentationService

from helpers import FailingEngine, make_pixels


def test_alpha_is_person_matte(background_service):
    source = Image(make_pixels(64, 64))
    result = background_service.remove_background(source)

    assert result.pixels.shape == (64, 64, 4)
    assert np.array_equal(result.pixels[:, :, :3], source.pixels)
    assert np.all(result.pixels[:, :10, 3] == 255)
    assert np.all(result.pixels[:, -10:, 3] == 0)


def test_existing_alpha_is_intersected(background_service):
    source = Image(make_pixels(64, 64, channels=4))  # alpha 200 everywhere
    result = background_service.remove_background(source)

    assert np.all(result.pixels[:, :10, 3] == 200)
    assert np.all(result.pixels[:, -10:, 3] == 0)


def test_mask_is_cached_per_image(background_service, half_mask_engine):
    source = Image(make_pixels(32, 32))
    background_service.remove_background(source)
    background_service.remove_background(source)
    assert half_mask_engine.calls == 1


def test_engine_failure_becomes_processing_error():
    service = BackgroundService(SegmentationService(SegmentationRepository(engine=FailingEngine())))
    with pytest.raises(ProcessingError):
        service.remove_background(Image(make_pixels(16, 16)))


def test_low_resolution_mask_is_resized():
    class SmallMaskEngine:
        def predict(self, rgb):
            mask = np.zeros((8, 8), dtype=np.float32)
            mask[:, :4] = 1.0
            return mask

    repo = SegmentationRepository(engine=SmallMaskEngine())
    mask = repo.retrieve_mask(make_pixels(64, 48))
    assert mask.shape == (48, 64)
    assert mask.dtype == np.uint8
