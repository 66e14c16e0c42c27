import pytest

from image_studio.models.image import Image
from image_studio.pipeline.editing_session import EditingSession
from image_studio.repositories.segmentation_repository import SegmentationRepository
from image_studio.services.background_service import BackgroundService
from image_studio.services.segmentation_service import SegmentationService

from helpers import HalfMaskEngine, encode, make_pixels


@pytest.fixture
def make_image():
    def _make(width=80, height=60, channels=3):
        pixels = make_pixels(width, height, channels)
        pixels.setflags(write=False)
        return Image(pixels=pixels)
    return _make


@pytest.fixture
def png_bytes():
    return encode(make_pixels(80, 60))


@pytest.fixture
def half_mask_engine():
    return HalfMaskEngine()


@pytest.fixture
def background_service(half_mask_engine):
    return BackgroundService(SegmentationService(SegmentationRepository(engine=half_mask_engine)))


@pytest.fixture
def session(png_bytes):
    s = EditingSession("test-session")
    s.load_upload(png_bytes, "photo.png")
    return s
