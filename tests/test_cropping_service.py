import numpy as np
import pytest

from image_studio.models.errors import EmptyCropError
from image_studio.models.scene import CropSelection, PixelRect, SceneTransform, Viewport
from image_studio.services.cropping_service import CroppingService
from image_studio.services.scene_service import SceneService


VIEWPORT = Viewport(700, 500, 40)


@pytest.fixture
def cropper():
    return CroppingService()


@pytest.fixture
def source(make_image):
    return make_image(800, 600)


@pytest.fixture
def fitted(source):
    return SceneService.compute_fit(source.width, source.height, VIEWPORT)


def test_full_image_selection_returns_identical_buffer(cropper, source, fitted):
    selection = CropSelection(
        left=fitted.offset_x,
        top=fitted.offset_y,
        width=source.width * fitted.scale_factor,
        height=source.height * fitted.scale_factor,
    )
    cropped = cropper.extract(source, fitted, selection)

    assert cropped.pixels.shape == source.pixels.shape
    assert np.array_equal(cropped.pixels, source.pixels)


def test_crop_400x300_at_origin(cropper, source, fitted):
    s = fitted.scale_factor
    selection = CropSelection(fitted.offset_x, fitted.offset_y, 400 * s, 300 * s)
    cropped = cropper.extract(source, fitted, selection)

    assert (cropped.width, cropped.height) == (400, 300)
    assert np.array_equal(cropped.pixels, source.pixels[:300, :400])
    assert cropped.is_frozen


def test_inside_selection_maps_to_box_over_scale(cropper, source, fitted):
    s = fitted.scale_factor
    selection = CropSelection(fitted.offset_x + 123.4, fitted.offset_y + 57.9, 201.3, 111.7)
    rect = cropper.map_selection(source, fitted, selection)

    assert 201.3 / s <= rect.width < 201.3 / s + 2
    assert 111.7 / s <= rect.height < 111.7 / s + 2
    assert rect.x == int(np.floor(123.4 / s))
    assert rect.y == int(np.floor(57.9 / s))


def test_non_uniform_scale_is_honored_per_axis(cropper, source):
    identity = SceneTransform(1.0, 0.0, 0.0, source.width, source.height)
    selection = CropSelection(left=10, top=20, width=100, height=100, scale_x=2.0, scale_y=0.5)
    rect = cropper.map_selection(source, identity, selection)

    assert rect == PixelRect(10, 20, 200, 50)


def test_selection_overhanging_edges_is_clamped(cropper, source):
    identity = SceneTransform(1.0, 0.0, 0.0, source.width, source.height)
    selection = CropSelection(left=700, top=-50, width=300, height=150)
    rect = cropper.map_selection(source, identity, selection)

    assert rect == PixelRect(700, 0, 100, 150)


def test_left_overhang_keeps_extent_from_clamped_origin(cropper, source):
    identity = SceneTransform(1.0, 0.0, 0.0, source.width, source.height)
    rect = cropper.map_selection(source, identity, CropSelection(-100, 0, 300, 100))

    assert rect == PixelRect(0, 0, 300, 100)


def test_fractional_bounds_floor_origin_ceil_extent(cropper, source):
    identity = SceneTransform(1.0, 0.0, 0.0, source.width, source.height)
    rect = cropper.map_selection(source, identity, CropSelection(10.6, 5.2, 20.3, 9.1))

    assert rect == PixelRect(10, 5, 21, 10)


def test_fractional_origin_keeps_last_covered_column(cropper, source):
    identity = SceneTransform(1.0, 0.0, 0.0, source.width, source.height)
    # covers [10.6, 31.1) x [5.5, 16.0)
    rect = cropper.map_selection(source, identity, CropSelection(10.6, 5.5, 20.5, 10.5))

    assert rect == PixelRect(10, 5, 22, 11)
    assert rect.x + rect.width == 32


def test_far_edge_is_capped_at_image_size(cropper, source):
    identity = SceneTransform(1.0, 0.0, 0.0, source.width, source.height)
    rect = cropper.map_selection(source, identity, CropSelection(790.5, 590.5, 9.7, 9.7))

    assert rect == PixelRect(790, 590, 10, 10)


@pytest.mark.parametrize("left,top", [
    (2000, 100),    # right of the image
    (100, 2000),    # below the image
    (-500, 100),    # left of the image
    (100, -500),    # above the image
])
def test_selection_outside_image_raises(cropper, source, left, top):
    identity = SceneTransform(1.0, 0.0, 0.0, source.width, source.height)
    with pytest.raises(EmptyCropError):
        cropper.extract(source, identity, CropSelection(left, top, 100, 100))


def test_zero_area_selection_raises(cropper, source, fitted):
    selection = CropSelection(fitted.offset_x + 10, fitted.offset_y + 10, 50, 50, scale_x=0.0)
    with pytest.raises(EmptyCropError):
        cropper.extract(source, fitted, selection)


def test_extract_does_not_touch_source(cropper, source, fitted):
    before = source.pixels.copy()
    cropper.extract(source, fitted, CropSelection(fitted.offset_x, fitted.offset_y, 50, 50))
    assert np.array_equal(source.pixels, before)


def test_rgba_crop_keeps_alpha(cropper, make_image):
    rgba = make_image(40, 30, channels=4)
    identity = SceneTransform(1.0, 0.0, 0.0, 40, 30)
    cropped = cropper.extract(rgba, identity, CropSelection(5, 5, 10, 10))

    assert cropped.pixels.shape == (10, 10, 4)
    assert np.array_equal(cropped.pixels, rgba.pixels[5:15, 5:15])
