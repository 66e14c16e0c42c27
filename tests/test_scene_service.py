import numpy as np
import pytest

from image_studio.models.errors import InvalidImageError
from image_studio.models.image import Image
from image_studio.models.scene import Viewport
from image_studio.services.scene_service import SceneService


VIEWPORT = Viewport(700, 500, 40)


def test_fit_800x600_into_700x500():
    scene = SceneService(VIEWPORT)
    transform = scene.load_image(Image(np.zeros((600, 800, 3), np.uint8)))

    assert transform.scale_factor == pytest.approx(min(460 / 600, 660 / 800))
    assert transform.scale_factor == pytest.approx(0.76666, abs=1e-4)
    assert transform.scene_height == pytest.approx(460)
    assert transform.offset_x == pytest.approx((700 - 800 * transform.scale_factor) / 2)
    assert transform.offset_y == pytest.approx(20)


def test_default_selection_is_centered_half_of_fitted_image():
    scene = SceneService(VIEWPORT)
    t = scene.load_image(Image(np.zeros((600, 800, 3), np.uint8)))
    box = scene.selection.box()

    assert box.x == pytest.approx(t.offset_x + t.scene_width * 0.25)
    assert box.y == pytest.approx(t.offset_y + t.scene_height * 0.25)
    assert box.w == pytest.approx(t.scene_width * 0.5)
    assert box.h == pytest.approx(t.scene_height * 0.5)
    assert scene.selection.scale_x == scene.selection.scale_y == 1.0


@pytest.mark.parametrize("width,height", [(800, 600), (600, 800), (1, 1), (5000, 20), (20, 5000), (660, 460)])
def test_fit_touches_viewport_on_one_axis(width, height):
    t = SceneService.compute_fit(width, height, VIEWPORT)
    avail_w, avail_h = 660, 460

    assert t.scale_factor > 0
    assert t.scene_width <= avail_w + 1e-9
    assert t.scene_height <= avail_h + 1e-9
    assert (t.scene_width == pytest.approx(avail_w)) or (t.scene_height == pytest.approx(avail_h))
    # centered
    assert t.offset_x * 2 + t.scene_width == pytest.approx(VIEWPORT.width)
    assert t.offset_y * 2 + t.scene_height == pytest.approx(VIEWPORT.height)


@pytest.mark.parametrize("shape", [(0, 10, 3), (10, 0, 3)])
def test_zero_dimension_is_rejected(shape):
    scene = SceneService(VIEWPORT)
    with pytest.raises(InvalidImageError):
        scene.load_image(Image(np.zeros(shape, np.uint8)))
    assert scene.transform is None


def test_reload_recomputes_transform(make_image):
    scene = SceneService(VIEWPORT)
    first = scene.load_image(make_image(800, 600))
    second = scene.load_image(make_image(400, 300))

    assert second == SceneService.compute_fit(400, 300, VIEWPORT)
    assert second.scale_factor != first.scale_factor


def test_update_selection_clamps_negative_sizes(make_image):
    scene = SceneService(VIEWPORT)
    scene.load_image(make_image())
    sel = scene.update_selection(-30, 10, -5, 40, scale_x=-2, scale_y=1.5)

    assert sel.left == -30  # position is not validated here
    assert sel.width == 0
    assert sel.scale_x == 0
    assert sel.box().h == pytest.approx(60)


def test_update_selection_requires_loaded_image():
    with pytest.raises(InvalidImageError):
        SceneService(VIEWPORT).update_selection(0, 0, 10, 10)


def test_viewport_from_environment(monkeypatch):
    monkeypatch.setenv("VIEWPORT_WIDTH", "300")
    monkeypatch.setenv("VIEWPORT_HEIGHT", "200")
    monkeypatch.setenv("VIEWPORT_MARGIN", "0")
    scene = SceneService()
    t = scene.load_image(Image(np.zeros((100, 300, 3), np.uint8)))
    assert t.scale_factor == pytest.approx(1.0)
    assert t.offset_y == pytest.approx(50)
