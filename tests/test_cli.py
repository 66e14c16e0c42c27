import numpy as np
from PIL import Image as PILImage

from image_studio.cli.process_image import build_parser, main, state_from_args
from image_studio.models.filter_state import PointOperation

from helpers import make_pixels


def write_png(path, pixels):
    PILImage.fromarray(pixels).save(path)
    return str(path)


def test_crop_and_invert(tmp_path):
    pixels = make_pixels(40, 30)
    src = write_png(tmp_path / "in.png", pixels)
    out = tmp_path / "out.png"

    assert main([src, "-o", str(out), "--crop", "5", "5", "20", "10", "--invert"]) == 0

    written = np.asarray(PILImage.open(out))
    assert written.shape == (10, 20, 3)
    assert np.array_equal(written, 255 - pixels[5:15, 5:25])


def test_crop_is_clamped_to_image(tmp_path):
    src = write_png(tmp_path / "in.png", make_pixels(40, 30))
    out = tmp_path / "out.png"

    assert main([src, "-o", str(out), "--crop", "30", "20", "100", "100"]) == 0
    assert PILImage.open(out).size == (10, 10)


def test_crop_outside_image_fails(tmp_path):
    src = write_png(tmp_path / "in.png", make_pixels(40, 30))
    out = tmp_path / "out.png"

    assert main([src, "-o", str(out), "--crop", "100", "100", "5", "5"]) == 1
    assert not out.exists()


def test_missing_input(tmp_path):
    assert main([str(tmp_path / "nope.png"), "-o", str(tmp_path / "out.png")]) == 1


def test_parameters_from_flags():
    args = build_parser().parse_args(["in.png", "-o", "out.png", "--noise-reduction", "12",
                                      "--brightness", "80", "--grayscale"])
    state = state_from_args(args)

    assert state.noise_reduction == 12.0
    assert state.brightness == 50.0
    assert state.point_operation is PointOperation.GRAYSCALE
