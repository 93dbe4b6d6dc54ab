import numpy as np
import pytest
from PIL import Image

from scrollstitch.core.exporter import ExportSettings, ImageFormat, Resolution, save_image


@pytest.fixture
def image():
    img = np.zeros((200, 100, 3), dtype=np.uint8)
    img[:, :, 2] = 255  # red in BGR
    return img


def test_png_is_lossless(tmp_path, image):
    path = save_image(image, tmp_path / "out.png")
    with Image.open(path) as saved:
        assert saved.format == "PNG"
        assert saved.size == (100, 200)
        assert saved.getpixel((0, 0)) == (255, 0, 0)


def test_jpeg_at_medium_resolution(tmp_path, image):
    settings = ExportSettings(format=ImageFormat.JPEG, resolution=Resolution.MEDIUM, jpeg_quality=80)
    path = save_image(image, tmp_path / "nested" / "out.jpg", settings)
    with Image.open(path) as saved:
        assert saved.format == "JPEG"
        assert saved.size == (75, 150)


def test_small_resolution_halves(tmp_path, image):
    path = save_image(image, tmp_path / "out.png", ExportSettings(resolution=Resolution.SMALL))
    with Image.open(path) as saved:
        assert saved.size == (50, 100)


def test_bgra_to_jpeg_drops_alpha(tmp_path):
    bgra = np.full((20, 20, 4), 128, dtype=np.uint8)
    path = save_image(bgra, tmp_path / "out.jpg", ExportSettings(format=ImageFormat.JPEG))
    with Image.open(path) as saved:
        assert saved.mode == "RGB"


def test_settings_from_names():
    settings = ExportSettings.from_names("jpg", "Small")
    assert settings.format is ImageFormat.JPEG
    assert settings.resolution is Resolution.SMALL
    assert settings.extension == ".jpg"


def test_unsupported_format():
    with pytest.raises(ValueError):
        ExportSettings.from_names("heic")
    with pytest.raises(ValueError):
        ExportSettings.from_names("png", "huge")
