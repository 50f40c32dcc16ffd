import io

from PIL import Image

from serial_registry.services.preprocessing import preprocess
from tests.conftest import png_bytes


def test_preprocess_grayscale_and_enlarges_to_target_width():
    output = preprocess(png_bytes(100, 50, "red"))

    with Image.open(io.BytesIO(output)) as image:
        assert image.format == "PNG"
        assert image.mode == "L"
        assert image.size == (2000, 1000)


def test_preprocess_shrinks_large_images():
    output = preprocess(png_bytes(400, 300), target_width=200)

    with Image.open(io.BytesIO(output)) as image:
        assert image.size == (200, 150)


def test_preprocess_returns_original_buffer_on_failure():
    garbage = b"definitely not an image"
    assert preprocess(garbage) is garbage
    assert preprocess(b"") == b""
