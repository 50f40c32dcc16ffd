"""
Image preprocessing

Normalizes a photograph for recognition: grayscale, upscale to a fixed
width and sharpen. Low-resolution phone photos of banknotes read far better
once the serial digits are a few dozen pixels tall.
"""

import io

from PIL import Image, ImageFilter, ImageOps

from serial_registry.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TARGET_WIDTH = 2000


def preprocess(buffer: bytes, target_width: int = DEFAULT_TARGET_WIDTH) -> bytes:
    """
    Preprocess an image buffer for OCR.

    Steps: grayscale -> resize to ``target_width`` (aspect preserved, always
    resized, so small images are enlarged) -> sharpen -> PNG.

    Never raises: on any failure the original buffer is returned unchanged.
    """
    try:
        with Image.open(io.BytesIO(buffer)) as image:
            gray = ImageOps.grayscale(ImageOps.exif_transpose(image))
            width, height = gray.size
            if width <= 0 or height <= 0:
                raise ValueError(f"empty image ({width}x{height})")

            target_height = max(1, round(height * target_width / width))
            resized = gray.resize((target_width, target_height), Image.Resampling.LANCZOS)
            sharpened = resized.filter(ImageFilter.SHARPEN)

            output = io.BytesIO()
            sharpened.save(output, format="PNG")
            return output.getvalue()
    except Exception as exc:
        logger.warning(
            "Image preprocessing failed, using original buffer",
            error=str(exc),
            size=len(buffer) if buffer else 0,
        )
        return buffer
