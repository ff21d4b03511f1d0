"""
Player photo processing.

Uploaded photos are validated, flattened onto white, centre-cropped to a
square, resized to 512x512 and stored as JPEG.
"""

import logging
from io import BytesIO
from typing import Tuple

from PIL import Image

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024  # 5MB
MAX_IMAGE_PIXELS = 25_000_000  # 25MP
PHOTO_SIZE = 512
JPEG_QUALITY = 85
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}

Image.MAX_IMAGE_PIXELS = MAX_IMAGE_PIXELS


def validate_photo(file_bytes: bytes, content_type: str) -> Tuple[bool, str]:
    """
    Check size, content type and that Pillow can read the image.

    Returns:
        Tuple of (is_valid, error_message). error_message is empty when valid.
    """
    if not file_bytes:
        return False, "File is empty"
    if len(file_bytes) > MAX_FILE_SIZE_BYTES:
        return False, f"File size exceeds maximum of {MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB"
    if not content_type or content_type not in ALLOWED_CONTENT_TYPES:
        return False, f"Invalid file type '{content_type}'. Allowed: JPEG, PNG, WebP"

    try:
        img = Image.open(BytesIO(file_bytes))
        width, height = img.size
        if width * height > MAX_IMAGE_PIXELS:
            return False, f"Image dimensions too large ({width}x{height})"
        img.verify()
    except Image.DecompressionBombError:
        return False, "Image dimensions too large"
    except Exception as e:
        return False, f"Invalid or corrupted image file: {str(e)}"

    return True, ""


def process_player_photo(image_bytes: bytes) -> bytes:
    """Square 512x512 JPEG from any supported image."""
    img = Image.open(BytesIO(image_bytes))

    if img.mode in ("RGBA", "P", "LA"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    width, height = img.size
    if width != height:
        side = min(width, height)
        left = (width - side) // 2
        top = (height - side) // 2
        img = img.crop((left, top, left + side, top + side))

    if img.size != (PHOTO_SIZE, PHOTO_SIZE):
        img = img.resize((PHOTO_SIZE, PHOTO_SIZE), Image.Resampling.LANCZOS)

    output = BytesIO()
    img.save(output, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    return output.getvalue()
