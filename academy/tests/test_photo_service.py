"""
Tests for photo_service: validation and square JPEG processing.
"""

from io import BytesIO

from PIL import Image

from academy.services import photo_service


def _make_image(width=100, height=100, fmt="JPEG", mode="RGB"):
    """Create a minimal test image and return its bytes."""
    color = (255, 0, 0, 128) if mode == "RGBA" else (255, 0, 0)
    img = Image.new(mode, (width, height), color=color)
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class TestValidatePhoto:
    def test_valid_jpeg(self):
        is_valid, err = photo_service.validate_photo(_make_image(), "image/jpeg")
        assert is_valid is True
        assert err == ""

    def test_valid_png(self):
        is_valid, _ = photo_service.validate_photo(_make_image(fmt="PNG"), "image/png")
        assert is_valid is True

    def test_empty_file(self):
        assert photo_service.validate_photo(b"", "image/jpeg") == (False, "File is empty")

    def test_file_too_large(self):
        data = b"\x00" * (photo_service.MAX_FILE_SIZE_BYTES + 1)
        is_valid, err = photo_service.validate_photo(data, "image/jpeg")
        assert is_valid is False
        assert "exceeds maximum" in err

    def test_wrong_content_type(self):
        is_valid, err = photo_service.validate_photo(_make_image(), "application/pdf")
        assert is_valid is False
        assert "Invalid file type" in err

    def test_corrupted_image(self):
        is_valid, err = photo_service.validate_photo(b"not an image at all", "image/jpeg")
        assert is_valid is False
        assert "corrupted" in err


class TestProcessPlayerPhoto:
    def test_landscape_is_cropped_to_square(self):
        output = photo_service.process_player_photo(_make_image(800, 400))
        img = Image.open(BytesIO(output))
        assert img.format == "JPEG"
        assert img.size == (photo_service.PHOTO_SIZE, photo_service.PHOTO_SIZE)

    def test_transparency_is_flattened(self):
        output = photo_service.process_player_photo(_make_image(64, 64, fmt="PNG", mode="RGBA"))
        img = Image.open(BytesIO(output))
        assert img.mode == "RGB"
        assert img.size == (512, 512)

    def test_grayscale_is_converted(self):
        output = photo_service.process_player_photo(_make_image(600, 600, mode="L"))
        assert Image.open(BytesIO(output)).mode == "RGB"
