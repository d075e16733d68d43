"""Tests for image inspection and conversion."""

from io import BytesIO

import pytest
from PIL import Image

from conftest import make_image_bytes
from sturdywcdl.utils.images import (
    PLACEHOLDER_SIZE,
    ArtifactDescriptor,
    MalformedImageError,
    inspect_image,
    normalize_format,
    placeholder_image,
    reencode_image,
)


class TestInspectImage:
    """Tests for inspect_image."""

    @pytest.mark.parametrize(
        "pil_format,expected",
        [("PNG", "png"), ("JPEG", "jpg"), ("GIF", "gif"), ("WEBP", "webp"), ("BMP", "bmp")],
    )
    def test_formats(self, pil_format, expected):
        data = make_image_bytes(pil_format, size=(64, 48))

        artifact = inspect_image(data)

        assert artifact.width == 64
        assert artifact.height == 48
        assert artifact.format == expected
        assert artifact.data is data

    def test_garbage_is_malformed(self):
        with pytest.raises(MalformedImageError):
            inspect_image(b"<html>not an image</html>")

    def test_empty_is_malformed(self):
        with pytest.raises(MalformedImageError):
            inspect_image(b"")

    def test_truncated_is_malformed(self):
        data = make_image_bytes("PNG", size=(300, 300))
        with pytest.raises(MalformedImageError):
            inspect_image(data[: len(data) // 2])


class TestNormalizeFormat:
    def test_jpeg_becomes_jpg(self):
        assert normalize_format("JPEG") == "jpg"

    def test_lowercases(self):
        assert normalize_format("PNG") == "png"

    def test_none(self):
        assert normalize_format(None) is None


class TestArtifactDescriptor:
    def test_extension(self):
        assert ArtifactDescriptor(b"x", 1, 1, "gif").extension == "gif"

    def test_extension_without_format(self):
        assert ArtifactDescriptor(b"x", 1, 1).extension == "bin"


class TestReencodeImage:
    """Tests for reencode_image."""

    def test_gif_to_png(self):
        data = make_image_bytes("GIF", size=(20, 10))

        converted = reencode_image(data, "png")

        assert converted != data
        with Image.open(BytesIO(converted)) as img:
            assert img.format == "PNG"
            assert img.size == (20, 10)

    def test_webp_to_jpg(self):
        converted = reencode_image(make_image_bytes("WEBP"), "jpg")
        with Image.open(BytesIO(converted)) as img:
            assert img.format == "JPEG"

    def test_rgba_to_jpg_drops_alpha(self):
        img = Image.new("RGBA", (8, 8), (10, 20, 30, 128))
        buffer = BytesIO()
        img.save(buffer, format="PNG")

        converted = reencode_image(buffer.getvalue(), "jpg")

        with Image.open(BytesIO(converted)) as result:
            assert result.mode == "RGB"

    def test_garbage_raises(self):
        with pytest.raises(MalformedImageError):
            reencode_image(b"nope", "png")


class TestPlaceholderImage:
    def test_is_small_png(self):
        placeholder = placeholder_image()

        assert (placeholder.width, placeholder.height) == PLACEHOLDER_SIZE
        assert placeholder.format == "png"
        assert inspect_image(placeholder.data).format == "png"

    def test_rendered_once(self):
        assert placeholder_image() is placeholder_image()
