"""Image inspection and re-encoding backed by Pillow."""

from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..logger import get_logger

logger = get_logger(__name__)

PLACEHOLDER_SIZE = (200, 200)
PLACEHOLDER_TEXT = "image missing"

# Everything Pillow raises for bytes it cannot read
DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)

# Pillow format names that differ from the usual file extension
_EXTENSIONS = {
    "jpeg": "jpg",
    "tiff": "tif",
}


class MalformedImageError(ValueError):
    """Raised when bytes cannot be identified as an image."""


@dataclass(frozen=True)
class ArtifactDescriptor:
    """Image bytes together with their inspected dimensions and format."""

    data: bytes
    width: int
    height: int
    format: str | None = None

    @property
    def extension(self) -> str:
        """File extension used when persisting the image."""
        return self.format or "bin"


def normalize_format(pil_format: str | None) -> str | None:
    """Turn a Pillow format name ("JPEG") into a file extension ("jpg")."""
    if not pil_format:
        return None
    lower = pil_format.lower()
    return _EXTENSIONS.get(lower, lower)


def inspect_image(data: bytes) -> ArtifactDescriptor:
    """
    Read dimensions and format of an image.

    The pixels are decoded too, so truncated files are rejected here rather
    than when the image is placed.

    Args:
        data: Raw image bytes

    Returns:
        ArtifactDescriptor for the bytes

    Raises:
        MalformedImageError: If the bytes are not a recognisable image
    """
    if not data:
        raise MalformedImageError("Empty image data")

    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            width, height = img.size
            fmt = normalize_format(img.format)
    except DECODE_ERRORS as e:
        raise MalformedImageError(f"Cannot identify image: {e}") from e

    if width <= 0 or height <= 0:
        raise MalformedImageError(f"Invalid image size {width}x{height}")

    return ArtifactDescriptor(data=data, width=width, height=height, format=fmt)


def reencode_image(data: bytes, target_format: str = "png") -> bytes:
    """
    Decode an image and encode it again in ``target_format``.

    Args:
        data: Raw image bytes in any format Pillow can read
        target_format: Output extension ("png" or "jpg")

    Returns:
        Re-encoded image bytes

    Raises:
        MalformedImageError: If the bytes cannot be decoded
    """
    save_format = "JPEG" if target_format in ("jpg", "jpeg") else target_format.upper()

    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            if save_format == "JPEG" and img.mode != "RGB":
                img = img.convert("RGB")
            elif img.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
                img = img.convert("RGBA")
            output = BytesIO()
            img.save(output, format=save_format)
    except DECODE_ERRORS as e:
        raise MalformedImageError(f"Cannot decode image: {e}") from e

    logger.debug(f"Re-encoded image to {target_format} ({len(output.getvalue())} bytes)")
    return output.getvalue()


@lru_cache(maxsize=1)
def placeholder_image() -> ArtifactDescriptor:
    """
    The image written to disk for pages whose image is missing.

    Rendered once per process: a light grey square with centred text.
    """
    width, height = PLACEHOLDER_SIZE
    img = Image.new("RGB", PLACEHOLDER_SIZE, (230, 230, 230))
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default()

    bbox = draw.textbbox((0, 0), PLACEHOLDER_TEXT, font=font)
    x = (width - (bbox[2] - bbox[0])) // 2
    y = (height - (bbox[3] - bbox[1])) // 2
    draw.text((x, y), PLACEHOLDER_TEXT, fill=(90, 90, 90), font=font)

    output = BytesIO()
    img.save(output, format="PNG")
    return ArtifactDescriptor(data=output.getvalue(), width=width, height=height, format="png")
