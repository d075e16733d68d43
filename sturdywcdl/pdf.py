"""PDF output document that webcomic pages are appended to."""

from io import BytesIO
from pathlib import Path

from PIL import Image
from pypdf import PdfWriter
from pypdf.generic import (
    DecodedStreamObject,
    DictionaryObject,
    NameObject,
    NumberObject,
    StreamObject,
)

from .logger import get_logger
from .utils.images import DECODE_ERRORS, MalformedImageError

logger = get_logger(__name__)

FONT_NAME = "/F1"
FONT_SIZE = 12

# JPEG colour modes that can be embedded as-is
_JPEG_COLOR_SPACES = {
    "L": "/DeviceGray",
    "RGB": "/DeviceRGB",
}


def _escape_text(text: str) -> bytes:
    escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    return escaped.encode("latin-1", errors="replace")


def _image_dictionary(width: int, height: int, color_space: str) -> dict:
    return {
        NameObject("/Type"): NameObject("/XObject"),
        NameObject("/Subtype"): NameObject("/Image"),
        NameObject("/Width"): NumberObject(width),
        NameObject("/Height"): NumberObject(height),
        NameObject("/ColorSpace"): NameObject(color_space),
        NameObject("/BitsPerComponent"): NumberObject(8),
    }


def _jpeg_stream(data: bytes, img: Image.Image) -> StreamObject:
    """Image XObject holding the JPEG bytes unchanged."""
    stream = StreamObject()
    stream.set_data(data)
    stream.update(_image_dictionary(img.width, img.height, _JPEG_COLOR_SPACES[img.mode]))
    stream[NameObject("/Filter")] = NameObject("/DCTDecode")
    return stream


def _pixel_stream(pixels: Image.Image) -> StreamObject:
    """Losslessly compressed image XObject for an L or RGB image."""
    stream = DecodedStreamObject()
    stream.set_data(pixels.tobytes())
    color_space = "/DeviceGray" if pixels.mode == "L" else "/DeviceRGB"
    stream.update(_image_dictionary(pixels.width, pixels.height, color_space))
    return stream.flate_encode()


class PdfSink:
    """
    Append-only PDF document.

    Pages are built directly with pypdf, one point per image pixel. JPEG
    images are embedded as-is; every other image is stored as losslessly
    compressed pixels, with a soft mask when it has transparency. ``finalize``
    writes the file; a document without any page is still a valid (empty)
    PDF.

    Usage:
        with PdfSink("comic.pdf") as pdf:
            download_webcomic(pdf, ...)
    """

    # Formats that can be handed to place_image without conversion
    NATIVE_FORMATS = frozenset({"png", "jpg"})
    NATIVE_TARGET_FORMAT = "png"

    def __init__(self, output_path: Path | str):
        """
        Initialize the sink.

        Args:
            output_path: File written by finalize(). Its directory must exist.
        """
        self.output_path = Path(output_path)
        self._writer = PdfWriter()
        self._page = None
        self._page_height = 0
        self._operations: list[bytes] = []
        self._xobjects = DictionaryObject()
        self._fonts = DictionaryObject()
        self._page_count = 0
        self._finalized = False

    @property
    def page_count(self) -> int:
        """Number of pages started so far."""
        return self._page_count

    @property
    def finalized(self) -> bool:
        return self._finalized

    def new_page(self, width: int, height: int):
        """Start a new blank page of ``width`` x ``height`` points."""
        self._check_open()
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid page size {width}x{height}")

        self._flush_page()
        self._page = self._writer.add_blank_page(width=width, height=height)
        self._page_height = height
        self._page_count += 1

    def place_image(self, data: bytes, x: int = 0, y: int = 0):
        """
        Draw an encoded image at its pixel size, top-left corner at (x, y).

        Raises:
            MalformedImageError: If the bytes cannot be decoded
        """
        self._current_page()
        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                width, height = img.size
                xobject = self._image_xobject(data, img)
        except DECODE_ERRORS as e:
            raise MalformedImageError(f"Cannot place image: {e}") from e

        name = f"/Im{len(self._xobjects) + 1}"
        self._xobjects[NameObject(name)] = self._writer._add_object(xobject)

        bottom = self._page_height - y - height
        self._operations.append(
            f"q {width} 0 0 {height} {x} {bottom} cm {name} Do Q".encode("ascii")
        )

    def place_text(
        self,
        text: str,
        x: int = 10,
        y: int = 10,
        fill: tuple[int, int, int] = (0, 0, 0),
    ):
        """Write a line of text with its top-left corner at (x, y)."""
        self._current_page()
        if FONT_NAME not in self._fonts:
            self._fonts[NameObject(FONT_NAME)] = DictionaryObject(
                {
                    NameObject("/Type"): NameObject("/Font"),
                    NameObject("/Subtype"): NameObject("/Type1"),
                    NameObject("/BaseFont"): NameObject("/Helvetica"),
                }
            )

        red, green, blue = (channel / 255 for channel in fill)
        baseline = self._page_height - y - FONT_SIZE
        self._operations.append(
            f"BT {FONT_NAME} {FONT_SIZE} Tf {red:.3f} {green:.3f} {blue:.3f} rg "
            f"{x} {baseline} Td (".encode("ascii")
            + _escape_text(text)
            + b") Tj ET"
        )

    def finalize(self):
        """Write the document to ``output_path``. Safe to call twice."""
        if self._finalized:
            return

        self._flush_page()
        with open(self.output_path, "wb") as f:
            self._writer.write(f)
        self._finalized = True

        logger.debug(f"Wrote {self._page_count} pages to {self.output_path}")

    def _image_xobject(self, data: bytes, img: Image.Image) -> StreamObject:
        if img.format == "JPEG" and img.mode in _JPEG_COLOR_SPACES:
            return _jpeg_stream(data, img)

        if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info:
            rgba = img.convert("RGBA")
            stream = _pixel_stream(rgba.convert("RGB"))
            stream[NameObject("/SMask")] = self._writer._add_object(
                _pixel_stream(rgba.getchannel("A"))
            )
            return stream

        return _pixel_stream(img.convert("L" if img.mode in ("1", "L") else "RGB"))

    def _check_open(self):
        if self._finalized:
            raise RuntimeError(f"PDF already finalized: {self.output_path}")

    def _current_page(self):
        self._check_open()
        if self._page is None:
            raise RuntimeError("No page started, call new_page() first")
        return self._page

    def _flush_page(self):
        if self._page is None:
            return

        resources = self._page[NameObject("/Resources")].get_object()
        if self._xobjects:
            resources[NameObject("/XObject")] = self._xobjects
        if self._fonts:
            resources[NameObject("/Font")] = self._fonts

        content = DecodedStreamObject()
        content.set_data(b"\n".join(self._operations))
        self._page[NameObject("/Contents")] = self._writer._add_object(content.flate_encode())

        self._page = None
        self._operations = []
        self._xobjects = DictionaryObject()
        self._fonts = DictionaryObject()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.finalize()
