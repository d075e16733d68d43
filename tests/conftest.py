"""Shared fixtures: in-memory images, a recording sink and a fake comic site."""

import logging
from io import BytesIO

import httpx
import pytest
from PIL import Image

from sturdywcdl.utils.http import HTTPClient


def make_image_bytes(fmt: str = "PNG", size: tuple[int, int] = (40, 30), color=(200, 40, 40)) -> bytes:
    """Encode a solid-colour image in ``fmt``."""
    img = Image.new("RGB", size, color)
    if fmt == "GIF":
        img = img.convert("P")
    output = BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


class RecordingSink:
    """Output document that only records what was placed on each page."""

    NATIVE_FORMATS = frozenset({"png", "jpg"})
    NATIVE_TARGET_FORMAT = "png"

    def __init__(self):
        self.pages: list[dict] = []
        self.finalized = False

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def new_page(self, width, height):
        self.pages.append({"size": (width, height), "images": [], "texts": []})

    def place_image(self, data, x=0, y=0):
        self.pages[-1]["images"].append((data, x, y))

    def place_text(self, text, **kwargs):
        self.pages[-1]["texts"].append(text)

    def finalize(self):
        self.finalized = True


def comic_page(image_src: str | None = None, next_href: str | None = None) -> str:
    """Minimal webcomic page with optional image and next link."""
    parts = ["<html><body>"]
    if image_src is not None:
        parts.append(f'<div id="comic"><img src="{image_src}" alt="comic"></div>')
    if next_href is not None:
        parts.append(f'<a class="next" href="{next_href}">Next</a>')
    parts.append("</body></html>")
    return "".join(parts)


class ComicSite:
    """
    Fake webcomic served through httpx.MockTransport.

    Pages are ``/comic/<n>`` starting at 1; each shows ``/images/<n>.png`` and
    links to the next page until ``last_page``. Set ``page_status`` /
    ``image_status`` to force error responses, or ``required_headers`` to
    reject requests missing them with 403.
    """

    def __init__(self, host: str = "https://comics.test", last_page: int | None = None):
        self.host = host
        self.last_page = last_page
        self.image_bytes = make_image_bytes()
        self.with_images = True
        self.page_status: int | None = None
        self.image_status: int | None = None
        self.required_headers: dict[str, str] = {}
        self.requests: list[httpx.Request] = []

    def url(self, page: int) -> str:
        return f"{self.host}/comic/{page}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        for name, value in self.required_headers.items():
            if request.headers.get(name) != value:
                return httpx.Response(403)

        path = request.url.path
        if path.startswith("/comic/"):
            if self.page_status is not None:
                return httpx.Response(self.page_status)
            number = int(path.rsplit("/", 1)[1])
            has_next = self.last_page is None or number < self.last_page
            html = comic_page(
                f"/images/{number}.png" if self.with_images else None,
                f"/comic/{number + 1}" if has_next else None,
            )
            return httpx.Response(200, html=html)

        if path.startswith("/images/"):
            if self.image_status is not None:
                return httpx.Response(self.image_status)
            return httpx.Response(200, content=self.image_bytes)

        return httpx.Response(404)

    def client(self) -> HTTPClient:
        return HTTPClient(transport=httpx.MockTransport(self.handler))

    def count(self, prefix: str) -> int:
        return len([r for r in self.requests if r.url.path.startswith(prefix)])


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def site():
    return ComicSite()


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by setup_logging so they don't leak between tests."""
    yield
    logger = logging.getLogger("sturdywcdl")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
