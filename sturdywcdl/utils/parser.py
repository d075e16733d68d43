"""HTML parsing and link extraction for webcomic pages."""

from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from ..logger import get_logger

logger = get_logger(__name__)


class HTMLParser:
    """
    Queryable view of one fetched page.

    Wraps BeautifulSoup so the rest of the package only depends on
    ``select_one`` and the attribute lookup of the returned element.
    """

    def __init__(self, markup: str | bytes, base_url: str = ""):
        """
        Initialize parser with page content.

        Args:
            markup: HTML content. Bytes are decoded using the page's declared
                encoding.
            base_url: Base URL for resolving relative links
        """
        self.soup = BeautifulSoup(markup, "lxml")
        self.base_url = base_url

    def select_one(self, selector: str) -> Optional[Tag]:
        """
        Select first matching element.

        Args:
            selector: CSS selector string

        Returns:
            First matching element or None
        """
        return self.soup.select_one(selector)

    def find_link(self, selector: str, attribute: str) -> Optional[str]:
        """Shortcut for ``find_link`` against this page's base URL."""
        return find_link(self, selector, attribute, self.base_url)


def url_origin(url: str) -> str:
    """
    Return ``scheme://host[:port]`` of an absolute URL.

    Raises:
        ValueError: If the URL is not absolute
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Not an absolute URL: {url!r}")
    return f"{parsed.scheme}://{parsed.netloc}"


def find_link(document, selector: str, attribute: str, base: str) -> Optional[str]:
    """
    Find a link in a parsed page.

    Args:
        document: Anything with ``select_one(selector)`` returning an element
            with ``get(attribute)``, or None
        selector: CSS selector for the element holding the link
        attribute: Attribute holding the link ("src" for images, "href" for
            the next page)
        base: Base the link is resolved against, so that both
            "https://comic.com/2" and "/2" work

    Returns:
        Absolute URL, or None if nothing matches, the attribute is missing
        or its value is not a parseable URL
    """
    element = document.select_one(selector)
    if element is None:
        logger.debug(f"No element matches {selector!r}")
        return None

    link = element.get(attribute)
    if link is None:
        logger.debug(f"Element {selector!r} has no {attribute!r} attribute")
        return None
    if isinstance(link, list):
        link = " ".join(link)

    try:
        return urljoin(base, link.strip())
    except ValueError as e:
        logger.debug(f"Unusable {attribute!r} value {link!r} on {selector!r}: {e}")
        return None
