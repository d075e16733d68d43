"""
Downloads a webcomic page by page into an output document.

``download_webcomic`` is the entry point for using the downloader from your
own code; see ``download.py`` for the command line.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType

from .assembler import ArtifactAssembler
from .logger import get_logger
from .observer import DownloadObserver, LoggingObserver, WarningKind
from .utils.http import HTTPClient
from .utils.parser import HTMLParser, url_origin
from .utils.retry import DEFAULT_MAX_ATTEMPTS, retry

logger = get_logger(__name__)

DEFAULT_MAX_PAGES = 10000
DEFAULT_PROGRESS_EVERY = 15


class StopReason(Enum):
    """Why a download ended."""

    END_OF_SERIES = "end_of_series"
    MAX_PAGES = "max_pages"
    PAGE_FETCH_FAILED = "page_fetch_failed"


@dataclass(frozen=True)
class DownloadOptions:
    """Per-download settings that do not change while it runs."""

    headers: Mapping[str, str] | None = None
    image_output_dir: Path | str | None = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    progress_every: int = DEFAULT_PROGRESS_EVERY


@dataclass(frozen=True)
class PageReference:
    """A page URL and the origin its relative links resolve against."""

    url: str
    origin: str

    @classmethod
    def first(cls, url: str) -> "PageReference":
        return cls(url=url, origin=url_origin(url))

    def follow(self, url: str) -> "PageReference":
        return PageReference(url=url, origin=self.origin)


@dataclass
class TraversalState:
    """Mutable progress of one download."""

    queued: PageReference
    max_pages: int
    headers: Mapping[str, str]
    image_output_dir: Path | None = None
    page_index: int = 0


@dataclass
class DownloadReport:
    """Summary of a finished download."""

    first_page_url: str
    pages: int = 0
    images: int = 0
    placeholders: int = 0
    stop_reason: StopReason = StopReason.MAX_PAGES
    error: str | None = None
    last_page_url: str | None = None
    warnings: dict[str, int] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.stop_reason is not StopReason.PAGE_FETCH_FAILED

    def to_dict(self) -> dict:
        return {
            "first_page_url": self.first_page_url,
            "last_page_url": self.last_page_url,
            "pages": self.pages,
            "images": self.images,
            "placeholders": self.placeholders,
            "stop_reason": self.stop_reason.value,
            "error": self.error,
            "warnings": dict(self.warnings),
        }


class _CountingObserver(DownloadObserver):
    """Forwards to the caller's observer and tallies warnings for the report."""

    def __init__(self, inner: DownloadObserver, report: DownloadReport):
        self.inner = inner
        self.report = report

    def on_start(self, url):
        self.inner.on_start(url)

    def on_warning(self, kind, detail=""):
        self.report.warnings[kind.value] = self.report.warnings.get(kind.value, 0) + 1
        self.inner.on_warning(kind, detail)

    def on_progress(self, count):
        self.inner.on_progress(count)

    def on_fatal(self, message):
        self.inner.on_fatal(message)

    def on_finish(self, report):
        self.inner.on_finish(report)


def download_webcomic(
    sink,
    first_page_url: str,
    image_selector: str,
    next_selector: str,
    max_pages: int = DEFAULT_MAX_PAGES,
    options: DownloadOptions | None = None,
    *,
    client: HTTPClient | None = None,
    observer: DownloadObserver | None = None,
) -> DownloadReport:
    """
    Download a webcomic and append one page per comic page to ``sink``.

    Every page that is visited adds exactly one page to the sink: the image,
    or a small "image missing" page when the image link is absent, the image
    cannot be fetched, or the image is corrupt. The download stops at the
    first page without a next link, after ``max_pages`` pages, or when a page
    cannot be fetched at all. It never raises for network problems, so the
    caller can always finalize the sink and keep what was downloaded.

    Args:
        sink: Output document. Opened and finalized by the caller.
        first_page_url: Absolute URL of the first page
        image_selector: CSS selector of the <img> element; its src is fetched
        next_selector: CSS selector of the <a> element; its href is the next page
        max_pages: Maximum number of pages to download
        options: Headers, raw image directory and retry budget
        client: HTTP client to use. One is created (and closed) if omitted.
        observer: Receives warnings and progress. Logs by default.

    Returns:
        DownloadReport describing how far the download got
    """
    options = options or DownloadOptions()
    observer = observer or LoggingObserver()

    report = DownloadReport(first_page_url=first_page_url)
    counting = _CountingObserver(observer, report)

    state = TraversalState(
        queued=PageReference.first(first_page_url),
        max_pages=max_pages,
        headers=MappingProxyType(dict(options.headers or {})),
        image_output_dir=Path(options.image_output_dir) if options.image_output_dir else None,
    )
    assembler = ArtifactAssembler(counting, state.image_output_dir)

    counting.on_start(first_page_url)

    owns_client = client is None
    if owns_client:
        client = HTTPClient()
    try:
        _traverse(sink, state, image_selector, next_selector, options, client, assembler, report)
    finally:
        if owns_client:
            client.close()

    counting.on_finish(report)
    return report


def _traverse(
    sink,
    state: TraversalState,
    image_selector: str,
    next_selector: str,
    options: DownloadOptions,
    client: HTTPClient,
    assembler: ArtifactAssembler,
    report: DownloadReport,
):
    observer = assembler.observer

    def fetch_page(page: PageReference) -> HTMLParser:
        content = client.fetch(page.url, state.headers).unwrap()
        return HTMLParser(content, page.origin)

    def fetch_image(url: str) -> bytes:
        return client.fetch(url, state.headers).unwrap()

    while state.page_index < state.max_pages:
        index = state.page_index
        page_ref = state.queued

        if options.progress_every and index % options.progress_every == 0 and index != 0:
            observer.on_progress(index)

        fetched = retry(lambda: fetch_page(page_ref), options.max_attempts)
        if not fetched.success:
            # Nothing more can be discovered; keep what was assembled so far
            observer.on_fatal(fetched.error.message)
            report.stop_reason = StopReason.PAGE_FETCH_FAILED
            report.error = fetched.error.message
            return

        page = fetched.value
        report.last_page_url = page_ref.url

        image_url = page.find_link(image_selector, "src")
        if image_url is None:
            observer.on_warning(
                WarningKind.CANNOT_GET_IMAGE,
                f"no element matching {image_selector!r} with a src on {page_ref.url}",
            )
            assembler.insert_placeholder(sink, index)
            report.placeholders += 1
        else:
            downloaded = retry(lambda: fetch_image(image_url), options.max_attempts)
            if downloaded.success:
                if assembler.insert_artifact(sink, downloaded.value, index):
                    report.images += 1
                else:
                    report.placeholders += 1
            else:
                observer.on_warning(WarningKind.CANNOT_GET_IMAGE, downloaded.error.message)
                assembler.insert_placeholder(sink, index)
                report.placeholders += 1

        report.pages += 1

        next_url = page.find_link(next_selector, "href")
        if next_url is None:
            logger.debug(f"No next link on {page_ref.url}, last page reached")
            report.stop_reason = StopReason.END_OF_SERIES
            return

        state.queued = page_ref.follow(next_url)
        state.page_index += 1

    report.stop_reason = StopReason.MAX_PAGES
