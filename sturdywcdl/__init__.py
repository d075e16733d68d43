"""Sturdy Webcomic Downloader - save paginated webcomics as PDF files."""

from .downloader import (
    DownloadOptions,
    DownloadReport,
    StopReason,
    download_webcomic,
)
from .observer import DownloadObserver, LoggingObserver, WarningKind
from .pdf import PdfSink

__version__ = "1.0.0"

__all__ = [
    "DownloadObserver",
    "DownloadOptions",
    "DownloadReport",
    "LoggingObserver",
    "PdfSink",
    "StopReason",
    "WarningKind",
    "download_webcomic",
]
