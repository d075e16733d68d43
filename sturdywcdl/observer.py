"""Reporting hooks for a download run."""

from enum import Enum
from typing import TYPE_CHECKING

from .logger import get_logger

if TYPE_CHECKING:
    from .downloader import DownloadReport

logger = get_logger("downloader")


class WarningKind(Enum):
    """Why a page ended up without its image."""

    CANNOT_GET_IMAGE = "cannot_get_image"
    MALFORMED_ARTIFACT = "malformed_artifact"


# Printed as-is to the user, one per degraded page
WARNING_MESSAGES = {
    WarningKind.CANNOT_GET_IMAGE: (
        "WARNING: cannot get the requested image, adding empty page instead"
    ),
    WarningKind.MALFORMED_ARTIFACT: (
        "WARNING: image is malformed / corrupt, adding empty page instead"
    ),
}


class DownloadObserver:
    """
    Receives progress and problems from a download.

    The base class ignores everything; subclass it and override the hooks
    you care about.
    """

    def on_start(self, url: str):
        pass

    def on_warning(self, kind: WarningKind, detail: str = ""):
        pass

    def on_progress(self, count: int):
        pass

    def on_fatal(self, message: str):
        pass

    def on_finish(self, report: "DownloadReport"):
        pass


class LoggingObserver(DownloadObserver):
    """Observer that writes everything to the package log."""

    def __init__(self, label: str = ""):
        self.prefix = f"[{label}] " if label else ""

    def on_start(self, url: str):
        logger.info(f"{self.prefix}Starting download of: {url}")

    def on_warning(self, kind: WarningKind, detail: str = ""):
        logger.warning(
            f"{self.prefix}{WARNING_MESSAGES[kind]}",
            extra={"kind": kind.value},
        )
        if detail:
            logger.warning(f"{self.prefix}reason: {detail}")

    def on_progress(self, count: int):
        logger.info(f"{self.prefix}Has downloaded {count} pages.")

    def on_fatal(self, message: str):
        logger.error(f"{self.prefix}{message}")

    def on_finish(self, report: "DownloadReport"):
        logger.info(
            f"{self.prefix}Finished after {report.pages} pages "
            f"({report.images} images, {report.placeholders} placeholders): "
            f"{report.stop_reason.value}"
        )
