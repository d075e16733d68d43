"""Tests for the download observers."""

import logging

from sturdywcdl.downloader import DownloadReport, StopReason
from sturdywcdl.observer import WARNING_MESSAGES, DownloadObserver, LoggingObserver, WarningKind


def test_base_observer_ignores_everything():
    observer = DownloadObserver()
    observer.on_start("https://comics.test/1")
    observer.on_warning(WarningKind.CANNOT_GET_IMAGE)
    observer.on_progress(15)
    observer.on_fatal("http 404:")
    observer.on_finish(DownloadReport(first_page_url="https://comics.test/1"))


class TestLoggingObserver:
    def test_warning_messages(self, caplog):
        with caplog.at_level(logging.WARNING, logger="sturdywcdl"):
            LoggingObserver().on_warning(WarningKind.MALFORMED_ARTIFACT)

        assert caplog.messages == [
            "WARNING: image is malformed / corrupt, adding empty page instead"
        ]

    def test_warning_with_reason(self, caplog):
        with caplog.at_level(logging.WARNING, logger="sturdywcdl"):
            LoggingObserver().on_warning(WarningKind.CANNOT_GET_IMAGE, "http 500: - down")

        assert caplog.messages == [
            WARNING_MESSAGES[WarningKind.CANNOT_GET_IMAGE],
            "reason: http 500: - down",
        ]

    def test_progress(self, caplog):
        with caplog.at_level(logging.INFO, logger="sturdywcdl"):
            LoggingObserver().on_progress(30)

        assert caplog.messages == ["Has downloaded 30 pages."]

    def test_fatal_logged_as_error(self, caplog):
        with caplog.at_level(logging.INFO, logger="sturdywcdl"):
            LoggingObserver().on_fatal("http 403: - denied")

        assert caplog.records[0].levelno == logging.ERROR

    def test_label_prefix(self, caplog):
        report = DownloadReport(first_page_url="u", pages=4, stop_reason=StopReason.END_OF_SERIES)

        with caplog.at_level(logging.INFO, logger="sturdywcdl"):
            LoggingObserver("xkcd").on_finish(report)

        assert caplog.messages[0].startswith("[xkcd] Finished after 4 pages")
        assert caplog.messages[0].endswith("end_of_series")
