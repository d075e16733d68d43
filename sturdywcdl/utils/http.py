"""HTTP client that classifies failed fetches into user-facing errors."""

import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

import httpx

from ..logger import get_logger

logger = get_logger(__name__)

DEFAULT_USER_AGENT = "SturdyWebcomicDownloader/1.0"

TRANSPORT_FAILURE_MESSAGE = "fetch failed unexpectedly"


class ErrorClass(Enum):
    """Classification of a failed fetch."""

    AUTH_LIKE = "auth_like"
    SERVER_ISSUE = "server_issue"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"
    TRANSPORT_FAILURE = "transport_failure"


# Hints shown after the status code. Downstream tooling parses these lines,
# so the wording must not change.
HELPER_TEXT = {
    ErrorClass.AUTH_LIKE: (
        " - Error fetching url. Check if you need an authorization header, "
        "or a required cookie."
    ),
    ErrorClass.SERVER_ISSUE: (
        " - Error fetching url, it might be because the webcomic server is down. "
        "Try again later."
    ),
    ErrorClass.NOT_FOUND: " - Error fetching url. Check if you have entered a correct url.",
    ErrorClass.UNKNOWN: (
        " - There was an unknown error fetching the page. Either the webpage is "
        "doing something VERY funny, or you should contact the developer of this "
        "software."
    ),
}

_STATUS_CLASSES = {
    401: ErrorClass.AUTH_LIKE,
    403: ErrorClass.AUTH_LIKE,
    302: ErrorClass.AUTH_LIKE,
    303: ErrorClass.AUTH_LIKE,
    307: ErrorClass.AUTH_LIKE,
    500: ErrorClass.SERVER_ISSUE,
    503: ErrorClass.SERVER_ISSUE,
    404: ErrorClass.NOT_FOUND,
}


def classify_status(status_code: int) -> ErrorClass:
    """Map a non-2xx status code to its error class."""
    return _STATUS_CLASSES.get(status_code, ErrorClass.UNKNOWN)


def construct_http_error_message(status_code: int, helper_text: str) -> str:
    """
    Build the message shown to the user for a failed HTTP response.

    Args:
        status_code: HTTP status number
        helper_text: Hint explaining what went wrong and how to fix it

    Returns:
        Message of the form ``http <status>:<helper_text>``
    """
    return "http " + str(status_code) + ":" + helper_text


class FetchError(Exception):
    """A fetch that did not produce a usable response."""

    def __init__(
        self,
        error_class: ErrorClass,
        message: str,
        url: str = "",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.url = url
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int, url: str = "") -> "FetchError":
        """Create the classified error for a non-2xx response."""
        error_class = classify_status(status_code)
        message = construct_http_error_message(status_code, HELPER_TEXT[error_class])
        return cls(error_class, message, url=url, status_code=status_code)

    @classmethod
    def transport_failure(cls, url: str = "") -> "FetchError":
        """Create the error for a request that never produced a response."""
        return cls(ErrorClass.TRANSPORT_FAILURE, TRANSPORT_FAILURE_MESSAGE, url=url)


@dataclass(frozen=True)
class FetchOutcome:
    """
    Result of a single fetch: either ``content`` or ``error``, never both.
    """

    url: str
    content: bytes | None = None
    error: FetchError | None = None
    status_code: int = 0
    elapsed_ms: float = 0.0

    def __post_init__(self):
        if (self.content is None) == (self.error is None):
            raise ValueError("FetchOutcome needs exactly one of content or error")

    @property
    def success(self) -> bool:
        """Check if the fetch produced a payload."""
        return self.error is None

    def unwrap(self) -> bytes:
        """
        Return the payload.

        Raises:
            FetchError: If the fetch failed
        """
        if self.error is not None:
            raise self.error
        return self.content


class HTTPClient:
    """
    Thin wrapper around ``httpx.Client`` that never raises on a failed fetch.

    Every failure is turned into a classified ``FetchError`` carried by a
    ``FetchOutcome``. Retrying is left to the caller.
    """

    def __init__(
        self,
        timeout: float = 30,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: Mapping[str, str] | None = None,
        follow_redirects: bool = True,
        verify_ssl: bool = True,
        proxy: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize HTTP client.

        Args:
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            headers: Headers sent with every request of this client
            follow_redirects: Follow redirects that carry a Location header.
                A redirect without one is classified like any other status.
            verify_ssl: Whether to verify SSL certificates
            proxy: Proxy URL (e.g., "http://proxy:8080")
            transport: Custom httpx transport, mainly for tests
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.follow_redirects = follow_redirects
        self.verify_ssl = verify_ssl

        base_headers = {"User-Agent": user_agent}
        base_headers.update(headers or {})

        client_kwargs = {
            "timeout": timeout,
            "headers": base_headers,
            "follow_redirects": follow_redirects,
            "verify": verify_ssl,
        }
        if proxy:
            client_kwargs["proxy"] = proxy
        if transport is not None:
            client_kwargs["transport"] = transport

        self._client = httpx.Client(**client_kwargs)

    def fetch(self, url: str, headers: Mapping[str, str] | None = None) -> FetchOutcome:
        """
        Fetch a URL once.

        Args:
            url: URL to fetch
            headers: Extra headers for this request

        Returns:
            FetchOutcome with the body bytes or a classified error
        """
        start_time = time.monotonic()
        try:
            logger.debug(f"GET {url}")
            response = self._client.get(url, headers=dict(headers) if headers else None)
        except httpx.RequestError as e:
            logger.debug(f"Request error for {url}: {e!r}")
            return FetchOutcome(url=url, error=FetchError.transport_failure(url))

        elapsed_ms = (time.monotonic() - start_time) * 1000

        if not response.is_success:
            logger.debug(f"HTTP {response.status_code} for {url}")
            return FetchOutcome(
                url=url,
                error=FetchError.from_status(response.status_code, url),
                status_code=response.status_code,
                elapsed_ms=elapsed_ms,
            )

        return FetchOutcome(
            url=url,
            content=response.content,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
        )

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
