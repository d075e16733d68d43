"""Utility modules for the downloader."""

from .http import ErrorClass, FetchError, FetchOutcome, HTTPClient
from .images import ArtifactDescriptor, MalformedImageError, inspect_image, reencode_image
from .parser import HTMLParser, find_link
from .retry import RetryResult, retry

__all__ = [
    "ArtifactDescriptor",
    "ErrorClass",
    "FetchError",
    "FetchOutcome",
    "HTMLParser",
    "HTTPClient",
    "MalformedImageError",
    "RetryResult",
    "find_link",
    "inspect_image",
    "reencode_image",
    "retry",
]
