"""Async HTTP fetch layer with retries and failure isolation."""

from src.fetch.client import AsyncHttpFetcher, redact_url_credentials
from src.fetch.config import FetchConfig, HostProfile, RequestSettings
from src.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    MAX_RETRY_AFTER_SECONDS,
)
from src.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
    RetryPolicy,
)


__all__ = [
    # Client
    "AsyncHttpFetcher",
    # Config
    "FetchConfig",
    "HostProfile",
    "RequestSettings",
    # Models
    "FetchError",
    "FetchErrorClass",
    "FetchResult",
    "ResponseSizeExceededError",
    "RetryPolicy",
    # Constants
    "DEFAULT_MAX_RESPONSE_SIZE_BYTES",
    "HTTP_STATUS_OK_MAX",
    "HTTP_STATUS_OK_MIN",
    "MAX_RETRY_AFTER_SECONDS",
    # Redaction
    "redact_url_credentials",
]
