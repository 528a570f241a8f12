"""Async HTTP client with retries and response size limits."""

import asyncio
import re
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from types import TracebackType
from urllib.parse import urlparse

import httpx
import structlog

from src.fetch.config import FetchConfig, RequestSettings
from src.fetch.constants import (
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
)
from src.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
)


logger = structlog.get_logger()

_URL_CREDENTIALS = re.compile(r"(https?://)([^:/@]+):([^@]+)@")


def redact_url_credentials(url: str) -> str:
    """Redact ``user:password@`` credentials from a URL for logging."""
    return _URL_CREDENTIALS.sub(r"\1[REDACTED]:[REDACTED]@", url)


class AsyncHttpFetcher:
    """Async HTTP GET with retry policy and failure isolation.

    Failures never raise: every outcome is reported as a FetchResult so
    callers decide how to surface it. One fetcher can serve many
    concurrent requests; it owns its httpx client unless one is injected.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            config: Fetch configuration.
            client: Optional pre-built client (e.g. with a mock transport).
                An injected client is not closed by ``aclose``.
        """
        self._config = config or FetchConfig()
        self._client = client
        self._owns_client = client is None
        self._host_slots: dict[str, asyncio.Semaphore] = {}
        self._log = logger.bind(component="fetch")

    async def __aenter__(self) -> "AsyncHttpFetcher":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self._config.default_timeout_seconds,
            )
        return self._client

    async def fetch(
        self,
        url: str,
        extra_headers: dict[str, str] | None = None,
    ) -> FetchResult:
        """Fetch a URL with retry support.

        Args:
            url: The URL to fetch.
            extra_headers: Additional headers to include.

        Returns:
            FetchResult with status, body and error information.
        """
        start_time_ns = time.perf_counter_ns()
        domain = urlparse(url).hostname or ""
        log = self._log.bind(url=redact_url_credentials(url), domain=domain)

        settings = self._config.settings_for(domain)
        headers = self._build_headers(settings, extra_headers)
        slot = self._host_slot(settings)
        if slot is None:
            result = await self._execute_with_retry(url, settings, headers, log)
        else:
            async with slot:
                result = await self._execute_with_retry(url, settings, headers, log)

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        log.info(
            "fetch_complete",
            status_code=result.status_code,
            bytes=result.body_size,
            attempts=result.attempts,
            duration_ms=round(duration_ms, 2),
            error_class=result.error.error_class.value if result.error else None,
        )
        return result

    def _host_slot(self, settings: RequestSettings) -> asyncio.Semaphore | None:
        """Return the semaphore limiting requests to a profiled host."""
        if settings.profile_host is None or settings.max_concurrent_requests is None:
            return None
        slot = self._host_slots.get(settings.profile_host)
        if slot is None:
            slot = asyncio.Semaphore(settings.max_concurrent_requests)
            self._host_slots[settings.profile_host] = slot
        return slot

    def _build_headers(
        self,
        settings: RequestSettings,
        extra_headers: dict[str, str] | None,
    ) -> dict[str, str]:
        headers: dict[str, str] = {
            "User-Agent": self._config.user_agent,
            "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
            "Accept-Encoding": "gzip, deflate",
        }
        headers.update(settings.headers)
        if extra_headers:
            headers.update(extra_headers)
        return headers

    async def _execute_with_retry(
        self,
        url: str,
        settings: RequestSettings,
        headers: dict[str, str],
        log: structlog.stdlib.BoundLogger,
    ) -> FetchResult:
        policy = self._config.retry_policy
        attempt = 0

        while True:
            result = await self._execute_single(url, headers, settings, attempt)
            if result.error is None or not policy.should_retry(result.error, attempt):
                return result

            delay_seconds = policy.get_delay_ms(attempt) / 1000.0
            retry_after = result.error.retry_after
            if result.error.error_class == FetchErrorClass.RATE_LIMITED and retry_after:
                delay_seconds = min(retry_after, MAX_RETRY_AFTER_SECONDS)
                log.info("rate_limited", retry_after=retry_after, attempt=attempt)

            attempt += 1
            log.debug(
                "retry_attempt",
                attempt=attempt,
                delay_seconds=round(delay_seconds, 3),
                max_retries=policy.max_retries,
                error_class=result.error.error_class.value,
            )
            await asyncio.sleep(delay_seconds)

    async def _execute_single(
        self,
        url: str,
        headers: dict[str, str],
        settings: RequestSettings,
        attempt: int,
    ) -> FetchResult:
        """Execute a single HTTP request, mapping transport errors to results."""
        attempts = attempt + 1
        try:
            async with self._get_client().stream(
                "GET", url, headers=headers, timeout=settings.timeout_seconds
            ) as response:
                content_length = response.headers.get("content-length")
                max_size = settings.max_response_size_bytes
                if content_length and content_length.isdigit() and int(content_length) > max_size:
                    return self._failure(
                        url,
                        FetchErrorClass.RESPONSE_SIZE_EXCEEDED,
                        f"Response size {content_length} exceeds limit {max_size}",
                        attempts,
                        status_code=response.status_code,
                    )

                body = await self._read_body_with_limit(response, max_size)
                return FetchResult(
                    url=url,
                    status_code=response.status_code,
                    final_url=str(response.url),
                    headers=dict(response.headers),
                    body_bytes=body,
                    attempts=attempts,
                    error=self._classify_http_error(response.status_code, response.headers),
                )

        except ResponseSizeExceededError as e:
            return self._failure(
                url, FetchErrorClass.RESPONSE_SIZE_EXCEEDED, str(e), attempts
            )
        except httpx.TimeoutException as e:
            return self._failure(
                url, FetchErrorClass.NETWORK_TIMEOUT, f"Request timed out: {e}", attempts
            )
        except httpx.ConnectError as e:
            return self._failure(
                url, FetchErrorClass.CONNECTION_ERROR, f"Connection failed: {e}", attempts
            )
        except httpx.HTTPError as e:
            return self._failure(
                url, FetchErrorClass.UNKNOWN, f"HTTP error: {e!r}", attempts
            )

    @staticmethod
    def _failure(
        url: str,
        error_class: FetchErrorClass,
        message: str,
        attempts: int,
        status_code: int = 0,
    ) -> FetchResult:
        return FetchResult(
            url=url,
            status_code=status_code,
            final_url=url,
            attempts=attempts,
            error=FetchError(
                error_class=error_class,
                message=message,
                status_code=status_code or None,
            ),
        )

    async def _read_body_with_limit(self, response: httpx.Response, max_size: int) -> bytes:
        """Read the streamed body, aborting once the size limit is passed.

        Raises:
            ResponseSizeExceededError: If the body is larger than allowed.
        """
        chunks: list[bytes] = []
        total_read = 0

        async for chunk in response.aiter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            total_read += len(chunk)
            if total_read > max_size:
                msg = (
                    f"Response size exceeded limit of {max_size} bytes "
                    f"(read {total_read} bytes)"
                )
                raise ResponseSizeExceededError(msg)
            chunks.append(chunk)

        return b"".join(chunks)

    def _classify_http_error(
        self,
        status_code: int,
        headers: httpx.Headers,
    ) -> FetchError | None:
        """Classify an HTTP status code; 2xx yields no error."""
        if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
            return None

        if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
            return FetchError(
                error_class=FetchErrorClass.RATE_LIMITED,
                message="Rate limited (429 Too Many Requests)",
                status_code=status_code,
                retry_after=self._parse_retry_after(headers.get("retry-after")),
            )

        if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
            return FetchError(
                error_class=FetchErrorClass.HTTP_4XX,
                message=f"Client error ({status_code})",
                status_code=status_code,
            )

        if HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX:
            return FetchError(
                error_class=FetchErrorClass.HTTP_5XX,
                message=f"Server error ({status_code})",
                status_code=status_code,
            )

        return FetchError(
            error_class=FetchErrorClass.UNEXPECTED_STATUS,
            message=f"Unexpected status ({status_code})",
            status_code=status_code,
        )

    def _parse_retry_after(self, value: str | None) -> int | None:
        """Parse a Retry-After header given in seconds or as an HTTP date."""
        if not value:
            return None

        try:
            return int(value)
        except ValueError:
            pass

        try:
            dt = parsedate_to_datetime(value)
            delta = dt - datetime.now(UTC)
            return max(0, int(delta.total_seconds()))
        except (ValueError, TypeError):
            pass

        return None
