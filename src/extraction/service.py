"""Content extraction service: fetch, parse and fan out over URLs."""

import asyncio
import uuid
from types import TracebackType
from typing import TYPE_CHECKING, TypeVar

import structlog

from src.extraction.adaptive import AdaptiveParser
from src.extraction.collection import CollectionExtractor
from src.extraction.config import ExtractionConfig
from src.extraction.errors import (
    ExtractionError,
    InvalidEncodingError,
    InvalidResponseError,
)
from src.extraction.fallback import FallbackExtractor, LlmFallbackExtractor
from src.extraction.metrics import ExtractionMetrics
from src.extraction.models import ExtractionResult
from src.extraction.records import StructuredRecord
from src.fetch import AsyncHttpFetcher, redact_url_credentials
from src.llm.protocols import LlmClient
from src.observability.logging import (
    bind_batch_context,
    clear_batch_context,
    configure_logging,
)


if TYPE_CHECKING:
    from src.settings.app import AppSettings


logger = structlog.get_logger()

R = TypeVar("R", bound=StructuredRecord)


class ContentExtractionService:
    """Fetches pages and extracts typed records from them.

    Batch calls run one task per URL, at most ``max_concurrency`` at a
    time, and always return results in input order.

    Use as an async context manager, or call :meth:`aclose`, to release
    the HTTP client.
    """

    def __init__(
        self,
        fallback: FallbackExtractor | None = None,
        config: ExtractionConfig | None = None,
        parser: AdaptiveParser | None = None,
        fetcher: AsyncHttpFetcher | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            fallback: Fallback extractor handed to a new AdaptiveParser.
                Ignored when ``parser`` is given.
            config: Extraction configuration.
            parser: Pre-built adaptive parser to share.
            fetcher: Pre-built HTTP fetcher (e.g. with a mock transport).
        """
        self._config = config or ExtractionConfig()
        self._parser = parser or AdaptiveParser(fallback=fallback, config=self._config)
        self._fetcher = fetcher or AsyncHttpFetcher(config=self._config.fetch)
        self._collection = CollectionExtractor(self._parser)
        self._metrics = ExtractionMetrics.get_instance()
        self._log = logger.bind(component="extraction", subcomponent="service")

    @classmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        llm_client: LlmClient | None = None,
        fetcher: AsyncHttpFetcher | None = None,
    ) -> "ContentExtractionService":
        """Build a service from environment settings.

        Configures logging from the settings. When an LLM client is
        given it becomes the fallback, limited to ``fallback_max_chars``
        of page text per prompt.

        Args:
            settings: Loaded application settings.
            llm_client: Client for the LLM fallback; none disables it.
            fetcher: Pre-built HTTP fetcher.
        """
        configure_logging(settings.log_level_value, json_format=settings.log_json)
        config = settings.to_extraction_config()
        fallback = None
        if llm_client is not None:
            fallback = LlmFallbackExtractor(llm_client, max_chars=config.fallback_max_chars)
        return cls(fallback=fallback, config=config, fetcher=fetcher)

    @property
    def parser(self) -> AdaptiveParser:
        """Get the adaptive parser (and through it, the selector cache)."""
        return self._parser

    async def __aenter__(self) -> "ContentExtractionService":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP fetcher."""
        await self._fetcher.aclose()

    async def fetch_html(self, url: str) -> str:
        """Fetch a page and decode it as UTF-8 text.

        Args:
            url: Page URL.

        Returns:
            Decoded HTML.

        Raises:
            InvalidResponseError: Transport failure or non-2xx status.
            InvalidEncodingError: Body is not valid UTF-8.
        """
        result = await self._fetcher.fetch(url)
        error = result.error
        self._metrics.record_fetch(
            result.status_code, error.error_class.value if error else None
        )

        if not result.is_success:
            detail = error.message if error else f"HTTP status {result.status_code}"
            raise InvalidResponseError(
                f"Request failed: {detail}",
                url=redact_url_credentials(url),
                status_code=result.status_code or None,
                error_class=error.error_class if error else None,
            )

        try:
            return result.body_bytes.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"Response body is not valid UTF-8: {exc.reason}"
            raise InvalidEncodingError(msg, url=redact_url_credentials(url)) from exc

    async def extract_result(self, url: str, record_type: type[R]) -> ExtractionResult[R]:
        """Fetch a page and extract one record, keeping source and warnings."""
        html = await self.fetch_html(url)
        return await self._parser.parse_with_fallback(html, record_type, url)

    async def extract_one(self, url: str, record_type: type[R]) -> R:
        """Fetch a page and extract one record.

        Raises:
            ExtractionError: Fetching or parsing failed.
        """
        result = await self.extract_result(url, record_type)
        return result.unwrap()

    async def extract_collection(self, url: str, record_type: type[R]) -> list[R]:
        """Fetch a listing page and extract every record on it.

        Raises:
            ExtractionError: Fetching failed or no items were found.
        """
        html = await self.fetch_html(url)
        return await self._collection.extract_collection(html, url, record_type)

    async def extract_results(
        self,
        urls: list[str],
        record_type: type[R],
    ) -> list[ExtractionResult[R]]:
        """Extract one record per URL concurrently.

        Args:
            urls: Page URLs.
            record_type: Record class to produce.

        Returns:
            One result per URL, in input order. Failed URLs yield
            ``ExtractionResult.failure``.
        """
        if not urls:
            return []

        batch_id = uuid.uuid4().hex[:12]
        semaphore = asyncio.Semaphore(self._config.max_concurrency)
        results: list[ExtractionResult[R] | None] = [None] * len(urls)

        async def run(index: int, url: str) -> None:
            async with semaphore:
                results[index] = await self._extract_item(url, record_type)

        bind_batch_context(batch_id, len(urls))
        try:
            self._log.info("batch_started", record_type=record_type.__name__)
            async with asyncio.TaskGroup() as group:
                for index, url in enumerate(urls):
                    group.create_task(run(index, url))
        finally:
            clear_batch_context()

        completed = [result for result in results if result is not None]
        self._log.info(
            "batch_complete",
            batch_id=batch_id,
            total=len(urls),
            succeeded=sum(1 for result in completed if result.is_success),
        )
        return completed

    async def extract_many(self, urls: list[str], record_type: type[R]) -> list[R]:
        """Extract one record per URL concurrently, in input order.

        Failed URLs are dropped unless ``tolerate_failures`` is off, in
        which case the first failure in input order is raised.

        Raises:
            ExtractionError: A URL failed and failures are not tolerated.
        """
        records: list[R] = []
        for result in await self.extract_results(urls, record_type):
            if result.is_success:
                records.append(result.unwrap())
            elif not self._config.tolerate_failures and result.error is not None:
                raise result.error
        return records

    async def _extract_item(self, url: str, record_type: type[R]) -> ExtractionResult[R]:
        try:
            return await self.extract_result(url, record_type)
        except ExtractionError as exc:
            self._metrics.record_batch_failure(type(exc).__name__)
            self._log.warning(
                "batch_item_failed",
                url=redact_url_credentials(url),
                error_type=type(exc).__name__,
                error=exc.message,
            )
            return ExtractionResult.failure(exc)
