"""Extraction of record collections from listing pages."""

from typing import TypeVar

import structlog
from bs4 import BeautifulSoup, Tag

from src.extraction.adaptive import AdaptiveParser
from src.extraction.errors import ExtractionError, NoItemsFoundError
from src.extraction.models import ExtractionSource
from src.extraction.records import StructuredRecord
from src.extraction.selectors import parse_document, wrap_fragment


logger = structlog.get_logger()

R = TypeVar("R", bound=StructuredRecord)

# Elements likely to wrap the whole listing, tried in order.
CONTAINER_SELECTORS: tuple[str, ...] = (
    ".council-members",
    "#council-members",
    ".elected-officials",
    "#elected-officials",
    ".staff-directory",
    "#staff-directory",
    ".directory-listing",
    "#directory-listing",
    "main",
    "#main-content",
    ".main-content",
    "article",
    ".article",
)

# Generic list/grid/card item selectors, tried after the record type's own.
GENERIC_ITEM_SELECTORS: tuple[str, ...] = (
    ".directory-item",
    ".grid-item",
    ".list-item",
    ".card",
)


def find_container(document: BeautifulSoup) -> BeautifulSoup | Tag:
    """Return the first listing container found, or the whole document."""
    for selector in CONTAINER_SELECTORS:
        container = document.select_one(selector)
        if container is not None:
            return container
    return document


def item_selectors(record_type: type[StructuredRecord]) -> list[str]:
    """Return item selectors for a record type, type-specific first."""
    selectors = list(record_type.ITEM_SELECTORS)
    selectors.extend(s for s in GENERIC_ITEM_SELECTORS if s not in selectors)
    return selectors


class CollectionExtractor:
    """Splits a listing page into items and parses each one.

    The first item selector whose matches yield at least one record
    wins. If no selector yields anything the whole page is parsed as a
    single record.
    """

    def __init__(self, parser: AdaptiveParser) -> None:
        self._parser = parser
        self._log = logger.bind(component="extraction", subcomponent="collection")

    async def extract_collection(
        self,
        html: str,
        url: str | None,
        record_type: type[R],
    ) -> list[R]:
        """Extract every record of a type from a listing page.

        Args:
            html: Raw HTML of the page.
            url: Page URL.
            record_type: Record class to produce.

        Returns:
            Records in document order.

        Raises:
            NoItemsFoundError: Nothing could be extracted.
        """
        document = parse_document(html)
        title = document.title.get_text(strip=True) if document.title else ""
        container = find_container(document)
        log = self._log.bind(record_type=record_type.__name__, url=url)

        for selector in item_selectors(record_type):
            sections = container.select(selector)
            if not sections:
                continue

            log.debug("collection_sections_found", selector=selector, count=len(sections))
            items: list[R] = []
            for section in sections:
                fragment = wrap_fragment(str(section), title)
                try:
                    result = await self._parser.parse_with_fallback(fragment, record_type, url)
                except ExtractionError as exc:
                    log.warning(
                        "collection_section_failed",
                        selector=selector,
                        error=exc.message,
                        error_type=type(exc).__name__,
                    )
                    continue
                items.append(result.unwrap())

            if items:
                log.info("collection_extracted", selector=selector, items=len(items))
                return items

        log.info("collection_whole_document_attempt")
        try:
            result = await self._parser.parse_with_fallback(html, record_type, url)
        except ExtractionError as exc:
            msg = f"No {record_type.__name__} items found"
            raise NoItemsFoundError(msg, url=url) from exc

        log.info(
            "collection_extracted",
            selector=None,
            items=1,
            source=(result.source or ExtractionSource.STRUCTURED_PARSING).value,
        )
        return [result.unwrap()]
