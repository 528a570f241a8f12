"""Publication date extraction with precedence-based strategies."""

import json
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import structlog
from bs4 import BeautifulSoup, Tag
from dateutil import parser as date_parser


logger = structlog.get_logger()


class DateExtractionMethod(str, Enum):
    """Method used to extract a date, ordered by precedence.

    - ITEMPROP: element with itemprop (datePublished, startDate, ...)
    - TIME_ELEMENT: <time datetime="...">
    - META_TAG: <meta property="article:published_time">
    - JSON_LD: JSON-LD datePublished / startDate
    - TEXT_PATTERN: regex match in visible text
    - NONE: no date found
    """

    ITEMPROP = "itemprop"
    TIME_ELEMENT = "time_element"
    META_TAG = "meta_tag"
    JSON_LD = "json_ld"
    TEXT_PATTERN = "text_pattern"
    NONE = "none"


@dataclass(frozen=True)
class DateExtractionResult:
    """Result of date extraction.

    Attributes:
        value: Extracted timezone-aware datetime, or None.
        method: Method that produced the value.
        raw_date: The raw string that was parsed.
    """

    value: datetime | None
    method: DateExtractionMethod
    raw_date: str | None = None


PUBLISHED_KEYS: tuple[str, ...] = ("datePublished", "dateCreated", "dateModified")
EVENT_START_KEYS: tuple[str, ...] = ("startDate",)
EVENT_END_KEYS: tuple[str, ...] = ("endDate",)

_META_PROPERTIES: dict[str, tuple[str, ...]] = {
    "datePublished": ("article:published_time", "og:article:published_time"),
    "dateModified": ("article:modified_time",),
}

_TEXT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern)
    for pattern in (
        r"\d{4}-\d{2}-\d{2}",
        r"\d{4}/\d{2}/\d{2}",
        r"\d{2}/\d{2}/\d{4}",
        r"[A-Z][a-z]{2,8}\.?\s+\d{1,2},?\s+\d{4}",
        r"\d{1,2}\s+[A-Z][a-z]{2,8}\s+\d{4}",
    )
)

_NONE = DateExtractionResult(value=None, method=DateExtractionMethod.NONE)


def parse_date_string(date_str: str) -> datetime | None:
    """Parse a date string into a UTC datetime, or None if unparseable."""
    try:
        dt = date_parser.parse(date_str)
    except (ValueError, TypeError, OverflowError):
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


class DateExtractor:
    """Extracts dates from documents.

    Strategy order (highest to lowest precedence):
    1. itemprop element (content/datetime attribute or text)
    2. <time datetime> element
    3. <meta property="article:published_time"> tags
    4. JSON-LD keys
    5. Regex text patterns (only when ``allow_text`` is set)
    """

    def __init__(self, keys: tuple[str, ...] = PUBLISHED_KEYS) -> None:
        """Initialize the extractor.

        Args:
            keys: schema.org property names to look for, in order.
        """
        self._keys = keys
        self._log = logger.bind(component="extraction", subcomponent="dates")

    def extract(
        self,
        document: BeautifulSoup | Tag,
        allow_text: bool = False,
    ) -> DateExtractionResult:
        """Extract the first date found by the strategy chain.

        Args:
            document: Document or element to search.
            allow_text: Whether to fall back to regex matches in text.

        Returns:
            DateExtractionResult with the value and the winning method.
        """
        strategies = (
            self._try_itemprop,
            self._try_time_element,
            self._try_meta_tags,
            self._try_json_ld,
        )
        for strategy in strategies:
            result = strategy(document)
            if result.value is not None:
                self._log.debug(
                    "date_extracted", method=result.method.value, raw=result.raw_date
                )
                return result

        if allow_text:
            return self._try_text_patterns(document)
        return _NONE

    def _try_itemprop(self, scope: BeautifulSoup | Tag) -> DateExtractionResult:
        for key in self._keys:
            for element in scope.select(f"[itemprop='{key}']"):
                raw = (
                    element.get("content")
                    or element.get("datetime")
                    or element.get_text(strip=True)
                )
                if not raw or not isinstance(raw, str):
                    continue
                parsed = parse_date_string(raw)
                if parsed:
                    return DateExtractionResult(parsed, DateExtractionMethod.ITEMPROP, raw)
        return _NONE

    def _try_time_element(self, scope: BeautifulSoup | Tag) -> DateExtractionResult:
        for element in scope.select("time[datetime]"):
            raw = element.get("datetime")
            if not raw or not isinstance(raw, str):
                continue
            parsed = parse_date_string(raw)
            if parsed:
                return DateExtractionResult(parsed, DateExtractionMethod.TIME_ELEMENT, raw)
        return _NONE

    def _try_meta_tags(self, scope: BeautifulSoup | Tag) -> DateExtractionResult:
        for key in self._keys:
            for prop in _META_PROPERTIES.get(key, ()):
                meta = scope.find("meta", property=prop)
                if not isinstance(meta, Tag):
                    continue
                raw = meta.get("content")
                if not raw or not isinstance(raw, str):
                    continue
                parsed = parse_date_string(raw)
                if parsed:
                    return DateExtractionResult(parsed, DateExtractionMethod.META_TAG, raw)
        return _NONE

    def _try_json_ld(self, scope: BeautifulSoup | Tag) -> DateExtractionResult:
        for script in scope.find_all("script", type="application/ld+json"):
            content = script.string
            if not content:
                continue
            try:
                data = json.loads(content)
            except (json.JSONDecodeError, TypeError):
                continue

            objects = data if isinstance(data, list) else [data]
            for obj in objects:
                if not isinstance(obj, dict):
                    continue
                for key in self._keys:
                    raw = obj.get(key)
                    if not isinstance(raw, str):
                        continue
                    parsed = parse_date_string(raw)
                    if parsed:
                        return DateExtractionResult(parsed, DateExtractionMethod.JSON_LD, raw)
        return _NONE

    def _try_text_patterns(self, scope: BeautifulSoup | Tag) -> DateExtractionResult:
        text = scope.get_text(separator=" ", strip=True)
        for pattern in _TEXT_PATTERNS:
            for match in pattern.findall(text):
                parsed = parse_date_string(match)
                if parsed:
                    return DateExtractionResult(parsed, DateExtractionMethod.TEXT_PATTERN, match)
        return _NONE
