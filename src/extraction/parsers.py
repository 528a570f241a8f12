"""Structured parsers, one per record type.

Parsers prefer schema.org ``itemprop`` markup, then the active
SelectorSet and common class conventions, then bare structural tags.
They raise :class:`InvalidStructureError` only when the document has no
plausible anchor for the record type; empty values are left for the
completeness check.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import ClassVar, Generic, TypeVar

from bs4 import BeautifulSoup, Tag

from src.extraction.dates import (
    EVENT_END_KEYS,
    EVENT_START_KEYS,
    DateExtractor,
    parse_date_string,
)
from src.extraction.errors import InvalidStructureError
from src.extraction.records import (
    Article,
    Event,
    NewsStory,
    Person,
    Quote,
    StructuredRecord,
)
from src.extraction.selectors import (
    AUTHOR_CANDIDATES,
    CATEGORY_CANDIDATES,
    CONTENT_CANDIDATES,
    IMAGE_CANDIDATES,
    TITLE_CANDIDATES,
    SelectorSet,
    element_text,
    first_text,
    image_url,
)


R = TypeVar("R", bound=StructuredRecord)

_HEADINGS = ("h1", "h2", "h3", "h4")


def _ordered(*groups: tuple[str, ...] | list[str] | str | None) -> list[str]:
    """Flatten selector groups, dropping blanks and duplicates."""
    result: list[str] = []
    for group in groups:
        if group is None:
            continue
        for selector in (group,) if isinstance(group, str) else group:
            if selector and selector not in result:
                result.append(selector)
    return result


def _first_element(scope: BeautifulSoup | Tag, selectors: list[str]) -> Tag | None:
    for selector in selectors:
        element = scope.select_one(selector)
        if element is not None:
            return element
    return None


def _meta_content(document: BeautifulSoup | Tag, **attrs: str) -> str:
    meta = document.find("meta", attrs=attrs)
    if isinstance(meta, Tag):
        content = meta.get("content")
        if isinstance(content, str):
            return content.strip()
    return ""


def _canonical_url(document: BeautifulSoup | Tag) -> str | None:
    link = document.find("link", rel="canonical")
    if isinstance(link, Tag):
        href = link.get("href")
        if isinstance(href, str) and href.strip():
            return href.strip()
    return _meta_content(document, property="og:url") or None


def _optional(value: str) -> str | None:
    return value or None


class StructuredParser(ABC, Generic[R]):
    """Parses a document into one record type."""

    record_type: ClassVar[type[StructuredRecord]]

    @abstractmethod
    def parse(
        self,
        document: BeautifulSoup,
        selectors: SelectorSet,
        url: str | None = None,
    ) -> R:
        """Parse a document into a record.

        Args:
            document: Parsed HTML document.
            selectors: Selectors active for the document's domain.
            url: Source URL, if known.

        Returns:
            The parsed record. Required fields may be empty.

        Raises:
            InvalidStructureError: If no structural anchor exists.
        """

    def _structure_error(self, reason: str, url: str | None) -> InvalidStructureError:
        name = self.record_type.__name__
        return InvalidStructureError(
            f"No {name} structure found: {reason}", record_type=name, url=url
        )


class ArticleParser(StructuredParser[Article]):
    """Parser for :class:`Article`."""

    record_type = Article

    def __init__(self) -> None:
        self._dates = DateExtractor()

    def parse(
        self,
        document: BeautifulSoup,
        selectors: SelectorSet,
        url: str | None = None,
    ) -> Article:
        title_selectors = _ordered("[itemprop='headline']", selectors.title, TITLE_CANDIDATES)
        content_selectors = _ordered(
            "[itemprop='articleBody']", selectors.content, CONTENT_CANDIDATES
        )
        if _first_element(document, title_selectors + content_selectors) is None:
            raise self._structure_error("no headline or body element", url)

        return Article(
            title=first_text(document, title_selectors)
            or _meta_content(document, property="og:title"),
            url=url or _canonical_url(document),
            text_content=_optional(first_text(document, content_selectors)),
            author=_optional(extract_author(document, selectors)),
            category=_optional(
                first_text(document, _ordered(selectors.category, CATEGORY_CANDIDATES))
                or _meta_content(document, property="article:section")
            ),
            image_url=_optional(extract_image(document, selectors)),
            published_at=extract_published(document, selectors, self._dates),
        )


class NewsStoryParser(StructuredParser[NewsStory]):
    """Parser for :class:`NewsStory`."""

    record_type = NewsStory

    def __init__(self) -> None:
        self._dates = DateExtractor()

    def parse(
        self,
        document: BeautifulSoup,
        selectors: SelectorSet,
        url: str | None = None,
    ) -> NewsStory:
        headline_selectors = _ordered(
            "[itemprop='headline']", selectors.title, TITLE_CANDIDATES
        )
        content_selectors = _ordered(
            "[itemprop='articleBody']", selectors.content, CONTENT_CANDIDATES
        )
        if _first_element(document, headline_selectors + content_selectors) is None:
            raise self._structure_error("no headline or body element", url)

        categories: list[str] = []
        for selector in _ordered(selectors.category, CATEGORY_CANDIDATES):
            for element in document.select(selector):
                text = element_text(element)
                if text and text not in categories:
                    categories.append(text)

        return NewsStory(
            headline=first_text(document, headline_selectors)
            or _meta_content(document, property="og:title"),
            url=url or _canonical_url(document),
            content=_optional(first_text(document, content_selectors)),
            author=_optional(extract_author(document, selectors)),
            categories=categories,
            image_url=_optional(extract_image(document, selectors)),
            published_at=extract_published(document, selectors, self._dates),
        )


class PersonParser(StructuredParser[Person]):
    """Parser for :class:`Person` profiles."""

    record_type = Person

    CONTAINERS: ClassVar[tuple[str, ...]] = (
        "[itemtype*='schema.org/Person']",
        ".person",
        ".profile",
        ".member",
        ".staff-member",
        ".official",
        ".bio-card",
    )
    NAME_SELECTORS: ClassVar[tuple[str, ...]] = (
        "[itemprop='name']",
        ".name",
        ".person-name",
        ".member-name",
        ".official-name",
    )
    DETAIL_SELECTORS: ClassVar[tuple[str, ...]] = (
        "[itemprop='jobTitle']",
        ".job-title",
        ".position",
        ".role",
        ".title",
        ".details",
    )

    def parse(
        self,
        document: BeautifulSoup,
        selectors: SelectorSet,
        url: str | None = None,
    ) -> Person:
        container = _first_element(document, list(self.CONTAINERS))
        scope: BeautifulSoup | Tag = container if container is not None else document
        if container is None and _first_element(
            document, _ordered(self.NAME_SELECTORS, selectors.title, _HEADINGS)
        ) is None:
            raise self._structure_error("no profile container or heading", url)

        email_link = scope.select_one("a[href^='mailto:']")
        email = ""
        if email_link is not None:
            email = str(email_link.get("href", "")).removeprefix("mailto:").split("?")[0]

        phone = first_text(scope, ["[itemprop='telephone']", ".phone", "a[href^='tel:']"])

        return Person(
            name=first_text(scope, _ordered(self.NAME_SELECTORS, selectors.title, _HEADINGS)),
            details=first_text(
                scope, _ordered(self.DETAIL_SELECTORS, selectors.content, "p")
            ),
            biography=_optional(
                first_text(scope, ["[itemprop='description']", ".bio", ".biography"])
            ),
            occupation=_optional(first_text(scope, ["[itemprop='worksFor']", ".department"])),
            email=_optional(email.strip()),
            phone=_optional(phone),
            image_url=_optional(
                image_url(_first_element(scope, ["[itemprop='image']", "img"]))
            ),
            url=url,
        )


class QuoteParser(StructuredParser[Quote]):
    """Parser for :class:`Quote`."""

    record_type = Quote

    TEXT_SELECTORS: ClassVar[tuple[str, ...]] = (
        "[itemprop='text']",
        ".quote-text",
        ".quote-content",
        "blockquote",
        "q",
    )
    SPEAKER_SELECTORS: ClassVar[tuple[str, ...]] = (
        "[itemprop='speaker'] [itemprop='name']",
        "[itemprop='author'] [itemprop='name']",
        "[itemprop='speaker']",
        ".quote-speaker",
        ".quote-author",
        ".speaker-info",
        "blockquote cite",
        "blockquote footer",
    )
    DATE_TEXT_SELECTORS: ClassVar[tuple[str, ...]] = (
        ".quote-date",
        ".quote-source",
        "blockquote footer",
        "blockquote cite",
    )

    def __init__(self) -> None:
        self._dates = DateExtractor(("dateCreated", "datePublished"))

    def parse(
        self,
        document: BeautifulSoup,
        selectors: SelectorSet,
        url: str | None = None,
    ) -> Quote:
        text_element = _first_element(document, list(self.TEXT_SELECTORS))
        if text_element is None:
            raise self._structure_error("no quotation element", url)

        text = first_text(document, self.TEXT_SELECTORS)
        speaker = first_text(document, _ordered(self.SPEAKER_SELECTORS, selectors.author))
        # cite/footer text is repeated inside blockquote text
        if speaker and text.endswith(speaker):
            text = text[: -len(speaker)].rstrip(" -—–")

        return Quote(
            text=text.strip().strip("\"“”"),
            speaker=_optional(speaker.lstrip("-—– ")),
            speaker_title=_optional(
                first_text(
                    document,
                    ["[itemprop='speaker'] [itemprop='jobTitle']", ".speaker-title"],
                )
            ),
            source=_optional(first_text(document, ["[itemprop='isPartOf']", ".quote-source"])),
            context=_optional(first_text(document, [".quote-context", "[itemprop='about']"])),
            date=self._dates.extract(document).value or self._attribution_date(document),
        )

    def _attribution_date(self, document: BeautifulSoup) -> datetime | None:
        """Find a date written out in the attribution line."""
        for element in document.select(", ".join(self.DATE_TEXT_SELECTORS)):
            value = self._dates.extract(element, allow_text=True).value
            if value is not None:
                return value
        return None


class EventParser(StructuredParser[Event]):
    """Parser for :class:`Event`."""

    record_type = Event

    CONTAINERS: ClassVar[tuple[str, ...]] = (
        "[itemtype*='schema.org/Event']",
        ".vevent",
        ".event",
        ".event-item",
        ".calendar-item",
    )

    def __init__(self) -> None:
        self._start_dates = DateExtractor(EVENT_START_KEYS)
        self._end_dates = DateExtractor(EVENT_END_KEYS)

    def parse(
        self,
        document: BeautifulSoup,
        selectors: SelectorSet,
        url: str | None = None,
    ) -> Event:
        container = _first_element(document, list(self.CONTAINERS))
        title_selectors = _ordered(
            "[itemprop='name']", ".summary", ".event-title", selectors.title, _HEADINGS
        )
        if container is None and _first_element(document, title_selectors) is None:
            raise self._structure_error("no event container or heading", url)
        scope: BeautifulSoup | Tag = container if container is not None else document

        start = self._start_dates.extract(scope).value or _text_date(scope, ".dtstart")
        end = self._end_dates.extract(scope).value or _text_date(scope, ".dtend")
        if start is None and container is not None:
            # calendar cards often print the date as plain text
            start = self._start_dates.extract(container, allow_text=True).value

        return Event(
            title=first_text(scope, title_selectors),
            description=_optional(
                first_text(
                    scope,
                    _ordered(
                        "[itemprop='description']",
                        ".description",
                        ".event-description",
                        selectors.content,
                    ),
                )
            ),
            start=start,
            end=end,
            location=_optional(
                first_text(
                    scope,
                    [
                        "[itemprop='location'] [itemprop='name']",
                        "[itemprop='location']",
                        ".location",
                        ".event-location",
                    ],
                )
            ),
            organizer=_optional(first_text(scope, ["[itemprop='organizer']", ".organizer"])),
            url=url,
        )


def _text_date(scope: BeautifulSoup | Tag, selector: str) -> datetime | None:
    element = scope.select_one(selector)
    if element is None:
        return None
    raw = element.get("title") or element_text(element)
    return parse_date_string(raw) if isinstance(raw, str) and raw else None


def extract_author(document: BeautifulSoup | Tag, selectors: SelectorSet) -> str:
    """Extract an author byline."""
    author = first_text(
        document,
        _ordered(
            "[itemprop='author'] [itemprop='name']", selectors.author, AUTHOR_CANDIDATES
        ),
    )
    if author:
        return author.removeprefix("By ").removeprefix("by ").strip()
    return _meta_content(document, name="author")


def extract_image(document: BeautifulSoup | Tag, selectors: SelectorSet) -> str:
    """Extract the lead image URL."""
    element = _first_element(document, _ordered(selectors.image, IMAGE_CANDIDATES))
    return image_url(element) or _meta_content(document, property="og:image")


def extract_published(
    document: BeautifulSoup | Tag,
    selectors: SelectorSet,
    dates: DateExtractor,
) -> datetime | None:
    """Extract a publication datetime, preferring the selector set's date."""
    if selectors.date:
        element = document.select_one(selectors.date)
        if element is not None:
            raw = element.get("datetime") or element.get("content") or element_text(element)
            if isinstance(raw, str) and raw:
                parsed = parse_date_string(raw)
                if parsed is not None:
                    return parsed
    return dates.extract(document).value


_PARSERS: dict[type[StructuredRecord], StructuredParser[StructuredRecord]] = {}


def register_parser(parser: StructuredParser[R]) -> None:
    """Register a parser for its record type, replacing any existing one."""
    _PARSERS[parser.record_type] = parser  # type: ignore[assignment]


def get_parser(record_type: type[R]) -> StructuredParser[R]:
    """Return the parser registered for a record type.

    Raises:
        LookupError: If no parser is registered for the type.
    """
    try:
        return _PARSERS[record_type]  # type: ignore[return-value]
    except KeyError:
        msg = f"No structured parser registered for {record_type.__name__}"
        raise LookupError(msg) from None


for _parser in (
    ArticleParser(),
    NewsStoryParser(),
    PersonParser(),
    QuoteParser(),
    EventParser(),
):
    register_parser(_parser)
