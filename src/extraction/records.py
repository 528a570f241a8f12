"""Typed records produced by structured and fallback extraction.

Each record type describes which of its fields must be non-empty for
the record to count as complete, how to patch a single field, and
whether it can be rebuilt from just a title and a body.
"""

from datetime import datetime
from typing import ClassVar, NamedTuple, Self

from pydantic import BaseModel, ConfigDict, Field


class FieldDescriptor(NamedTuple):
    """A required record field.

    Attributes:
        name: Attribute name on the record.
        hint: Description handed to the fallback extractor.
    """

    name: str
    hint: str


class StructuredRecord(BaseModel):
    """Base class for extractable records.

    Subclasses set ``REQUIRED_FIELDS`` and, when they can be rebuilt
    from fallback output, ``FALLBACK_CONSTRUCTIBLE`` plus
    :meth:`from_fallback`. ``ITEM_SELECTORS`` lists selectors that
    isolate one record on a listing page.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    REQUIRED_FIELDS: ClassVar[tuple[FieldDescriptor, ...]] = ()
    FALLBACK_CONSTRUCTIBLE: ClassVar[bool] = False
    ITEM_SELECTORS: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def required_fields(cls) -> list[FieldDescriptor]:
        """Return the fields that must be non-empty."""
        return list(cls.REQUIRED_FIELDS)

    @classmethod
    def supports_fallback_construction(cls) -> bool:
        """Whether :meth:`from_fallback` can build this type."""
        return cls.FALLBACK_CONSTRUCTIBLE

    @classmethod
    def from_fallback(cls, title: str, content: str, url: str | None = None) -> Self:
        """Build a minimal record from a fallback title and body.

        Raises:
            NotImplementedError: If the type has no construction rule.
        """
        msg = f"{cls.__name__} cannot be built from fallback output"
        raise NotImplementedError(msg)

    def with_field_patched(self, name: str, value: str) -> Self:
        """Return a copy with one field replaced.

        Raises:
            ValueError: If the record has no such field.
        """
        if name not in type(self).model_fields:
            msg = f"{type(self).__name__} has no field '{name}'"
            raise ValueError(msg)
        return self.model_copy(update={name: value})


class Article(StructuredRecord):
    """A web article."""

    REQUIRED_FIELDS: ClassVar[tuple[FieldDescriptor, ...]] = (
        FieldDescriptor("text_content", "main content"),
    )
    FALLBACK_CONSTRUCTIBLE: ClassVar[bool] = True
    ITEM_SELECTORS: ClassVar[tuple[str, ...]] = (
        "[itemtype*='schema.org/Article']",
        "[itemtype*='schema.org/NewsArticle']",
        ".article-card",
        ".post",
        ".story",
    )

    title: str = ""
    url: str | None = None
    text_content: str | None = None
    author: str | None = None
    category: str | None = None
    image_url: str | None = None
    published_at: datetime | None = None

    @classmethod
    def from_fallback(cls, title: str, content: str, url: str | None = None) -> Self:
        return cls(title=title, text_content=content, url=url)


class NewsStory(StructuredRecord):
    """A news story with headline and body."""

    REQUIRED_FIELDS: ClassVar[tuple[FieldDescriptor, ...]] = (
        FieldDescriptor("content", "main content"),
    )
    FALLBACK_CONSTRUCTIBLE: ClassVar[bool] = True
    ITEM_SELECTORS: ClassVar[tuple[str, ...]] = (
        "[itemtype*='schema.org/NewsArticle']",
        ".news-item",
        ".story",
        ".headline-item",
    )

    headline: str = ""
    url: str | None = None
    content: str | None = None
    author: str | None = None
    categories: list[str] = Field(default_factory=list)
    image_url: str | None = None
    published_at: datetime | None = None

    @classmethod
    def from_fallback(cls, title: str, content: str, url: str | None = None) -> Self:
        return cls(headline=title, content=content, url=url)


class Person(StructuredRecord):
    """A person profile, e.g. an entry in a staff or council directory."""

    REQUIRED_FIELDS: ClassVar[tuple[FieldDescriptor, ...]] = (
        FieldDescriptor("name", "name"),
        FieldDescriptor("details", "details"),
    )
    ITEM_SELECTORS: ClassVar[tuple[str, ...]] = (
        "[itemtype*='schema.org/Person']",
        ".person",
        ".member",
        ".official",
        ".staff-member",
        ".directory-item",
        ".council-member",
        ".elected-official",
        ".department-head",
        ".profile-card",
        ".member-card",
        ".official-card",
        ".staff-card",
        ".bio-card",
        "div[class*='person']",
        "div[class*='member']",
        "div[class*='official']",
    )

    name: str = ""
    details: str = ""
    biography: str | None = None
    occupation: str | None = None
    email: str | None = None
    phone: str | None = None
    image_url: str | None = None
    url: str | None = None


class Quote(StructuredRecord):
    """A quotation attributed to a speaker."""

    REQUIRED_FIELDS: ClassVar[tuple[FieldDescriptor, ...]] = (
        FieldDescriptor("text", "quote text"),
    )
    ITEM_SELECTORS: ClassVar[tuple[str, ...]] = (
        "[itemtype*='schema.org/Quotation']",
        ".quote",
        "blockquote",
    )

    text: str = ""
    speaker: str | None = None
    speaker_title: str | None = None
    source: str | None = None
    context: str | None = None
    date: datetime | None = None


class Event(StructuredRecord):
    """A calendar event."""

    REQUIRED_FIELDS: ClassVar[tuple[FieldDescriptor, ...]] = (
        FieldDescriptor("title", "title"),
    )
    FALLBACK_CONSTRUCTIBLE: ClassVar[bool] = True
    ITEM_SELECTORS: ClassVar[tuple[str, ...]] = (
        "[itemtype*='schema.org/Event']",
        ".vevent",
        ".event",
        ".event-item",
        ".calendar-item",
    )

    title: str = ""
    description: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    location: str | None = None
    organizer: str | None = None
    url: str | None = None

    @classmethod
    def from_fallback(cls, title: str, content: str, url: str | None = None) -> Self:
        return cls(title=title, description=content, url=url)
