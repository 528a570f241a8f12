"""Selector sets, selector discovery and document helpers."""

from urllib.parse import urlparse

import soupsieve
from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ConfigDict, Field, field_validator


# Candidate selectors per field, most specific first.
TITLE_CANDIDATES: tuple[str, ...] = (
    "[itemprop='headline']",
    ".article-title",
    ".post-title",
    ".entry-title",
    "h1",
)
CONTENT_CANDIDATES: tuple[str, ...] = (
    "[itemprop='articleBody']",
    ".article-content",
    ".article-body",
    ".post-content",
    ".entry-content",
    "article",
)
AUTHOR_CANDIDATES: tuple[str, ...] = (
    "[itemprop='author']",
    "[rel='author']",
    ".byline",
    ".author",
)
DATE_CANDIDATES: tuple[str, ...] = (
    "[itemprop='datePublished']",
    "time[datetime]",
    ".published",
    ".post-date",
    ".date",
)
IMAGE_CANDIDATES: tuple[str, ...] = (
    "[itemprop='image']",
    ".featured-image img",
    "figure img",
)
CATEGORY_CANDIDATES: tuple[str, ...] = (
    "[itemprop='articleSection']",
    "[rel='category tag']",
    ".category",
)

_IMAGE_ATTRIBUTES = ("src", "content", "data-src", "href")


class SelectorSet(BaseModel):
    """CSS selectors describing one content shape on a site.

    Instances are immutable; a re-learned set replaces the old one
    wholesale.

    Attributes:
        title: Selector for the title/headline.
        content: Selector for the main body.
        author: Selector for the author byline.
        date: Selector for the publication date.
        image: Selector for the lead image.
        category: Selector for the section/category.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = Field(default="h1", min_length=1)
    content: str = Field(default="article", min_length=1)
    author: str | None = None
    date: str | None = None
    image: str | None = None
    category: str | None = None

    @field_validator("title", "content", "author", "date", "image", "category")
    @classmethod
    def validate_selector_syntax(cls, v: str | None) -> str | None:
        """Reject selectors soupsieve cannot compile."""
        if v is None:
            return v
        try:
            soupsieve.compile(v)
        except soupsieve.SelectorSyntaxError as exc:
            msg = f"Invalid CSS selector '{v}': {exc}"
            raise ValueError(msg) from exc
        return v

    def to_dict(self) -> dict[str, str]:
        """Serialize to a flat mapping, omitting unset optional selectors."""
        return {key: value for key, value in self.model_dump().items() if value}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "SelectorSet":
        """Build a selector set from a flat mapping."""
        return cls.model_validate(data)


def parse_document(html: str) -> BeautifulSoup:
    """Parse an HTML string into a document."""
    return BeautifulSoup(html, "lxml")


def domain_of(url: str | None) -> str:
    """Return the lower-cased host of a URL, or an empty string."""
    if not url:
        return ""
    return (urlparse(url).hostname or "").lower()


def has_match(document: BeautifulSoup | Tag, selector: str) -> bool:
    """Check whether a selector matches at least one element."""
    return document.select_one(selector) is not None


def element_text(element: Tag | None) -> str:
    """Return the whitespace-normalized text of an element."""
    if element is None:
        return ""
    return " ".join(element.get_text(separator=" ", strip=True).split())


def first_text(document: BeautifulSoup | Tag, selectors: list[str] | tuple[str, ...]) -> str:
    """Return the first non-empty text among the given selectors."""
    for selector in selectors:
        for element in document.select(selector):
            text = element_text(element)
            if text:
                return text
    return ""


def image_url(element: Tag | None) -> str:
    """Return the URL carried by an image-like element."""
    if element is None:
        return ""
    for attribute in _IMAGE_ATTRIBUTES:
        value = element.get(attribute)
        if isinstance(value, str) and value.strip():
            return value.strip()
    nested = element.find("img")
    if isinstance(nested, Tag) and nested is not element:
        return image_url(nested)
    return ""


def _first_matching(document: BeautifulSoup, candidates: tuple[str, ...]) -> str | None:
    for selector in candidates:
        if has_match(document, selector):
            return selector
    return None


def discover_selectors(document: BeautifulSoup) -> SelectorSet:
    """Probe candidate selectors and build the best matching SelectorSet.

    For every field the first candidate that matches any element wins.
    Fields with no matching candidate keep their defaults. Never raises.

    Args:
        document: Parsed HTML document.

    Returns:
        A SelectorSet for the document's structure.
    """
    values: dict[str, str] = {}
    candidates = {
        "title": TITLE_CANDIDATES,
        "content": CONTENT_CANDIDATES,
        "author": AUTHOR_CANDIDATES,
        "date": DATE_CANDIDATES,
        "image": IMAGE_CANDIDATES,
        "category": CATEGORY_CANDIDATES,
    }
    for field_name, field_candidates in candidates.items():
        selector = _first_matching(document, field_candidates)
        if selector is not None:
            values[field_name] = selector
    return SelectorSet(**values)


def apply_selectors(document: BeautifulSoup, selectors: SelectorSet) -> dict[str, str]:
    """Extract the first match of each selector in a set.

    Text is taken for every field except ``image``, which yields the
    element's URL. Fields without a non-empty match are omitted.

    Args:
        document: Parsed HTML document.
        selectors: Selectors to apply.

    Returns:
        Mapping of field name to extracted value.
    """
    result: dict[str, str] = {}
    for field_name, selector in selectors.model_dump().items():
        if not selector:
            continue
        element = document.select_one(selector)
        value = image_url(element) if field_name == "image" else element_text(element)
        if value:
            result[field_name] = value
    return result


def wrap_fragment(fragment_html: str, title: str = "") -> str:
    """Wrap an HTML fragment in a minimal standalone document."""
    safe_title = title.replace("<", "&lt;").replace(">", "&gt;")
    return (
        "<!DOCTYPE html>\n<html>\n"
        f"<head><title>{safe_title}</title></head>\n"
        f"<body>\n{fragment_html}\n</body>\n</html>"
    )
