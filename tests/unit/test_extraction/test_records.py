"""Unit tests for record types and the completeness validator."""

import pytest
from pydantic import ValidationError

from src.extraction.records import (
    Article,
    Event,
    FieldDescriptor,
    NewsStory,
    Person,
    Quote,
)
from src.extraction.validator import CompletenessValidator, is_empty


class TestRequiredFields:
    """Tests for per-type required field declarations."""

    @pytest.mark.parametrize(
        ("record_type", "expected"),
        [
            (Article, [FieldDescriptor("text_content", "main content")]),
            (NewsStory, [FieldDescriptor("content", "main content")]),
            (Person, [FieldDescriptor("name", "name"), FieldDescriptor("details", "details")]),
            (Quote, [FieldDescriptor("text", "quote text")]),
            (Event, [FieldDescriptor("title", "title")]),
        ],
    )
    def test_required_fields(self, record_type, expected) -> None:
        """Test each type's required fields and hints."""
        assert record_type.required_fields() == expected

    def test_fallback_construction_support(self) -> None:
        """Test which types can be rebuilt from fallback output."""
        assert Article.supports_fallback_construction() is True
        assert NewsStory.supports_fallback_construction() is True
        assert Event.supports_fallback_construction() is True
        assert Person.supports_fallback_construction() is False
        assert Quote.supports_fallback_construction() is False


class TestFromFallback:
    """Tests for minimal record construction."""

    def test_article(self) -> None:
        """Test Article is built from title and body."""
        article = Article.from_fallback("Title", "Body", "https://example.com/a")

        assert article.title == "Title"
        assert article.text_content == "Body"
        assert article.url == "https://example.com/a"

    def test_news_story(self) -> None:
        """Test NewsStory maps title to headline."""
        story = NewsStory.from_fallback("Headline", "Story")

        assert story.headline == "Headline"
        assert story.content == "Story"

    def test_event(self) -> None:
        """Test Event maps content to description."""
        event = Event.from_fallback("Town hall", "Discussion of parks")

        assert event.title == "Town hall"
        assert event.description == "Discussion of parks"

    def test_unsupported_type_raises(self) -> None:
        """Test types without a construction rule."""
        with pytest.raises(NotImplementedError):
            Person.from_fallback("Jane", "Mayor")


class TestWithFieldPatched:
    """Tests for single-field patching."""

    def test_returns_patched_copy(self) -> None:
        """Test that patching leaves the original untouched."""
        person = Person(name="Jane Doe")

        patched = person.with_field_patched("details", "Mayor")

        assert patched.details == "Mayor"
        assert patched.name == "Jane Doe"
        assert person.details == ""

    def test_unknown_field(self) -> None:
        """Test that unknown fields are rejected."""
        with pytest.raises(ValueError, match="no field"):
            Quote(text="x").with_field_patched("speaker_age", "40")

    def test_records_are_frozen(self) -> None:
        """Test that records cannot be mutated in place."""
        article = Article(title="a")

        with pytest.raises(ValidationError):
            article.title = "b"  # type: ignore[misc]


class TestIsEmpty:
    """Tests for is_empty."""

    @pytest.mark.parametrize("value", [None, "", "   \n\t", [], {}, ()])
    def test_empty_values(self, value: object) -> None:
        """Test values that count as empty."""
        assert is_empty(value) is True

    @pytest.mark.parametrize("value", ["x", ["a"], 0, False])
    def test_non_empty_values(self, value: object) -> None:
        """Test values that count as present."""
        assert is_empty(value) is False


class TestCompletenessValidator:
    """Tests for CompletenessValidator."""

    def setup_method(self) -> None:
        """Create a validator."""
        self.validator = CompletenessValidator()

    def test_complete_article(self) -> None:
        """Test an article with content."""
        article = Article(title="T", text_content="Body")

        assert self.validator.validate(article) == []
        assert self.validator.is_complete(article) is True

    def test_whitespace_content_is_missing(self) -> None:
        """Test that whitespace-only content is missing."""
        article = Article(title="T", text_content="   ")

        assert self.validator.validate(article) == ["text_content"]

    def test_missing_fields_in_declared_order(self) -> None:
        """Test that missing fields keep the declared order."""
        assert self.validator.validate(Person()) == ["name", "details"]

    def test_missing_descriptors_carry_hints(self) -> None:
        """Test that descriptors carry the fallback hint."""
        missing = self.validator.missing_fields(Quote())

        assert missing == [FieldDescriptor("text", "quote text")]
