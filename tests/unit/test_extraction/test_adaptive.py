"""Unit tests for AdaptiveParser."""

import pytest

from src.extraction.adaptive import AdaptiveParser
from src.extraction.config import ExtractionConfig
from src.extraction.errors import (
    FallbackExtractionFailedError,
    InvalidStructureError,
    UnsupportedFallbackTypeError,
)
from src.extraction.metrics import ExtractionMetrics
from src.extraction.models import ExtractionSource
from src.extraction.records import Article, Event, Person, Quote
from src.extraction.selectors import SelectorSet
from tests.helpers.fakes import FakeFallback


COMPLETE_ARTICLE = "<h1>Test</h1><article>Body text</article>"
EMPTY_PERSON = "<h1></h1><article></article>"
NO_STRUCTURE = "<div><span>nothing useful</span></div>"
CUSTOM_MARKUP = "<div class='hl'>Custom</div><div class='txt'>Custom body</div>"


class TestStructuredPath:
    """Tests for pages the structured parser handles alone."""

    def setup_method(self) -> None:
        """Reset metrics singleton."""
        ExtractionMetrics.reset()

    @pytest.mark.asyncio
    async def test_complete_record_skips_fallback(self) -> None:
        """Test that a complete parse never calls the fallback."""
        fallback = FakeFallback()
        parser = AdaptiveParser(fallback=fallback)

        result = await parser.parse_with_fallback(COMPLETE_ARTICLE, Article)

        assert result.is_success is True
        assert result.source == ExtractionSource.STRUCTURED_PARSING
        assert result.warnings == ()
        article = result.unwrap()
        assert article.title == "Test"
        assert article.text_content == "Body text"
        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_works_without_fallback(self) -> None:
        """Test that complete parses need no fallback at all."""
        result = await AdaptiveParser().parse_with_fallback(COMPLETE_ARTICLE, Article)

        assert result.unwrap().title == "Test"

    @pytest.mark.asyncio
    async def test_records_metrics(self) -> None:
        """Test that successful parses are counted by source."""
        await AdaptiveParser().parse_with_fallback(COMPLETE_ARTICLE, Article)

        metrics = ExtractionMetrics.get_instance().to_dict()
        assert metrics["results_by_source"] == {"structured_parsing": 1}


class TestFieldPatching:
    """Tests for incomplete records repaired field by field."""

    def setup_method(self) -> None:
        """Reset metrics singleton."""
        ExtractionMetrics.reset()

    @pytest.mark.asyncio
    async def test_patches_each_missing_field(self) -> None:
        """Test one fallback call per missing required field."""
        fallback = FakeFallback(answers={"name": "Jane Doe", "details": "Mayor"})
        parser = AdaptiveParser(fallback=fallback)

        result = await parser.parse_with_fallback(EMPTY_PERSON, Person)

        assert fallback.calls == ["name", "details"]
        assert result.source == ExtractionSource.FALLBACK_EXTRACTION
        person = result.unwrap()
        assert person.name == "Jane Doe"
        assert person.details == "Mayor"
        assert result.warnings == ()

    @pytest.mark.asyncio
    async def test_partial_patch_keeps_warnings(self) -> None:
        """Test that one failing field does not abort the others."""
        fallback = FakeFallback(answers={"name": "Jane Doe"}, failing={"details"})
        parser = AdaptiveParser(fallback=fallback)

        result = await parser.parse_with_fallback(EMPTY_PERSON, Person)

        person = result.unwrap()
        assert result.source == ExtractionSource.FALLBACK_EXTRACTION
        assert person.name == "Jane Doe"
        assert person.details == ""
        assert [w.field_name for w in result.warnings] == ["details"]
        assert "RuntimeError" in result.warnings[0].reason

    @pytest.mark.asyncio
    async def test_all_patches_fail_returns_structured_record(self) -> None:
        """Test that a fully failing fallback still yields the record."""
        fallback = FakeFallback(failing={"name", "details"})
        parser = AdaptiveParser(fallback=fallback)

        result = await parser.parse_with_fallback(EMPTY_PERSON, Person)

        assert result.is_success is True
        assert result.source == ExtractionSource.STRUCTURED_PARSING
        assert result.unwrap() == Person()
        assert [w.field_hint for w in result.warnings] == ["name", "details"]

    @pytest.mark.asyncio
    async def test_empty_answer_is_not_a_patch(self) -> None:
        """Test that blank fallback output leaves the field empty."""
        fallback = FakeFallback(answers={"quote text": "   "})
        parser = AdaptiveParser(fallback=fallback)

        result = await parser.parse_with_fallback("<blockquote></blockquote>", Quote)

        assert result.source == ExtractionSource.STRUCTURED_PARSING
        assert result.unwrap().text == ""
        assert result.warnings[0].reason == "fallback returned no value"

    @pytest.mark.asyncio
    async def test_patched_value_is_stripped(self) -> None:
        """Test that fallback values are trimmed."""
        fallback = FakeFallback(answers={"main content": "  Recovered body \n"})
        parser = AdaptiveParser(fallback=fallback)

        result = await parser.parse_with_fallback("<h1>Headline only</h1>", Article)

        assert result.unwrap().text_content == "Recovered body"
        assert result.unwrap().title == "Headline only"

    @pytest.mark.asyncio
    async def test_fallback_disabled_accepts_incomplete(self) -> None:
        """Test that use_fallback=False returns the record untouched."""
        fallback = FakeFallback()
        parser = AdaptiveParser(fallback=fallback, config=ExtractionConfig(use_fallback=False))

        result = await parser.parse_with_fallback(EMPTY_PERSON, Person)

        assert fallback.calls == []
        assert result.source == ExtractionSource.STRUCTURED_PARSING
        assert result.unwrap() == Person()
        assert {w.reason for w in result.warnings} == {"fallback disabled"}

    @pytest.mark.asyncio
    async def test_counts_fallback_calls(self) -> None:
        """Test fallback call metrics per hint."""
        fallback = FakeFallback(failing={"details"})
        await AdaptiveParser(fallback=fallback).parse_with_fallback(EMPTY_PERSON, Person)

        metrics = ExtractionMetrics.get_instance().to_dict()
        assert metrics["fallback_calls_by_field"] == {"name": 1, "details": 1}
        assert metrics["fallback_failures_by_field"] == {"details": 1}


class TestReconstruction:
    """Tests for pages with no usable structure."""

    def setup_method(self) -> None:
        """Reset metrics singleton."""
        ExtractionMetrics.reset()

    @pytest.mark.asyncio
    async def test_rebuilds_article(self) -> None:
        """Test minimal construction from title and main content."""
        fallback = FakeFallback(answers={"title": "Recovered", "main content": "Text"})
        parser = AdaptiveParser(fallback=fallback)

        result = await parser.parse_with_fallback(
            NO_STRUCTURE, Article, "https://example.com/a"
        )

        assert fallback.calls == ["title", "main content"]
        assert result.source == ExtractionSource.FALLBACK_EXTRACTION
        article = result.unwrap()
        assert article.title == "Recovered"
        assert article.text_content == "Text"
        assert article.url == "https://example.com/a"

    @pytest.mark.asyncio
    async def test_rebuilds_event(self) -> None:
        """Test that events map content to description."""
        fallback = FakeFallback(answers={"title": "Town hall", "main content": "Parks"})

        result = await AdaptiveParser(fallback=fallback).parse_with_fallback(
            NO_STRUCTURE, Event
        )

        assert result.unwrap().title == "Town hall"
        assert result.unwrap().description == "Parks"

    @pytest.mark.asyncio
    async def test_unsupported_type_makes_no_calls(self) -> None:
        """Test that unsupported types fail before calling the fallback."""
        fallback = FakeFallback()
        parser = AdaptiveParser(fallback=fallback)

        with pytest.raises(UnsupportedFallbackTypeError) as exc_info:
            await parser.parse_with_fallback(NO_STRUCTURE, Person)

        assert exc_info.value.record_type == "Person"
        assert isinstance(exc_info.value.__cause__, InvalidStructureError)
        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_fallback_disabled_raises_structure_error(self) -> None:
        """Test that structural failures propagate without fallback."""
        parser = AdaptiveParser(config=ExtractionConfig(use_fallback=False))

        with pytest.raises(InvalidStructureError):
            await parser.parse_with_fallback(NO_STRUCTURE, Article)

    @pytest.mark.asyncio
    async def test_fallback_error_wrapped(self) -> None:
        """Test that fallback errors during reconstruction are typed."""
        fallback = FakeFallback(failing={"main content"})
        parser = AdaptiveParser(fallback=fallback)

        with pytest.raises(FallbackExtractionFailedError) as exc_info:
            await parser.parse_with_fallback(NO_STRUCTURE, Article)

        assert exc_info.value.field_hint == "main content"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_structural_failure_counted(self) -> None:
        """Test structural failure metrics."""
        fallback = FakeFallback()
        await AdaptiveParser(fallback=fallback).parse_with_fallback(NO_STRUCTURE, Article)

        metrics = ExtractionMetrics.get_instance().to_dict()
        assert metrics["structural_failures_by_type"] == {"Article": 1}
        assert metrics["results_by_source"] == {"fallback_extraction": 1}


class TestSelectorLearning:
    """Tests for per-domain selector reuse."""

    def setup_method(self) -> None:
        """Reset metrics singleton."""
        ExtractionMetrics.reset()

    @pytest.mark.asyncio
    async def test_learned_selectors_apply_to_domain(self) -> None:
        """Test that learned selectors are used for the same host."""
        parser = AdaptiveParser(config=ExtractionConfig(use_fallback=False))
        parser.learn(SelectorSet(title=".hl", content=".txt"), "site.example.com")

        result = await parser.parse_with_fallback(
            CUSTOM_MARKUP, Article, "https://site.example.com/story/1"
        )

        assert result.unwrap().title == "Custom"
        assert result.unwrap().text_content == "Custom body"

    @pytest.mark.asyncio
    async def test_other_domains_use_defaults(self) -> None:
        """Test that learned selectors do not leak across hosts."""
        parser = AdaptiveParser(config=ExtractionConfig(use_fallback=False))
        parser.learn(SelectorSet(title=".hl", content=".txt"), "site.example.com")

        with pytest.raises(InvalidStructureError):
            await parser.parse_with_fallback(
                CUSTOM_MARKUP, Article, "https://other.example.com/story/1"
            )

    @pytest.mark.asyncio
    async def test_clear_cache_restores_defaults(self) -> None:
        """Test that clearing the cache forgets learned selectors."""
        parser = AdaptiveParser(config=ExtractionConfig(use_fallback=False))
        parser.learn(SelectorSet(title=".hl", content=".txt"), "site.example.com")

        parser.clear_cache()

        assert parser.lookup("site.example.com") is None
        with pytest.raises(InvalidStructureError):
            await parser.parse_with_fallback(
                CUSTOM_MARKUP, Article, "https://site.example.com/story/1"
            )

    @pytest.mark.asyncio
    async def test_no_automatic_learning_by_default(self) -> None:
        """Test that parsing does not write the cache by default."""
        parser = AdaptiveParser()

        await parser.parse_with_fallback(COMPLETE_ARTICLE, Article, "https://a.com/1")

        assert parser.lookup("a.com") is None

    @pytest.mark.asyncio
    async def test_auto_learn_after_complete_parse(self) -> None:
        """Test that auto_learn stores discovered selectors."""
        parser = AdaptiveParser(config=ExtractionConfig(auto_learn=True))

        await parser.parse_with_fallback(
            "<h2 class='entry-title'>T</h2><div class='entry-content'>B</div>",
            Article,
            "https://blog.example.com/post",
        )

        learned = parser.lookup("blog.example.com")
        assert learned is not None
        assert learned.title == ".entry-title"
        assert learned.content == ".entry-content"

    @pytest.mark.asyncio
    async def test_stale_selectors_evicted(self) -> None:
        """Test that repeatedly failing cached selectors are dropped."""
        parser = AdaptiveParser(
            config=ExtractionConfig(use_fallback=False, stale_after_failures=2)
        )
        parser.learn(SelectorSet(title="h1", content=".old-body"), "news.example.com")

        for _ in range(2):
            await parser.parse_with_fallback(
                "<h1>Title</h1>", Article, "https://news.example.com/x"
            )

        assert parser.lookup("news.example.com") is None
        assert ExtractionMetrics.get_instance().cache_evictions == 1

    @pytest.mark.asyncio
    async def test_unusable_cached_selectors_count_as_failure(self) -> None:
        """Test that a cached set that cannot be compiled fails as a typed error."""
        parser = AdaptiveParser(
            config=ExtractionConfig(use_fallback=False, stale_after_failures=1)
        )
        # bypasses validation, like an entry restored from an older store
        broken = SelectorSet.model_construct(title="h1[", content="article")
        parser.cache.learn(broken, "bad.example.com")

        with pytest.raises(InvalidStructureError, match="not valid CSS"):
            await parser.parse_with_fallback(
                COMPLETE_ARTICLE, Article, "https://bad.example.com/b"
            )

        assert parser.lookup("bad.example.com") is None
        metrics = ExtractionMetrics.get_instance()
        assert metrics.cache_evictions == 1
        assert metrics.to_dict()["structural_failures_by_type"] == {"Article": 1}

    @pytest.mark.asyncio
    async def test_unusable_cached_selectors_fall_back(self) -> None:
        """Test that the fallback rebuilds a record when cached selectors are unusable."""
        fallback = FakeFallback(answers={"title": "Rebuilt", "main content": "Body"})
        parser = AdaptiveParser(fallback=fallback)
        parser.cache.learn(
            SelectorSet.model_construct(title="h1", content="div >"), "bad.example.com"
        )

        result = await parser.parse_with_fallback(
            COMPLETE_ARTICLE, Article, "https://bad.example.com/b"
        )

        assert result.source == ExtractionSource.FALLBACK_EXTRACTION
        assert result.unwrap().title == "Rebuilt"

    def test_lru_evictions_recorded(self) -> None:
        """Test that capacity evictions reach the eviction counter."""
        parser = AdaptiveParser(config=ExtractionConfig(cache_max_domains=1))

        parser.learn(SelectorSet(), "a.example.com")
        parser.learn(SelectorSet(), "b.example.com")

        assert parser.cache.domains() == ["b.example.com"]
        assert ExtractionMetrics.get_instance().cache_evictions == 1

    def test_extract_fields_uses_domain_selectors(self) -> None:
        """Test raw field extraction with learned selectors."""
        parser = AdaptiveParser()
        parser.learn(SelectorSet(title=".hl", content=".txt"), "site.example.com")

        fields = parser.extract_fields(CUSTOM_MARKUP, "https://site.example.com/a")

        assert fields == {"title": "Custom", "content": "Custom body"}

    def test_discover_selectors_accepts_html(self) -> None:
        """Test discovery from a raw HTML string."""
        selectors = AdaptiveParser().discover_selectors(
            "<h1 class='article-title'>T</h1><div class='article-body'>B</div>"
        )

        assert selectors.title == ".article-title"
        assert selectors.content == ".article-body"
