"""Adaptive parser: structured parsing with fallback extraction."""

from typing import TypeVar, cast

import soupsieve
import structlog
from bs4 import BeautifulSoup

from src.extraction.cache import SelectorCache
from src.extraction.config import ExtractionConfig
from src.extraction.errors import (
    FallbackExtractionFailedError,
    InvalidStructureError,
    UnsupportedFallbackTypeError,
)
from src.extraction.fallback import FallbackExtractor
from src.extraction.metrics import ExtractionMetrics
from src.extraction.models import ExtractionResult, ExtractionSource, FieldPatchWarning
from src.extraction.parsers import StructuredParser, get_parser
from src.extraction.records import FieldDescriptor, StructuredRecord
from src.extraction.selectors import (
    SelectorSet,
    apply_selectors,
    discover_selectors,
    domain_of,
    parse_document,
)
from src.extraction.state_machine import ParseState, ParseStateMachine
from src.extraction.validator import CompletenessValidator, is_empty


logger = structlog.get_logger()

R = TypeVar("R", bound=StructuredRecord)

TITLE_HINT = "title"
CONTENT_HINT = "main content"


class AdaptiveParser:
    """Parses pages into records, repairing gaps with a fallback extractor.

    Each parse runs the structured parser for the requested record
    type, checks completeness, then either:

    - returns the record untouched when it is complete,
    - patches each empty required field with one fallback call, or
    - rebuilds a minimal record from fallback title and body when the
      structured parser found no usable structure.

    The parser owns a per-domain SelectorCache; learned selectors are
    used for every URL of that domain until cleared, overwritten or
    evicted as stale.
    """

    def __init__(
        self,
        fallback: FallbackExtractor | None = None,
        config: ExtractionConfig | None = None,
        cache: SelectorCache | None = None,
    ) -> None:
        """Initialize the parser.

        Args:
            fallback: Secondary extractor. Without one, fallback is off.
            config: Extraction configuration.
            cache: Selector cache to use (a new one is created otherwise).
        """
        self._config = config or ExtractionConfig()
        self._fallback = fallback
        self._cache = cache or SelectorCache(
            max_domains=self._config.cache_max_domains,
            stale_after_failures=self._config.stale_after_failures,
        )
        self._validator = CompletenessValidator()
        self._metrics = ExtractionMetrics.get_instance()
        self._log = logger.bind(component="extraction", subcomponent="adaptive_parser")

    @property
    def use_fallback(self) -> bool:
        """Whether fallback extraction is enabled and available."""
        return self._config.use_fallback and self._fallback is not None

    @property
    def fallback(self) -> FallbackExtractor | None:
        """Get the fallback extractor, if one was given."""
        return self._fallback

    @property
    def cache(self) -> SelectorCache:
        """Get the selector cache."""
        return self._cache

    async def parse_with_fallback(
        self,
        html: str,
        record_type: type[R],
        url: str | None = None,
    ) -> ExtractionResult[R]:
        """Parse HTML into a record of the requested type.

        Args:
            html: Raw HTML.
            record_type: Record class to produce.
            url: Source URL; selects cached selectors for its domain.

        Returns:
            Successful ExtractionResult tagged with the value's source.

        Raises:
            InvalidStructureError: No structure found and fallback is off.
            UnsupportedFallbackTypeError: No structure found and the type
                cannot be rebuilt from fallback output.
            FallbackExtractionFailedError: The fallback failed while
                rebuilding the record.
        """
        machine = ParseStateMachine(record_type.__name__, url)
        domain = domain_of(url)
        selectors, from_cache = self._selectors_for(domain)
        log = self._log.bind(
            record_type=record_type.__name__,
            domain=domain,
            cached_selectors=from_cache,
        )

        document = parse_document(html)
        parser = get_parser(record_type)

        machine.transition(ParseState.STRUCTURED_ATTEMPT)
        try:
            record = self._parse_structured(parser, document, selectors, record_type, url)
        except InvalidStructureError as exc:
            machine.transition(ParseState.STRUCTURAL_FAILURE)
            self._metrics.record_structural_failure(record_type.__name__)
            if from_cache:
                self._record_cache_failure(domain)
            log.info("structured_parse_failed", reason=exc.message)
            return await self._reconstruct(html, record_type, url, machine, exc)

        missing = self._validator.missing_fields(record)
        if not missing:
            machine.transition(ParseState.COMPLETE)
            if from_cache:
                self._cache.record_success(domain)
            elif self._config.auto_learn and domain:
                self.learn(discover_selectors(document), domain)
            log.info("structured_parse_complete")
            return self._success(record, ExtractionSource.STRUCTURED_PARSING)

        machine.transition(ParseState.INCOMPLETE)
        if from_cache:
            self._record_cache_failure(domain)
        missing_names = [descriptor.name for descriptor in missing]

        if not self.use_fallback:
            machine.transition(ParseState.ACCEPTED)
            log.info("structured_parse_incomplete", missing_fields=missing_names)
            warnings = [
                FieldPatchWarning(
                    field_name=descriptor.name,
                    field_hint=descriptor.hint,
                    reason="fallback disabled",
                )
                for descriptor in missing
            ]
            return self._success(record, ExtractionSource.STRUCTURED_PARSING, warnings)

        log.info("fallback_patch_started", missing_fields=missing_names)
        patched, patched_count, warnings = await self._patch_fields(html, record, missing, log)

        if patched_count:
            machine.transition(ParseState.PATCHED)
            log.info(
                "fallback_patch_complete",
                patched_fields=patched_count,
                unresolved_fields=[warning.field_name for warning in warnings],
            )
            return self._success(patched, ExtractionSource.FALLBACK_EXTRACTION, warnings)

        machine.transition(ParseState.ACCEPTED)
        log.warning("fallback_patch_failed", missing_fields=missing_names)
        return self._success(record, ExtractionSource.STRUCTURED_PARSING, warnings)

    @staticmethod
    def _parse_structured(
        parser: StructuredParser[R],
        document: BeautifulSoup,
        selectors: SelectorSet,
        record_type: type[R],
        url: str | None,
    ) -> R:
        """Run the structured parser, treating unusable selectors as missing structure."""
        try:
            return parser.parse(document, selectors, url)
        except soupsieve.SelectorSyntaxError as exc:
            msg = f"Selector set for {record_type.__name__} is not valid CSS: {exc}"
            raise InvalidStructureError(
                msg, record_type=record_type.__name__, url=url
            ) from exc

    async def _patch_fields(
        self,
        html: str,
        record: R,
        missing: list[FieldDescriptor],
        log: structlog.stdlib.BoundLogger,
    ) -> tuple[R, int, list[FieldPatchWarning]]:
        """Call the fallback once per missing field and patch what it returns.

        A failing call leaves its field untouched and adds a warning.
        """
        fallback = cast(FallbackExtractor, self._fallback)
        warnings: list[FieldPatchWarning] = []
        patched_count = 0

        for descriptor in missing:
            try:
                value = await fallback.extract(html, descriptor.hint)
            except Exception as exc:  # noqa: BLE001
                self._metrics.record_fallback_call(descriptor.hint, succeeded=False)
                log.warning(
                    "fallback_field_failed",
                    field=descriptor.name,
                    field_hint=descriptor.hint,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                warnings.append(
                    FieldPatchWarning(
                        field_name=descriptor.name,
                        field_hint=descriptor.hint,
                        reason=f"{type(exc).__name__}: {exc}",
                    )
                )
                continue

            if is_empty(value):
                self._metrics.record_fallback_call(descriptor.hint, succeeded=False)
                log.warning("fallback_field_empty", field=descriptor.name)
                warnings.append(
                    FieldPatchWarning(
                        field_name=descriptor.name,
                        field_hint=descriptor.hint,
                        reason="fallback returned no value",
                    )
                )
                continue

            self._metrics.record_fallback_call(descriptor.hint, succeeded=True)
            record = record.with_field_patched(descriptor.name, value.strip())
            patched_count += 1

        return record, patched_count, warnings

    async def _reconstruct(
        self,
        html: str,
        record_type: type[R],
        url: str | None,
        machine: ParseStateMachine,
        cause: InvalidStructureError,
    ) -> ExtractionResult[R]:
        """Rebuild a minimal record from fallback title and body."""
        name = record_type.__name__
        if not self.use_fallback:
            machine.transition(ParseState.FAILED)
            raise cause

        if not record_type.supports_fallback_construction():
            machine.transition(ParseState.FAILED)
            msg = f"{name} cannot be rebuilt from fallback extraction"
            raise UnsupportedFallbackTypeError(msg, record_type=name, url=url) from cause

        fallback = cast(FallbackExtractor, self._fallback)
        values: dict[str, str] = {}
        for hint in (TITLE_HINT, CONTENT_HINT):
            try:
                values[hint] = (await fallback.extract(html, hint)).strip()
            except Exception as exc:  # noqa: BLE001
                self._metrics.record_fallback_call(hint, succeeded=False)
                machine.transition(ParseState.FAILED)
                self._log.warning(
                    "fallback_reconstruction_failed",
                    record_type=name,
                    field_hint=hint,
                    error=str(exc),
                )
                msg = f"Fallback extraction of '{hint}' failed for {name}: {exc}"
                raise FallbackExtractionFailedError(msg, field_hint=hint, url=url) from exc
            self._metrics.record_fallback_call(hint, succeeded=True)

        record = record_type.from_fallback(values[TITLE_HINT], values[CONTENT_HINT], url)
        machine.transition(ParseState.RECONSTRUCTED)
        self._log.info("fallback_reconstruction_complete", record_type=name)
        return self._success(record, ExtractionSource.FALLBACK_EXTRACTION)

    def _success(
        self,
        record: R,
        source: ExtractionSource,
        warnings: list[FieldPatchWarning] | None = None,
    ) -> ExtractionResult[R]:
        self._metrics.record_result(source)
        return ExtractionResult.success(record, source, warnings or [])

    def _selectors_for(self, domain: str) -> tuple[SelectorSet, bool]:
        """Return the cached selectors of a domain, or the defaults."""
        if not domain:
            return SelectorSet(), False
        cached = self._cache.lookup(domain)
        self._metrics.record_cache_lookup(hit=cached is not None)
        if cached is None:
            return SelectorSet(), False
        return cached, True

    def _record_cache_failure(self, domain: str) -> None:
        if self._cache.record_failure(domain):
            self._metrics.record_cache_eviction()

    def extract_fields(self, html: str, url: str) -> dict[str, str]:
        """Apply the domain's cached selectors (or defaults) to a page.

        Args:
            html: Raw HTML.
            url: Page URL; its host picks the selector set.

        Returns:
            Mapping of selector field name to extracted value.
        """
        selectors, _ = self._selectors_for(domain_of(url))
        return apply_selectors(parse_document(html), selectors)

    def learn(self, selectors: SelectorSet, domain: str) -> None:
        """Store selectors that worked for a domain, replacing any entry."""
        evicted = self._cache.learn(selectors, domain)
        if evicted:
            self._metrics.record_cache_eviction(len(evicted))

    def lookup(self, domain: str) -> SelectorSet | None:
        """Return the selectors learned for a domain, if any."""
        return self._cache.lookup(domain)

    def discover_selectors(self, document: BeautifulSoup | str) -> SelectorSet:
        """Find selectors matching a document's structure."""
        if isinstance(document, str):
            document = parse_document(document)
        return discover_selectors(document)

    def clear_cache(self) -> None:
        """Forget every learned selector set."""
        self._cache.clear()
