"""Configuration for the adaptive extraction pipeline."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from src.extraction.cache import DEFAULT_MAX_DOMAINS, DEFAULT_STALE_AFTER_FAILURES
from src.fetch.config import FetchConfig


DEFAULT_MAX_CONCURRENCY = 16
DEFAULT_FALLBACK_MAX_CHARS = 12000


class ExtractionConfig(BaseModel):
    """Settings shared by the parser, collection extractor and service."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    use_fallback: bool = Field(
        default=True,
        description="Call the fallback extractor for incomplete or unparseable pages",
    )
    max_concurrency: Annotated[int, Field(ge=1, le=256)] = DEFAULT_MAX_CONCURRENCY
    cache_max_domains: Annotated[int, Field(ge=1, le=100_000)] = DEFAULT_MAX_DOMAINS
    stale_after_failures: Annotated[int, Field(ge=0, le=100)] = Field(
        default=DEFAULT_STALE_AFTER_FAILURES,
        description="Evict cached selectors after this many consecutive failures (0 = never)",
    )
    auto_learn: bool = Field(
        default=False,
        description="Learn discovered selectors after complete structured parses",
    )
    tolerate_failures: bool = Field(
        default=True,
        description="Drop failing URLs from batch results instead of raising",
    )
    fallback_max_chars: Annotated[int, Field(ge=500, le=200_000)] = (
        DEFAULT_FALLBACK_MAX_CHARS
    )
    fetch: FetchConfig = Field(default_factory=FetchConfig)
