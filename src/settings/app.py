"""Application settings powered by Pydantic BaseSettings."""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.extraction.cache import DEFAULT_MAX_DOMAINS, DEFAULT_STALE_AFTER_FAILURES
from src.extraction.config import (
    DEFAULT_FALLBACK_MAX_CHARS,
    DEFAULT_MAX_CONCURRENCY,
    ExtractionConfig,
)
from src.fetch import FetchConfig, RetryPolicy
from src.fetch.constants import DEFAULT_USER_AGENT


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    use_fallback: bool = Field(default=True, validation_alias="EXTRACTION_USE_FALLBACK")
    max_concurrency: int = Field(
        default=DEFAULT_MAX_CONCURRENCY, validation_alias="EXTRACTION_MAX_CONCURRENCY"
    )
    cache_max_domains: int = Field(
        default=DEFAULT_MAX_DOMAINS, validation_alias="EXTRACTION_CACHE_MAX_DOMAINS"
    )
    stale_after_failures: int = Field(
        default=DEFAULT_STALE_AFTER_FAILURES, validation_alias="EXTRACTION_STALE_AFTER_FAILURES"
    )
    auto_learn: bool = Field(default=False, validation_alias="EXTRACTION_AUTO_LEARN")
    tolerate_failures: bool = Field(
        default=True, validation_alias="EXTRACTION_TOLERATE_FAILURES"
    )
    fallback_max_chars: int = Field(
        default=DEFAULT_FALLBACK_MAX_CHARS, validation_alias="EXTRACTION_FALLBACK_MAX_CHARS"
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT, validation_alias="EXTRACTION_USER_AGENT"
    )
    timeout_seconds: float = Field(
        default=30.0, validation_alias="EXTRACTION_TIMEOUT_SECONDS"
    )
    max_retries: int = Field(default=2, validation_alias="EXTRACTION_MAX_RETRIES")
    log_level: str = Field(default="INFO", validation_alias="EXTRACTION_LOG_LEVEL")
    log_json: bool = Field(default=True, validation_alias="EXTRACTION_LOG_JSON")

    @property
    def log_level_value(self) -> int:
        """Return the numeric logging level (INFO for unknown names)."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO

    def to_extraction_config(self) -> ExtractionConfig:
        """Build the pipeline configuration from these settings.

        Raises:
            pydantic.ValidationError: If a value is out of range.
        """
        return ExtractionConfig(
            use_fallback=self.use_fallback,
            max_concurrency=self.max_concurrency,
            cache_max_domains=self.cache_max_domains,
            stale_after_failures=self.stale_after_failures,
            auto_learn=self.auto_learn,
            tolerate_failures=self.tolerate_failures,
            fallback_max_chars=self.fallback_max_chars,
            fetch=FetchConfig(
                user_agent=self.user_agent,
                default_timeout_seconds=self.timeout_seconds,
                retry_policy=RetryPolicy(max_retries=self.max_retries),
            ),
        )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
