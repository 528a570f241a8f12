"""Metrics for adaptive content extraction."""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock

from src.extraction.models import ExtractionSource


# Module-level singleton state
_metrics_instance: "ExtractionMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class ExtractionMetrics:
    """Thread-safe counters for the extraction pipeline.

    Use get_instance() for singleton access.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    # Successful parses by result source
    results_by_source: Counter[str] = field(default_factory=Counter)

    # Structural failures per record type
    structural_failures_by_type: Counter[str] = field(default_factory=Counter)

    # Fallback extractor calls and failures per field hint
    fallback_calls_by_field: Counter[str] = field(default_factory=Counter)
    fallback_failures_by_field: Counter[str] = field(default_factory=Counter)

    # Selector cache activity
    cache_hits: int = 0
    cache_misses: int = 0
    cache_evictions: int = 0

    # Fetch outcomes by status code (0 = no response) and failure class
    fetch_status_codes: Counter[int] = field(default_factory=Counter)
    fetch_failures_by_class: Counter[str] = field(default_factory=Counter)

    # Batch items dropped per error type
    batch_failures_by_error: Counter[str] = field(default_factory=Counter)

    @classmethod
    def get_instance(cls) -> "ExtractionMetrics":
        """Get the singleton instance (thread-safe)."""
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_result(self, source: ExtractionSource) -> None:
        with self._lock:
            self.results_by_source[source.value] += 1

    def record_structural_failure(self, record_type: str) -> None:
        with self._lock:
            self.structural_failures_by_type[record_type] += 1

    def record_fallback_call(self, field_hint: str, succeeded: bool) -> None:
        """Record one fallback extractor invocation."""
        with self._lock:
            self.fallback_calls_by_field[field_hint] += 1
            if not succeeded:
                self.fallback_failures_by_field[field_hint] += 1

    def record_cache_lookup(self, hit: bool) -> None:
        with self._lock:
            if hit:
                self.cache_hits += 1
            else:
                self.cache_misses += 1

    def record_cache_eviction(self, count: int = 1) -> None:
        with self._lock:
            self.cache_evictions += count

    def record_fetch(self, status_code: int, error_class: str | None) -> None:
        """Record a completed fetch."""
        with self._lock:
            self.fetch_status_codes[status_code] += 1
            if error_class:
                self.fetch_failures_by_class[error_class] += 1

    def record_batch_failure(self, error_type: str) -> None:
        with self._lock:
            self.batch_failures_by_error[error_type] += 1

    def to_dict(self) -> dict[str, object]:
        """Export all metrics as plain data."""
        with self._lock:
            return {
                "results_by_source": dict(self.results_by_source),
                "structural_failures_by_type": dict(self.structural_failures_by_type),
                "fallback_calls_by_field": dict(self.fallback_calls_by_field),
                "fallback_failures_by_field": dict(self.fallback_failures_by_field),
                "cache_hits": self.cache_hits,
                "cache_misses": self.cache_misses,
                "cache_evictions": self.cache_evictions,
                "fetch_status_codes": dict(self.fetch_status_codes),
                "fetch_failures_by_class": dict(self.fetch_failures_by_class),
                "batch_failures_by_error": dict(self.batch_failures_by_error),
            }
