"""Per-domain cache of learned selector sets."""

from collections import OrderedDict
from threading import Lock

import structlog

from src.extraction.selectors import SelectorSet


logger = structlog.get_logger()

DEFAULT_MAX_DOMAINS = 256
DEFAULT_STALE_AFTER_FAILURES = 3


class SelectorCache:
    """Thread-safe LRU cache mapping domains to selector sets.

    Entries are only ever replaced whole, so a reader never sees a
    partially learned set. A domain whose cached selectors keep failing
    is evicted after ``stale_after_failures`` consecutive failures so
    the next parse falls back to defaults or rediscovery.
    """

    def __init__(
        self,
        max_domains: int = DEFAULT_MAX_DOMAINS,
        stale_after_failures: int = DEFAULT_STALE_AFTER_FAILURES,
    ) -> None:
        """Initialize the cache.

        Args:
            max_domains: Maximum number of domains kept (least recently
                used entries are evicted first).
            stale_after_failures: Consecutive failures before an entry
                is dropped. Zero disables staleness eviction.
        """
        if max_domains < 1:
            msg = "max_domains must be at least 1"
            raise ValueError(msg)
        self._max_domains = max_domains
        self._stale_after_failures = stale_after_failures
        self._entries: OrderedDict[str, SelectorSet] = OrderedDict()
        self._failures: dict[str, int] = {}
        self._lock = Lock()
        self._log = logger.bind(component="extraction", subcomponent="selector_cache")

    def learn(self, selectors: SelectorSet, domain: str) -> list[str]:
        """Store selectors for a domain, overwriting any existing entry.

        Args:
            selectors: Selector set that worked for the domain.
            domain: Host the selectors apply to.

        Returns:
            Domains evicted to stay within ``max_domains``.
        """
        with self._lock:
            self._entries[domain] = selectors
            self._entries.move_to_end(domain)
            self._failures.pop(domain, None)
            evicted = self._evict_overflow()
        self._log.debug("selectors_learned", domain=domain, evicted=evicted)
        return evicted

    def lookup(self, domain: str) -> SelectorSet | None:
        """Return the selectors learned for a domain, if any."""
        with self._lock:
            selectors = self._entries.get(domain)
            if selectors is not None:
                self._entries.move_to_end(domain)
            return selectors

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()
            self._failures.clear()
        self._log.debug("selector_cache_cleared")

    def record_failure(self, domain: str) -> bool:
        """Count a failed parse that used this domain's cached selectors.

        Args:
            domain: Host whose cached selectors failed.

        Returns:
            True if the entry was evicted as stale.
        """
        with self._lock:
            if domain not in self._entries:
                return False
            count = self._failures.get(domain, 0) + 1
            if self._stale_after_failures and count >= self._stale_after_failures:
                del self._entries[domain]
                self._failures.pop(domain, None)
                evicted = True
            else:
                self._failures[domain] = count
                evicted = False
        if evicted:
            self._log.info("stale_selectors_evicted", domain=domain, failures=count)
        return evicted

    def record_success(self, domain: str) -> None:
        """Reset the failure count of a domain."""
        with self._lock:
            self._failures.pop(domain, None)

    def failure_count(self, domain: str) -> int:
        """Return the consecutive failure count of a domain."""
        with self._lock:
            return self._failures.get(domain, 0)

    def snapshot(self) -> dict[str, dict[str, str]]:
        """Export all entries as plain mappings, oldest first."""
        with self._lock:
            return {domain: sel.to_dict() for domain, sel in self._entries.items()}

    def load(self, data: dict[str, dict[str, str]]) -> None:
        """Learn every entry of a mapping produced by :meth:`snapshot`."""
        for domain, selectors in data.items():
            self.learn(SelectorSet.from_dict(selectors), domain)

    def domains(self) -> list[str]:
        """Return cached domains, least recently used first."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, domain: object) -> bool:
        with self._lock:
            return domain in self._entries

    def _evict_overflow(self) -> list[str]:
        evicted: list[str] = []
        while len(self._entries) > self._max_domains:
            domain, _ = self._entries.popitem(last=False)
            self._failures.pop(domain, None)
            evicted.append(domain)
        return evicted
