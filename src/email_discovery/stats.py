"""Run statistics aggregation."""

from __future__ import annotations

from threading import Lock

from .models import SearchStats


class StatsAggregator:
    """Accumulates run totals from discrete events behind one lock.

    Every event updates all affected counters inside the same critical
    section, so a snapshot always satisfies ``valid + invalid == total``.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._stats = SearchStats()

    def reset(self) -> None:
        with self._lock:
            self._stats = SearchStats()

    def domain_started(self) -> None:
        with self._lock:
            self._stats = self._replace(domains_scanned=self._stats.domains_scanned + 1)

    def page_finished(self) -> None:
        with self._lock:
            self._stats = self._replace(pages_scanned=self._stats.pages_scanned + 1)

    def email_found(self, is_valid: bool) -> None:
        with self._lock:
            self._stats = self._replace(
                total_found=self._stats.total_found + 1,
                valid_emails=self._stats.valid_emails + (1 if is_valid else 0),
                invalid_emails=self._stats.invalid_emails + (0 if is_valid else 1),
            )

    def email_upgraded(self) -> None:
        """Move one address from invalid to valid after a later sighting validated."""
        with self._lock:
            self._stats = self._replace(
                valid_emails=self._stats.valid_emails + 1,
                invalid_emails=self._stats.invalid_emails - 1,
            )

    def snapshot(self) -> SearchStats:
        with self._lock:
            return self._stats

    def _replace(self, **changes: int) -> SearchStats:
        values = {
            "total_found": self._stats.total_found,
            "valid_emails": self._stats.valid_emails,
            "invalid_emails": self._stats.invalid_emails,
            "domains_scanned": self._stats.domains_scanned,
            "pages_scanned": self._stats.pages_scanned,
        }
        values.update(changes)
        return SearchStats(**values)
