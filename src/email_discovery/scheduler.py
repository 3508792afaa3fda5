"""Crawl scheduling: per-domain workers, retries, budgets and cancellation."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from threading import Lock

from tqdm import tqdm

from .classifier import Classifier
from .config import DiscoveryConfig
from .dedupe import Deduplicator, RecordCallback
from .errors import ConfigError, ExtractionError, FetchError
from .extraction import domain_from_url, find_crawl_links, iter_candidates, same_site
from .models import (
    CrawlTask,
    EmailCandidate,
    Fetcher,
    PageContent,
    RunResult,
    Sighting,
    TaskState,
)
from .scoring import compute_confidence
from .stats import StatsAggregator
from .validation import normalize_seeds
from .verifier import TieredValidator


def annotate_candidate(
    candidate: EmailCandidate, *, classifier: Classifier, validator: TieredValidator
) -> Sighting:
    """Classify, validate and score one candidate."""
    outcome = validator.validate(candidate.address)
    return Sighting(
        candidate=candidate,
        email_type=classifier.classify_candidate(candidate),
        validation=outcome,
        confidence=compute_confidence(outcome, candidate.source_category, candidate.obfuscated),
    )


def _url_key(url: str) -> str:
    return url.split("://", maxsplit=1)[-1].split("#", maxsplit=1)[0].rstrip("/").lower()


class WorkQueue:
    """Per-domain FIFO queues bounded by per-domain and run-wide page budgets."""

    def __init__(
        self,
        *,
        max_pages_per_domain: int,
        max_total_pages: int,
        stop_event: threading.Event,
    ) -> None:
        self._max_pages_per_domain = max_pages_per_domain
        self._max_total_pages = max_total_pages
        self._stop_event = stop_event
        self._lock = Lock()
        self._queues: dict[str, deque[CrawlTask]] = {}
        self._seen: dict[str, set[str]] = {}
        self._dispatched = 0

    def add_domain(self, domain: str) -> CrawlTask:
        """Register a seed domain with its home page as the first task."""
        task = CrawlTask(domain=domain, url=f"https://{domain}/")
        with self._lock:
            self._queues[domain] = deque([task])
            self._seen[domain] = {_url_key(task.url)}
        return task

    def enqueue(self, domain: str, url: str) -> bool:
        """Queue a discovered same-site page unless seen or over the domain budget."""
        if not same_site(domain_from_url(url), domain):
            return False
        key = _url_key(url)
        with self._lock:
            seen = self._seen.setdefault(domain, set())
            if key in seen or len(seen) >= self._max_pages_per_domain:
                return False
            seen.add(key)
            self._queues.setdefault(domain, deque()).append(CrawlTask(domain=domain, url=url))
        return True

    def pop(self, domain: str) -> CrawlTask | None:
        """Return the next task for a domain, or None when drained, over budget or stopped."""
        with self._lock:
            if self._stop_event.is_set() or self._dispatched >= self._max_total_pages:
                return None
            queue = self._queues.get(domain)
            if not queue:
                return None
            self._dispatched += 1
            return queue.popleft()

    @property
    def dispatched(self) -> int:
        with self._lock:
            return self._dispatched

    def pending(self) -> int:
        with self._lock:
            return sum(len(queue) for queue in self._queues.values())


class CrawlScheduler:
    """Drive fetch -> extract -> classify -> validate -> score -> dedupe per domain.

    One worker runs per domain, up to ``max_domains_in_flight`` at once, so a
    domain's pages are fetched one after another while domains proceed in
    parallel. ``cancel()`` may be called from any thread; ``snapshot()`` is
    safe to poll while a run is in flight.
    """

    def __init__(
        self,
        config: DiscoveryConfig,
        *,
        fetcher: Fetcher,
        validator: TieredValidator,
        logger: logging.Logger,
        classifier: Classifier | None = None,
        stats: StatsAggregator | None = None,
        on_record: RecordCallback | None = None,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._validator = validator
        self._logger = logger
        self._classifier = classifier or Classifier()
        self._stats = stats or StatsAggregator()
        self._on_record = on_record
        self._cancel_event = threading.Event()
        self._dedupe = Deduplicator(
            stats=self._stats, policy=config.merge_policy, on_record=on_record
        )
        self._archive: list[CrawlTask] = []
        self._archive_lock = Lock()
        self._queue: WorkQueue | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop dispatching new fetches; in-flight work finishes normally."""
        if not self._cancel_event.is_set():
            self._logger.warning("Cancellation requested; no new pages will be dispatched.")
        self._cancel_event.set()

    def snapshot(self) -> RunResult:
        return RunResult(
            records=self._dedupe.records(),
            stats=self._stats.snapshot(),
            cancelled=self._cancel_event.is_set(),
        )

    def archived_tasks(self) -> tuple[CrawlTask, ...]:
        with self._archive_lock:
            return tuple(self._archive)

    def run(self, seeds: Iterable[str] | None = None) -> RunResult:
        """Crawl every seed domain and return the final records and stats."""
        domains = normalize_seeds(list(seeds)) if seeds is not None else self._config.seeds
        if not domains:
            raise ConfigError("No seed domains supplied.")

        self._stats.reset()
        self._dedupe = Deduplicator(
            stats=self._stats, policy=self._config.merge_policy, on_record=self._on_record
        )
        with self._archive_lock:
            self._archive = []
        queue = WorkQueue(
            max_pages_per_domain=self._config.max_pages_per_domain,
            max_total_pages=self._config.max_total_pages,
            stop_event=self._cancel_event,
        )
        for domain in domains:
            queue.add_domain(domain)
        self._queue = queue
        self._logger.info("Crawling %d seed domains", len(domains))

        workers = min(self._config.max_domains_in_flight, len(domains))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self._crawl_domain, domain): domain for domain in domains}
            iterator = as_completed(futures)
            if self._config.show_progress:
                iterator = tqdm(iterator, total=len(futures), desc="scanning domains")
            try:
                for future in iterator:
                    try:
                        future.result()
                    except Exception:  # pragma: no cover - unexpected worker failure
                        self._logger.exception("Worker failed for %s", futures[future])
            except KeyboardInterrupt:
                self.cancel()

        result = self.snapshot()
        self._logger.info(
            "Run %s: %d domains, %d pages, %d emails (%d valid)",
            "cancelled" if result.cancelled else "finished",
            result.stats.domains_scanned,
            result.stats.pages_scanned,
            result.stats.total_found,
            result.stats.valid_emails,
        )
        return result

    def _crawl_domain(self, domain: str) -> None:
        assert self._queue is not None
        started = False
        while True:
            task = self._queue.pop(domain)
            if task is None:
                return
            if not started:
                self._stats.domain_started()
                started = True
            page = self._fetch(task)
            links = self._discover_links(task, page) if page is not None else None
            self._stats.page_finished()
            self._archive_task(task)
            if page is None or links is None:
                continue
            for link in links:
                self._queue.enqueue(domain, link)
            self._process_page(page)

    def _discover_links(self, task: CrawlTask, page: PageContent) -> list[str] | None:
        try:
            return find_crawl_links(page.raw_text, page.url, self._config.link_patterns)
        except Exception as exc:
            self._logger.exception("Link discovery failed on %s", page.url)
            task.last_error = f"link discovery failed: {exc}"
            task.state = TaskState.FAILED
            return None

    def _fetch(self, task: CrawlTask) -> PageContent | None:
        while True:
            task.state = TaskState.FETCHING
            task.attempts += 1
            try:
                page = self._fetcher.fetch(task.url)
            except FetchError as exc:
                task.last_error = str(exc)
                if not exc.transient or task.attempts >= self._config.retry_budget:
                    self._logger.debug(
                        "Giving up on %s after %d attempts: %s", task.url, task.attempts, exc
                    )
                    task.state = TaskState.FAILED
                    return None
                task.state = TaskState.RETRYING
                delay = self._config.backoff_base * 2 ** (task.attempts - 1)
                self._logger.debug("Retrying %s in %.2fs: %s", task.url, delay, exc)
                if self._cancel_event.wait(delay):
                    task.state = TaskState.FAILED
                    return None
                continue
            except Exception as exc:
                self._logger.exception("Unexpected error fetching %s", task.url)
                task.last_error = f"unexpected error: {exc}"
                task.state = TaskState.FAILED
                return None
            task.state = TaskState.PARSED
            return page

    def _process_page(self, page: PageContent) -> None:
        try:
            candidates = list(iter_candidates(page))
        except ExtractionError as exc:
            self._logger.warning("Skipping page %s: %s", page.url, exc)
            return
        for candidate in candidates:
            sighting = annotate_candidate(
                candidate, classifier=self._classifier, validator=self._validator
            )
            self._dedupe.add(sighting)

    def _archive_task(self, task: CrawlTask) -> None:
        with self._archive_lock:
            self._archive.append(task)
