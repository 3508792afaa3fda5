"""Core orchestration pipeline."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor

from tqdm import tqdm

from .classifier import Classifier
from .config import DiscoveryConfig
from .dedupe import Deduplicator, RecordCallback
from .extraction import candidate_from_address
from .fetchers import PolitenessGate, RequestsFetcher, RobotsPolicy, make_session
from .io_export import export_result
from .models import Fetcher, RunResult, Sighting
from .scheduler import CrawlScheduler, annotate_candidate
from .stats import StatsAggregator
from .verifier import TieredValidator, build_validator


def build_fetcher(config: DiscoveryConfig, *, logger: logging.Logger) -> RequestsFetcher:
    """Build the requests fetcher with politeness and robots.txt policy from config."""
    session = make_session(
        config.user_agent,
        max_redirects=config.max_redirects,
        pool_size=config.max_domains_in_flight,
    )
    return RequestsFetcher(
        session=session,
        timeout=config.request_timeout,
        max_bytes=config.max_page_bytes,
        logger=logger,
        politeness=PolitenessGate(config.politeness_delay),
        robots_policy=(
            RobotsPolicy(config.user_agent, session=session, timeout=config.request_timeout)
            if config.respect_robots
            else None
        ),
    )


def discover_emails(
    config: DiscoveryConfig,
    *,
    fetcher: Fetcher,
    validator: TieredValidator,
    logger: logging.Logger,
    on_record: RecordCallback | None = None,
) -> RunResult:
    """Crawl the configured seed domains and return records plus stats."""
    scheduler = CrawlScheduler(
        config,
        fetcher=fetcher,
        validator=validator,
        logger=logger,
        on_record=on_record,
    )
    return scheduler.run()


def validate_addresses(
    addresses: Sequence[str],
    config: DiscoveryConfig,
    *,
    validator: TieredValidator,
    logger: logging.Logger,
    classifier: Classifier | None = None,
) -> RunResult:
    """Validate and score an existing address list without crawling."""
    classifier = classifier or Classifier()
    stats = StatsAggregator()
    dedupe = Deduplicator(stats=stats, policy=config.merge_policy)
    candidates = [candidate_from_address(raw) for raw in addresses if raw.strip()]
    logger.info("Validating %d uploaded addresses", len(candidates))

    with ThreadPoolExecutor(max_workers=config.max_domains_in_flight) as executor:
        futures = [
            executor.submit(
                annotate_candidate, candidate, classifier=classifier, validator=validator
            )
            for candidate in candidates
        ]
        # Merge in upload order so record order matches the input list.
        iterator: Iterable[Future[Sighting]] = futures
        if config.show_progress:
            iterator = tqdm(futures, desc="validating addresses")
        for future in iterator:
            dedupe.add(future.result())

    result = RunResult(records=dedupe.records(), stats=stats.snapshot())
    logger.info(
        "Validated %d unique addresses (%d valid, %d invalid)",
        result.stats.total_found,
        result.stats.valid_emails,
        result.stats.invalid_emails,
    )
    return result


def run_pipeline(config: DiscoveryConfig, *, logger: logging.Logger) -> str:
    """Build concrete dependencies, crawl, and export the results."""
    fetcher = build_fetcher(config, logger=logger)
    try:
        result = discover_emails(
            config,
            fetcher=fetcher,
            validator=build_validator(config, logger=logger),
            logger=logger,
        )
    finally:
        close_fn = getattr(fetcher, "close", None)
        if callable(close_fn):
            close_fn()
    return export_result(config.output, config.export_format, result)


def run_validation_pipeline(
    config: DiscoveryConfig, addresses: Sequence[str], *, logger: logging.Logger
) -> str:
    """Validate an uploaded address list and export the results."""
    result = validate_addresses(
        addresses,
        config,
        validator=build_validator(config, logger=logger),
        logger=logger,
    )
    return export_result(config.output, config.export_format, result)
