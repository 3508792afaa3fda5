"""CLI entrypoint for email-discovery."""

from __future__ import annotations

import argparse
from collections.abc import Sequence

from .config import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_LINK_PATTERNS,
    DEFAULT_MAX_DOMAINS_IN_FLIGHT,
    DEFAULT_MAX_PAGE_BYTES,
    DEFAULT_MAX_PAGES_PER_DOMAIN,
    DEFAULT_MAX_TOTAL_PAGES,
    DEFAULT_POLITENESS_DELAY_MS,
    DEFAULT_PROBE_FROM,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_BUDGET,
    DiscoveryConfig,
)
from .errors import ConfigError
from .io_export import load_addresses
from .logging_utils import configure_logging, get_logger
from .pipeline import run_pipeline, run_validation_pipeline
from .validation import EXPORT_FORMATS, MERGE_POLICIES, load_lines_from_file


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        description="Email Discovery - crawl seed domains for contact addresses, "
        "classify, validate and score them."
    )
    source_group = parser.add_mutually_exclusive_group(required=False)
    source_group.add_argument("--domains", nargs="+", help="Seed domains or URLs.")
    source_group.add_argument("--domains-file", help="Path to seed domain file (one per line).")
    source_group.add_argument(
        "--validate-file",
        help="Validate an existing .txt/.csv/.xlsx address list instead of crawling.",
    )
    parser.add_argument("--output", default="emails_output.csv", help="Output file path.")
    parser.add_argument(
        "--format",
        dest="export_format",
        choices=EXPORT_FORMATS,
        default="csv",
        help="Output format.",
    )
    parser.add_argument(
        "--max-domains",
        type=int,
        default=DEFAULT_MAX_DOMAINS_IN_FLIGHT,
        help="Domains crawled in parallel.",
    )
    parser.add_argument(
        "--max-pages-per-domain",
        type=int,
        default=DEFAULT_MAX_PAGES_PER_DOMAIN,
        help="Upper limit of pages fetched per domain.",
    )
    parser.add_argument(
        "--max-total-pages",
        type=int,
        default=DEFAULT_MAX_TOTAL_PAGES,
        help="Upper limit of pages fetched per run.",
    )
    parser.add_argument(
        "--politeness-delay-ms",
        type=int,
        default=DEFAULT_POLITENESS_DELAY_MS,
        help="Minimum delay between requests to the same domain.",
    )
    parser.add_argument(
        "--retry-budget",
        type=int,
        default=DEFAULT_RETRY_BUDGET,
        help="Fetch attempts per page before giving up.",
    )
    parser.add_argument(
        "--backoff-base",
        type=float,
        default=DEFAULT_BACKOFF_BASE,
        help="First retry delay in seconds; doubles on each attempt.",
    )
    parser.add_argument(
        "--timeout", type=float, default=DEFAULT_REQUEST_TIMEOUT, help="Per-request timeout."
    )
    parser.add_argument(
        "--max-page-bytes",
        type=int,
        default=DEFAULT_MAX_PAGE_BYTES,
        help="Pages larger than this are skipped.",
    )
    parser.add_argument(
        "--link-patterns",
        nargs="+",
        default=list(DEFAULT_LINK_PATTERNS),
        help="Path keywords of same-site pages worth crawling.",
    )
    parser.add_argument("--ignore-robots", action="store_true", help="Do not consult robots.txt.")
    parser.add_argument(
        "--no-domain-check", action="store_true", help="Skip the MX/A record validation tier."
    )
    parser.add_argument(
        "--mailbox-probe",
        action="store_true",
        help="Enable the SMTP RCPT probe tier (no mail is sent).",
    )
    parser.add_argument(
        "--probe-from", default=DEFAULT_PROBE_FROM, help="MAIL FROM address for mailbox probes."
    )
    parser.add_argument(
        "--merge-policy",
        choices=MERGE_POLICIES,
        default="max",
        help="How repeated sightings combine their confidence.",
    )
    parser.add_argument("--no-progress", action="store_true", help="Disable tqdm progress bars.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse and pre-validate CLI input."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not (args.domains or args.domains_file or args.validate_file):
        parser.error("Provide --domains, --domains-file, or --validate-file.")
    return args


def _materialize_seeds(args: argparse.Namespace) -> tuple[str, ...]:
    if args.domains:
        return tuple(args.domains)
    if args.domains_file:
        return tuple(load_lines_from_file(args.domains_file))
    return tuple()


def namespace_to_config(args: argparse.Namespace) -> DiscoveryConfig:
    """Convert CLI args to validated DiscoveryConfig."""
    seeds = _materialize_seeds(args)
    if not seeds and not args.validate_file:
        raise ConfigError("No seed domains found.")
    return DiscoveryConfig(
        seeds=seeds,
        output=args.output,
        export_format=args.export_format,
        max_domains_in_flight=args.max_domains,
        max_pages_per_domain=args.max_pages_per_domain,
        max_total_pages=args.max_total_pages,
        politeness_delay_ms=args.politeness_delay_ms,
        retry_budget=args.retry_budget,
        backoff_base=args.backoff_base,
        request_timeout=args.timeout,
        max_page_bytes=args.max_page_bytes,
        respect_robots=not args.ignore_robots,
        link_patterns=tuple(args.link_patterns),
        enable_domain_check=not args.no_domain_check,
        enable_mailbox_probe=bool(args.mailbox_probe),
        probe_from_address=args.probe_from,
        merge_policy=args.merge_policy,
        show_progress=not args.no_progress,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    logger = get_logger()
    try:
        config = namespace_to_config(args)
        addresses = load_addresses(args.validate_file) if args.validate_file else None
    except (ConfigError, OSError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    if addresses is not None:
        output = run_validation_pipeline(config, addresses, logger=logger)
    else:
        output = run_pipeline(config, logger=logger)
    logger.info("Wrote results to %s", output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
