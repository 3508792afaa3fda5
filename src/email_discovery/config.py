"""Runtime configuration model."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .validation import normalize_seeds, validate_runtime_constraints

DEFAULT_USER_AGENT = os.getenv(
    "EMAIL_DISCOVERY_USER_AGENT", "EmailDiscovery/1.0 (+contact-discovery crawler)"
)
DEFAULT_MAX_DOMAINS_IN_FLIGHT = 8
DEFAULT_MAX_PAGES_PER_DOMAIN = 10
DEFAULT_MAX_TOTAL_PAGES = 500
DEFAULT_POLITENESS_DELAY_MS = 1000
DEFAULT_RETRY_BUDGET = 3
DEFAULT_BACKOFF_BASE = 0.5
DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_MAX_PAGE_BYTES = 2 * 1024 * 1024
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_DNS_TIMEOUT = 8.0
DEFAULT_SMTP_TIMEOUT = 10.0
DEFAULT_PROBE_FROM = "probe@example.com"
DEFAULT_LINK_PATTERNS = (
    "contact",
    "about",
    "staff",
    "team",
    "careers",
    "jobs",
    "support",
    "press",
    "imprint",
)


@dataclass(frozen=True)
class DiscoveryConfig:
    """Validated configuration used by the discovery pipeline."""

    seeds: tuple[str, ...] = ()
    output: str = "emails_output.csv"
    export_format: str = "csv"
    max_domains_in_flight: int = DEFAULT_MAX_DOMAINS_IN_FLIGHT
    max_pages_per_domain: int = DEFAULT_MAX_PAGES_PER_DOMAIN
    max_total_pages: int = DEFAULT_MAX_TOTAL_PAGES
    politeness_delay_ms: int = DEFAULT_POLITENESS_DELAY_MS
    retry_budget: int = DEFAULT_RETRY_BUDGET
    backoff_base: float = DEFAULT_BACKOFF_BASE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_page_bytes: int = DEFAULT_MAX_PAGE_BYTES
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    user_agent: str = DEFAULT_USER_AGENT
    respect_robots: bool = True
    link_patterns: tuple[str, ...] = DEFAULT_LINK_PATTERNS
    enable_syntax_check: bool = True
    enable_domain_check: bool = True
    enable_mailbox_probe: bool = False
    dns_timeout: float = DEFAULT_DNS_TIMEOUT
    smtp_timeout: float = DEFAULT_SMTP_TIMEOUT
    probe_from_address: str = DEFAULT_PROBE_FROM
    merge_policy: str = "max"
    show_progress: bool = True

    def __post_init__(self) -> None:
        validate_runtime_constraints(
            max_domains_in_flight=self.max_domains_in_flight,
            max_pages_per_domain=self.max_pages_per_domain,
            max_total_pages=self.max_total_pages,
            politeness_delay_ms=self.politeness_delay_ms,
            retry_budget=self.retry_budget,
            backoff_base=self.backoff_base,
            request_timeout=self.request_timeout,
            max_page_bytes=self.max_page_bytes,
            max_redirects=self.max_redirects,
            dns_timeout=self.dns_timeout,
            smtp_timeout=self.smtp_timeout,
            merge_policy=self.merge_policy,
            export_format=self.export_format,
        )
        object.__setattr__(self, "seeds", normalize_seeds(self.seeds))
        object.__setattr__(
            self, "link_patterns", tuple(p.strip().lower() for p in self.link_patterns if p.strip())
        )

    @property
    def politeness_delay(self) -> float:
        """Politeness delay in seconds."""
        return self.politeness_delay_ms / 1000.0
