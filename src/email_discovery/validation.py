"""Input validation and runtime guardrails."""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlparse

from .errors import ConfigError

HOSTNAME_LABEL = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
MERGE_POLICIES = ("max", "mean")
EXPORT_FORMATS = ("csv", "xlsx", "json")


def is_supported_url(url: str) -> bool:
    """Allow only absolute HTTP(S) URLs with a hostname."""
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def is_valid_hostname(host: str) -> bool:
    """Return True for a dotted hostname with a letters-only TLD."""
    if not host or len(host) > 253:
        return False
    labels = host.split(".")
    if len(labels) < 2 or not labels[-1].isalpha() or len(labels[-1]) < 2:
        return False
    return all(HOSTNAME_LABEL.match(label) for label in labels)


def normalize_seed(raw: str) -> str:
    """Reduce a seed (bare domain or URL) to a lowercase hostname."""
    value = raw.strip().lower()
    if "://" not in value:
        value = f"http://{value}"
    host = (urlparse(value).hostname or "").rstrip(".")
    if not is_valid_hostname(host):
        raise ConfigError(f"Invalid seed domain: {raw!r}")
    return host


def normalize_seeds(seeds: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Normalize and dedupe seed domains, keeping first-seen order."""
    output: list[str] = []
    seen: set[str] = set()
    for raw in seeds:
        if not raw.strip():
            continue
        host = normalize_seed(raw)
        if host in seen:
            continue
        seen.add(host)
        output.append(host)
    return tuple(output)


def load_lines_from_file(path: str) -> list[str]:
    """Load non-empty lines from a UTF-8 text file."""
    content = Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in content.splitlines() if line.strip()]


def validate_runtime_constraints(
    *,
    max_domains_in_flight: int,
    max_pages_per_domain: int,
    max_total_pages: int,
    politeness_delay_ms: int,
    retry_budget: int,
    backoff_base: float,
    request_timeout: float,
    max_page_bytes: int,
    max_redirects: int,
    dns_timeout: float,
    smtp_timeout: float,
    merge_policy: str,
    export_format: str,
) -> None:
    """Validate CLI/runtime configuration and raise ConfigError on invalid values."""
    if max_domains_in_flight < 1:
        raise ConfigError("--max-domains must be >= 1.")
    if max_pages_per_domain < 1:
        raise ConfigError("--max-pages-per-domain must be >= 1.")
    if max_total_pages < 1:
        raise ConfigError("--max-total-pages must be >= 1.")
    if politeness_delay_ms < 0:
        raise ConfigError("--politeness-delay-ms must be >= 0.")
    if retry_budget < 1:
        raise ConfigError("--retry-budget must be >= 1.")
    if backoff_base < 0:
        raise ConfigError("--backoff-base must be >= 0.")
    if request_timeout <= 0 or dns_timeout <= 0 or smtp_timeout <= 0:
        raise ConfigError("Timeouts must be > 0.")
    if max_page_bytes < 1:
        raise ConfigError("--max-page-bytes must be >= 1.")
    if max_redirects < 0:
        raise ConfigError("--max-redirects must be >= 0.")
    if merge_policy not in MERGE_POLICIES:
        raise ConfigError(f"--merge-policy must be one of {', '.join(MERGE_POLICIES)}.")
    if export_format not in EXPORT_FORMATS:
        raise ConfigError(f"--format must be one of {', '.join(EXPORT_FORMATS)}.")
