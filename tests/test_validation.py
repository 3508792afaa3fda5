from pathlib import Path
from typing import Any

import pytest

from email_discovery.config import DiscoveryConfig
from email_discovery.errors import ConfigError
from email_discovery.validation import (
    is_supported_url,
    is_valid_hostname,
    load_lines_from_file,
    normalize_seed,
    normalize_seeds,
    validate_runtime_constraints,
)

VALID_CONSTRAINTS: dict[str, Any] = {
    "max_domains_in_flight": 4,
    "max_pages_per_domain": 5,
    "max_total_pages": 50,
    "politeness_delay_ms": 0,
    "retry_budget": 3,
    "backoff_base": 0.5,
    "request_timeout": 10.0,
    "max_page_bytes": 1024,
    "max_redirects": 5,
    "dns_timeout": 5.0,
    "smtp_timeout": 5.0,
    "merge_policy": "max",
    "export_format": "csv",
}


def test_is_supported_url() -> None:
    assert is_supported_url("https://example.com/a") is True
    assert is_supported_url("ftp://example.com/file") is False
    assert is_supported_url("https://") is False


@pytest.mark.parametrize(
    ("host", "expected"),
    [
        ("example.com", True),
        ("sub.example.co.uk", True),
        ("localhost", False),
        ("example.c0m", False),
        ("-bad.example.com", False),
        ("", False),
    ],
)
def test_is_valid_hostname(host: str, expected: bool) -> None:
    assert is_valid_hostname(host) is expected


def test_normalize_seed_accepts_domains_and_urls() -> None:
    assert normalize_seed("Example.COM") == "example.com"
    assert normalize_seed("https://www.example.com/contact?x=1") == "www.example.com"
    with pytest.raises(ConfigError):
        normalize_seed("not a domain")


def test_normalize_seeds_dedupes_in_order() -> None:
    seeds = ["b.example.com", "", "A.example.com", "https://b.example.com/"]
    assert normalize_seeds(seeds) == ("b.example.com", "a.example.com")


def test_validate_runtime_constraints_accepts_defaults() -> None:
    validate_runtime_constraints(**VALID_CONSTRAINTS)


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("max_domains_in_flight", 0),
        ("max_pages_per_domain", 0),
        ("max_total_pages", 0),
        ("politeness_delay_ms", -1),
        ("retry_budget", 0),
        ("backoff_base", -0.1),
        ("request_timeout", 0),
        ("dns_timeout", -1),
        ("max_page_bytes", 0),
        ("max_redirects", -1),
        ("merge_policy", "median"),
        ("export_format", "pdf"),
    ],
)
def test_validate_runtime_constraints_rejects_bad_values(field: str, value: object) -> None:
    with pytest.raises(ConfigError):
        validate_runtime_constraints(**{**VALID_CONSTRAINTS, field: value})


def test_discovery_config_normalizes_inputs() -> None:
    config = DiscoveryConfig(
        seeds=("Example.com", "example.com", "https://example.org/about"),
        link_patterns=(" Contact ", "", "TEAM"),
        politeness_delay_ms=250,
    )
    assert config.seeds == ("example.com", "example.org")
    assert config.link_patterns == ("contact", "team")
    assert config.politeness_delay == 0.25


def test_discovery_config_rejects_invalid_values() -> None:
    with pytest.raises(ConfigError):
        DiscoveryConfig(max_domains_in_flight=0)
    with pytest.raises(ConfigError):
        DiscoveryConfig(seeds=("bad seed",))


def test_load_lines_from_file(tmp_path: Path) -> None:
    sample = tmp_path / "sample.txt"
    sample.write_text("one\n\n two \n", encoding="utf-8")
    assert load_lines_from_file(str(sample)) == ["one", "two"]
