"""Protocols and lightweight model types."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

EMAIL_TYPES = ("contact", "support", "info", "admin", "other")


class TaskState(str, enum.Enum):
    """Lifecycle of one crawl task: queued -> fetching -> parsed | retrying | failed."""

    QUEUED = "queued"
    FETCHING = "fetching"
    RETRYING = "retrying"
    PARSED = "parsed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TaskState.PARSED, TaskState.FAILED)


class Verdict(str, enum.Enum):
    """Outcome of a single validation tier."""

    PASS = "pass"
    FAIL = "fail"
    UNKNOWN = "unknown"
    SKIPPED = "skipped"


@dataclass
class CrawlTask:
    """One page fetch owned by the scheduler until it reaches a terminal state."""

    domain: str
    url: str
    attempts: int = 0
    state: TaskState = TaskState.QUEUED
    last_error: str = ""


@dataclass(frozen=True)
class PageContent:
    """Fetched page body; lives only as long as extraction needs it."""

    url: str
    domain: str
    raw_text: str
    fetched_at: datetime


@dataclass(frozen=True)
class EmailCandidate:
    """An email-like token found on a page, with its source context."""

    raw: str
    address: str
    domain: str
    source_url: str
    source_category: str
    obfuscated: bool = False

    @property
    def local_part(self) -> str:
        return self.address.split("@", maxsplit=1)[0]


@dataclass(frozen=True)
class TierResult:
    """Verdict of one validation tier plus a short reason."""

    tier: str
    verdict: Verdict
    detail: str = ""
    mx_found: bool = False


@dataclass(frozen=True)
class ValidationOutcome:
    """Combined verdicts of the syntax, domain and mailbox tiers."""

    syntax: Verdict = Verdict.SKIPPED
    domain: Verdict = Verdict.SKIPPED
    mailbox: Verdict = Verdict.SKIPPED
    mx_found: bool = False
    details: tuple[str, ...] = ()

    @property
    def syntax_ok(self) -> bool:
        return self.syntax in (Verdict.PASS, Verdict.SKIPPED)

    @property
    def is_valid(self) -> bool:
        return self.syntax_ok and self.domain != Verdict.FAIL


@dataclass(frozen=True)
class Sighting:
    """A candidate after classification, validation and scoring."""

    candidate: EmailCandidate
    email_type: str
    validation: ValidationOutcome
    confidence: int

    @property
    def source(self) -> str:
        return self.candidate.source_category.title()


@dataclass(frozen=True)
class EmailRecord:
    """Deduplicated result row, one per normalized address per run."""

    id: str
    address: str
    domain: str
    is_valid: bool
    source: str
    confidence: int
    type: str
    source_url: str = ""
    sighting_scores: tuple[int, ...] = field(default=(), repr=False)

    @property
    def sightings(self) -> int:
        return len(self.sighting_scores)

    def as_dict(self) -> dict[str, object]:
        """Return the external result shape used by exporters and UIs."""
        return {
            "id": self.id,
            "email": self.address,
            "domain": self.domain,
            "isValid": self.is_valid,
            "source": self.source,
            "confidence": self.confidence,
            "type": self.type,
            "sourceUrl": self.source_url,
        }


@dataclass(frozen=True)
class SearchStats:
    """Point-in-time run totals."""

    total_found: int = 0
    valid_emails: int = 0
    invalid_emails: int = 0
    domains_scanned: int = 0
    pages_scanned: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "totalFound": self.total_found,
            "validEmails": self.valid_emails,
            "invalidEmails": self.invalid_emails,
            "domainsScanned": self.domains_scanned,
            "pagesScanned": self.pages_scanned,
        }


@dataclass(frozen=True)
class RunResult:
    """Records and stats exposed to the presentation layer."""

    records: tuple[EmailRecord, ...]
    stats: SearchStats
    cancelled: bool = False


class Fetcher(Protocol):
    """Contract for page fetchers."""

    def fetch(self, url: str) -> PageContent:
        """Return page content or raise FetchError."""


class ValidationTier(Protocol):
    """Contract for one named validation rule."""

    name: str

    def evaluate(self, address: str) -> TierResult:
        """Return the verdict of this tier for a normalized address."""
