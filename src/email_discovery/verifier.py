"""Tiered address validation: syntax, domain resolvability, mailbox probe."""

from __future__ import annotations

import logging
import smtplib
import socket
from collections.abc import Callable, Sequence
from threading import Lock

import dns.exception
import dns.resolver

from .config import DiscoveryConfig
from .errors import ValidationError
from .extraction import is_valid_syntax
from .models import TierResult, ValidationOutcome, ValidationTier, Verdict

SmtpFactory = Callable[..., smtplib.SMTP]

DEFINITE_REJECT_CODES = frozenset({550, 551, 553})
NONEXISTENT_HINTS = (
    "does not exist",
    "no such user",
    "not found",
    "recipient rejected",
    "unknown user",
    "user unknown",
    "mailbox unavailable",
    "invalid recipient",
    "no mailbox",
)


class SyntaxTier:
    """Fail fast on addresses outside the accepted grammar."""

    name = "syntax"

    def evaluate(self, address: str) -> TierResult:
        if is_valid_syntax(address):
            return TierResult(self.name, Verdict.PASS)
        return TierResult(self.name, Verdict.FAIL, "address does not match email grammar")


class DomainTier:
    """Require an MX (or fallback A/AAAA) record for the address domain.

    Resolver timeouts and server failures yield ``Unknown`` rather than a
    hard failure. Pass and fail verdicts are cached per domain for the
    lifetime of the tier; ``Unknown`` is looked up again next time.
    """

    name = "domain"

    def __init__(self, *, timeout: float, logger: logging.Logger) -> None:
        self._timeout = timeout
        self._logger = logger
        self._cache: dict[str, tuple[TierResult, tuple[str, ...]]] = {}
        self._lock = Lock()

    def evaluate(self, address: str) -> TierResult:
        domain = address.rpartition("@")[2]
        return self._lookup(domain)[0]

    def mx_hosts(self, domain: str) -> tuple[str, ...]:
        """Return MX hosts ordered by preference (empty when unknown or A-only)."""
        return self._lookup(domain)[1]

    def _lookup(self, domain: str) -> tuple[TierResult, tuple[str, ...]]:
        with self._lock:
            cached = self._cache.get(domain)
        if cached is not None:
            return cached
        try:
            entry = self._resolve(domain)
        except ValidationError as exc:
            self._logger.debug("Domain check inconclusive for %s: %s", domain, exc)
            return TierResult(self.name, Verdict.UNKNOWN, str(exc)), ()
        with self._lock:
            self._cache.setdefault(domain, entry)
            return self._cache[domain]

    def _resolve(self, domain: str) -> tuple[TierResult, tuple[str, ...]]:
        try:
            answers = dns.resolver.resolve(domain, "MX", lifetime=self._timeout)
            records = sorted(answers, key=lambda record: record.preference)
            hosts = tuple(
                str(record.exchange).rstrip(".")
                for record in records
                if str(record.exchange) != "."
            )
            if not hosts:
                return TierResult(self.name, Verdict.FAIL, "null MX record"), ()
            return TierResult(self.name, Verdict.PASS, "mx", mx_found=True), hosts
        except dns.resolver.NXDOMAIN:
            return TierResult(self.name, Verdict.FAIL, "domain does not exist"), ()
        except dns.resolver.NoAnswer:
            return self._resolve_address_record(domain), ()
        except (dns.resolver.NoNameservers, dns.exception.Timeout) as exc:
            raise ValidationError(f"resolver failure for {domain}: {exc}") from exc
        except dns.exception.DNSException as exc:
            raise ValidationError(f"DNS error for {domain}: {exc}") from exc

    def _resolve_address_record(self, domain: str) -> TierResult:
        for rdtype in ("A", "AAAA"):
            try:
                if dns.resolver.resolve(domain, rdtype, lifetime=self._timeout):
                    return TierResult(self.name, Verdict.PASS, rdtype.lower())
            except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN):
                continue
            except dns.exception.DNSException as exc:
                raise ValidationError(f"DNS error for {domain}: {exc}") from exc
        return TierResult(self.name, Verdict.FAIL, "no MX or address records")


class MailboxProbeTier:
    """Ask the domain's mail exchanger whether it accepts RCPT TO for the address.

    No message is sent: the session stops after RCPT and issues QUIT. Only an
    explicit "no such user" rejection counts as a failure; greylisting,
    policy blocks and connection problems are ``Unknown``.
    """

    name = "mailbox"

    def __init__(
        self,
        *,
        mx_lookup: Callable[[str], tuple[str, ...]],
        from_address: str,
        helo_domain: str,
        timeout: float,
        logger: logging.Logger,
        smtp_factory: SmtpFactory = smtplib.SMTP,
        max_hosts: int = 2,
    ) -> None:
        self._mx_lookup = mx_lookup
        self._from_address = from_address
        self._helo_domain = helo_domain
        self._timeout = timeout
        self._logger = logger
        self._smtp_factory = smtp_factory
        self._max_hosts = max_hosts

    def evaluate(self, address: str) -> TierResult:
        domain = address.rpartition("@")[2]
        hosts = self._mx_lookup(domain)
        if not hosts:
            return TierResult(self.name, Verdict.UNKNOWN, "no MX host to probe")
        for host in hosts[: self._max_hosts]:
            try:
                code, message = self._probe(host, address)
            except ValidationError as exc:
                self._logger.debug("Mailbox probe via %s inconclusive: %s", host, exc)
                continue
            return self._interpret(code, message)
        return TierResult(self.name, Verdict.UNKNOWN, "no MX host answered")

    def _probe(self, host: str, address: str) -> tuple[int, str]:
        try:
            server = self._smtp_factory(
                host, 25, local_hostname=self._helo_domain, timeout=self._timeout
            )
        except (smtplib.SMTPException, OSError) as exc:
            raise ValidationError(f"connect to {host} failed: {exc}") from exc
        try:
            server.ehlo_or_helo_if_needed()
            mail_code, _ = server.mail(self._from_address)
            if mail_code >= 400:
                return mail_code, "sender rejected"
            code, message = server.rcpt(address)
            return code, (message or b"").decode(errors="ignore")
        except (smtplib.SMTPException, OSError) as exc:
            raise ValidationError(f"probe via {host} failed: {exc}") from exc
        finally:
            try:
                server.quit()
            except (smtplib.SMTPException, OSError):
                server.close()

    def _interpret(self, code: int, message: str) -> TierResult:
        detail = f"{code} {message}".strip()
        if code in (250, 251):
            return TierResult(self.name, Verdict.PASS, detail)
        lowered = message.lower()
        if code in DEFINITE_REJECT_CODES and any(hint in lowered for hint in NONEXISTENT_HINTS):
            return TierResult(self.name, Verdict.FAIL, detail)
        return TierResult(self.name, Verdict.UNKNOWN, detail)


class TieredValidator:
    """Run tiers in order; a tier runs only when every earlier tier passed."""

    def __init__(self, tiers: Sequence[ValidationTier]) -> None:
        self._tiers = tuple(tiers)

    @property
    def tier_names(self) -> tuple[str, ...]:
        return tuple(tier.name for tier in self._tiers)

    def validate(self, address: str) -> ValidationOutcome:
        verdicts: dict[str, Verdict] = {}
        details: list[str] = []
        mx_found = False
        blocked = False
        for tier in self._tiers:
            if blocked:
                verdicts[tier.name] = Verdict.SKIPPED
                continue
            result = tier.evaluate(address)
            verdicts[tier.name] = result.verdict
            mx_found = mx_found or result.mx_found
            if result.detail:
                details.append(f"{tier.name}: {result.detail}")
            blocked = result.verdict != Verdict.PASS
        return ValidationOutcome(
            syntax=verdicts.get("syntax", Verdict.SKIPPED),
            domain=verdicts.get("domain", Verdict.SKIPPED),
            mailbox=verdicts.get("mailbox", Verdict.SKIPPED),
            mx_found=mx_found,
            details=tuple(details),
        )


def build_validator(config: DiscoveryConfig, *, logger: logging.Logger) -> TieredValidator:
    """Assemble the enabled tiers for a run."""
    tiers: list[ValidationTier] = []
    if config.enable_syntax_check:
        tiers.append(SyntaxTier())
    if config.enable_domain_check:
        domain_tier = DomainTier(timeout=config.dns_timeout, logger=logger)
        tiers.append(domain_tier)
        if config.enable_mailbox_probe:
            tiers.append(
                MailboxProbeTier(
                    mx_lookup=domain_tier.mx_hosts,
                    from_address=config.probe_from_address,
                    helo_domain=config.probe_from_address.partition("@")[2] or socket.getfqdn(),
                    timeout=config.smtp_timeout,
                    logger=logger,
                )
            )
    elif config.enable_mailbox_probe:
        logger.warning("Mailbox probe needs the domain check; probe disabled for this run.")
    return TieredValidator(tiers)
