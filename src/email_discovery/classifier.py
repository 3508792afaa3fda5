"""Role classification rules for discovered addresses."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .models import EmailCandidate

LOCAL_SEPARATORS = re.compile(r"[._+\-]")
CONTACT_CATEGORIES = frozenset({"contact page"})
GENERIC_LOCAL_PARTS = frozenset(
    {
        "contact",
        "contactus",
        "emergency",
        "enquiries",
        "enquiry",
        "general",
        "hello",
        "inquiries",
        "mail",
        "office",
        "reception",
        "sales",
        "team",
    }
)


@dataclass(frozen=True)
class RoleTokenRule:
    """Match the local part exactly or by a leading token, e.g. ``help`` in ``help-desk``."""

    name: str
    tokens: tuple[str, ...]
    email_type: str

    def evaluate(self, local_part: str, source_category: str) -> str | None:
        first_token = LOCAL_SEPARATORS.split(local_part, maxsplit=1)[0]
        for token in self.tokens:
            if local_part == token or first_token == token or local_part.startswith(token):
                return self.email_type
        return None


@dataclass(frozen=True)
class ContactSourceRule:
    """Generic mailbox names found on a contact-flavoured page are contact addresses."""

    name: str = "contact-source"
    generic_local_parts: frozenset[str] = GENERIC_LOCAL_PARTS
    categories: frozenset[str] = CONTACT_CATEGORIES

    def evaluate(self, local_part: str, source_category: str) -> str | None:
        first_token = LOCAL_SEPARATORS.split(local_part, maxsplit=1)[0]
        if source_category not in self.categories:
            return None
        if local_part in self.generic_local_parts or first_token in self.generic_local_parts:
            return "contact"
        return None


DEFAULT_RULES: tuple[RoleTokenRule | ContactSourceRule, ...] = (
    RoleTokenRule("info", ("info",), "info"),
    RoleTokenRule("admin", ("admin", "webmaster", "hostmaster", "postmaster"), "admin"),
    RoleTokenRule("support", ("support", "help"), "support"),
    ContactSourceRule(),
)


class Classifier:
    """Evaluate rules in priority order; the first match decides the type."""

    def __init__(self, rules: Sequence[RoleTokenRule | ContactSourceRule] = DEFAULT_RULES) -> None:
        self._rules = tuple(rules)

    def classify(self, local_part: str, source_category: str) -> str:
        local_part = local_part.lower()
        for rule in self._rules:
            email_type = rule.evaluate(local_part, source_category)
            if email_type is not None:
                return email_type
        return "other"

    def classify_candidate(self, candidate: EmailCandidate) -> str:
        return self.classify(candidate.local_part, candidate.source_category)


def classify(local_part: str, source_category: str) -> str:
    """Classify with the default rule set."""
    return Classifier().classify(local_part, source_category)
