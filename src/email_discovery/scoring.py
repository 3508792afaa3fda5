"""Confidence scoring rules."""

from __future__ import annotations

from .models import ValidationOutcome, Verdict

# (low, high) bounds per validation level; adjustments never leave the band.
INVALID_BAND = (0, 20)
SYNTAX_BAND = (30, 50)
RESOLVED_BAND = (60, 85)
CONFIRMED_BAND = (90, 99)

SOURCE_ADJUSTMENTS = {
    "contact page": 10,
    "staff directory": 10,
    "support page": 5,
    "about page": 5,
    "careers page": 0,
    "press page": 0,
    "footer": 0,
    "uploaded list": 0,
    "page content": -5,
}
OBFUSCATION_PENALTY = -10
MAX_ADJUSTMENT = 10


def tier_reached(outcome: ValidationOutcome) -> str:
    """Name the strongest validation level the outcome supports."""
    if not outcome.is_valid:
        return "invalid"
    if outcome.mailbox == Verdict.PASS:
        return "confirmed"
    if outcome.domain == Verdict.PASS:
        return "resolved"
    return "syntax"


def base_score(outcome: ValidationOutcome) -> tuple[int, tuple[int, int]]:
    """Return the starting score and its band for a validation outcome."""
    level = tier_reached(outcome)
    if level == "invalid":
        # Syntax failures sit lower than unresolvable domains.
        return (5 if not outcome.syntax_ok else 15), INVALID_BAND
    if level == "confirmed":
        return 95, CONFIRMED_BAND
    if level == "resolved":
        if outcome.mailbox == Verdict.FAIL:
            return 30, SYNTAX_BAND
        return (75 if outcome.mx_found else 65), RESOLVED_BAND
    if outcome.domain == Verdict.UNKNOWN:
        return 35, SYNTAX_BAND
    return 40, SYNTAX_BAND


def compute_confidence(
    outcome: ValidationOutcome, source_category: str, obfuscated: bool = False
) -> int:
    """Combine validation level and source context into a 0-100 confidence."""
    score, (low, high) = base_score(outcome)
    adjustment = SOURCE_ADJUSTMENTS.get(source_category, 0)
    if obfuscated:
        adjustment += OBFUSCATION_PENALTY
    score += max(-MAX_ADJUSTMENT, min(MAX_ADJUSTMENT, adjustment))
    score = max(low, min(high, score))
    return max(0, min(100, score))
