"""
Match scoring: compares an adopter's ``PreferenceSet`` with a ``PetListing``.

Score formula (additive, range 0–145)
-------------------------------------
    total = Type(50) + Size(25) + Temperament(25) + Age(25)
            + Breed(10) + Gender(5) + Color(5)

Per-field rules (evaluated in order, first match wins)
-------------------------------------------------------
    1. NO_PREFERENCE : preference blank             → full weight
    2. MISSING_VALUE : pet value blank              → 0
    3. EXACT         : trimmed, case-folded equal   → full weight
    4. CLOSE         : Size / Age only, adjacent in
                       SIZE_ORDER / AGE_ORDER       → half weight
    5. MISMATCH      : anything else                → 0

A preference object with no keys at all scores 0 overall: the adopter has
not taken the quiz, which is different from answering "no preference" to
every question (that scores 145).

``describe_match_score`` renders the same breakdown as text; it calls
``score_breakdown`` just like ``score_match`` so the two never disagree.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Optional

from pawmatch.models.pet import PetListing, PreferenceSet
from pawmatch.taxonomy.pet_taxonomy import AGE_ORDER, SIZE_ORDER


class FieldOutcome(StrEnum):
    NO_PREFERENCE = "no_preference"
    MISSING_VALUE = "missing_value"
    EXACT = "exact"
    CLOSE = "close"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class FieldRule:
    """How one attribute is scored."""

    label:          str
    attr:           str
    weight:         float
    ordered_values: tuple[str, ...] = ()


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("Type",        "animal_type", 50),
    FieldRule("Size",        "size",        25, SIZE_ORDER),
    FieldRule("Temperament", "temperament", 25),
    FieldRule("Age",         "age_range",   25, AGE_ORDER),
    FieldRule("Breed",       "breed",       10),
    FieldRule("Gender",      "gender",       5),
    FieldRule("Color",       "color",        5),
)

MAX_MATCH_SCORE: float = sum(rule.weight for rule in FIELD_RULES)  # 145

NO_PREFERENCES_MESSAGE = "No preferences set yet. Take the quiz to get personalized matches."
LISTING_UNAVAILABLE_MESSAGE = "Listing unavailable."


@dataclass(frozen=True)
class FieldScore:
    """One field's contribution to a match score.

    Attributes:
        label:   Display label, e.g. ``"Size"``.
        points:  Points awarded (0, half weight, or full weight).
        weight:  Maximum points for this field.
        outcome: Which rule fired.
        detail:  One-line explanation, e.g. ``"+12.5 Size: Close (Medium vs Large)"``.
    """

    label:   str
    points:  float
    weight:  float
    outcome: FieldOutcome
    detail:  str


@dataclass(frozen=True)
class MatchResult:
    """Score, percentage, and ordered per-field breakdown for one pair."""

    raw_score: float
    percent:   int
    breakdown: tuple[FieldScore, ...]


# ── Core scoring ──────────────────────────────────────────────────────────────

def score_field(rule: FieldRule, pref: Any, pet_value: Any) -> FieldScore:
    """Apply the per-field rules to one preference/pet value pair."""
    label, weight = rule.label, rule.weight

    if _is_empty(pref):
        return FieldScore(
            label, weight, weight, FieldOutcome.NO_PREFERENCE,
            f"+{format_points(weight)} {label}: No preference (counts as match)",
        )

    if _is_empty(pet_value):
        return FieldScore(
            label, 0, weight, FieldOutcome.MISSING_VALUE,
            f"+0 {label}: Listing missing value",
        )

    pref_norm = _normalize(pref)
    pet_norm = _normalize(pet_value)

    if pref_norm == pet_norm:
        return FieldScore(
            label, weight, weight, FieldOutcome.EXACT,
            f"+{format_points(weight)} {label}: Matches ({pet_value})",
        )

    if rule.ordered_values and pref_norm in rule.ordered_values and pet_norm in rule.ordered_values:
        distance = abs(rule.ordered_values.index(pref_norm) - rule.ordered_values.index(pet_norm))
        if distance == 1:
            half = weight / 2
            return FieldScore(
                label, half, weight, FieldOutcome.CLOSE,
                f"+{format_points(half)} {label}: Close ({pref} vs {pet_value})",
            )

    return FieldScore(
        label, 0, weight, FieldOutcome.MISMATCH,
        f"+0 {label}: Preferred {pref or 'N/A'}, pet is {pet_value or 'N/A'}",
    )


def score_breakdown(pet: PetListing, preferences: PreferenceSet) -> tuple[FieldScore, ...]:
    """Score every field in ``FIELD_RULES`` order."""
    return tuple(
        score_field(rule, getattr(preferences, rule.attr), getattr(pet, rule.attr))
        for rule in FIELD_RULES
    )


def score_match(pet: Optional[PetListing], preferences: Optional[PreferenceSet]) -> float:
    """Raw additive compatibility score in ``[0, MAX_MATCH_SCORE]``.

    Returns 0 when the pet is absent or the preferences are absent or carry
    no keys. Never raises for well-typed input.
    """
    if pet is None or preferences is None or preferences.is_empty:
        return 0
    return sum(field.points for field in score_breakdown(pet, preferences))


def match_score_to_percent(score: Optional[float]) -> int:
    """Convert a raw score to an integer percentage in ``[0, 100]``.

    Rounds half up. ``None``, zero, and negative scores map to 0.
    """
    if not score or score <= 0:
        return 0
    pct = math.floor(score / MAX_MATCH_SCORE * 100 + 0.5)
    return int(_clamp(pct, 0, 100))


def evaluate_match(pet: Optional[PetListing], preferences: Optional[PreferenceSet]) -> MatchResult:
    """Full ``MatchResult`` for one pair; empty breakdown when unscorable."""
    if pet is None or preferences is None or preferences.is_empty:
        return MatchResult(raw_score=0, percent=0, breakdown=())
    breakdown = score_breakdown(pet, preferences)
    raw = sum(field.points for field in breakdown)
    return MatchResult(raw_score=raw, percent=match_score_to_percent(raw), breakdown=breakdown)


def describe_match_score(pet: Optional[PetListing], preferences: Optional[PreferenceSet]) -> str:
    """Multi-line explanation of where a match score came from.

    Example::

        Match score: 132.5 pts (91%) of 145
        +50 Type: Matches (Dog)
        +12.5 Size: Close (Medium vs Large)
        ...
    """
    if pet is None:
        return LISTING_UNAVAILABLE_MESSAGE
    if preferences is None or preferences.is_empty:
        return NO_PREFERENCES_MESSAGE

    result = evaluate_match(pet, preferences)
    header = (
        f"Match score: {format_points(result.raw_score)} pts "
        f"({result.percent}%) of {format_points(MAX_MATCH_SCORE)}"
    )
    return "\n".join([header, *(field.detail for field in result.breakdown)])


# ── Presentation tiers ────────────────────────────────────────────────────────

class MatchTier(StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    NO_PREFERENCES = "no_prefs"


@dataclass(frozen=True)
class MatchBadge:
    tier:  MatchTier
    label: str


def match_tier(percent: int) -> MatchTier:
    """Card tier for recommendation lists: 80 / 50 / 25 thresholds."""
    if percent >= 80:
        return MatchTier.EXCELLENT
    if percent >= 50:
        return MatchTier.GOOD
    if percent >= 25:
        return MatchTier.FAIR
    return MatchTier.POOR


def match_badge(percent: int, has_preferences: bool) -> MatchBadge:
    """Badge shown next to an applicant in the shelter's application list."""
    if not has_preferences:
        return MatchBadge(MatchTier.NO_PREFERENCES, "No Preferences")
    if percent >= 80:
        return MatchBadge(MatchTier.EXCELLENT, f"{percent}% Match")
    if percent >= 50:
        return MatchBadge(MatchTier.GOOD, f"{percent}% Match")
    if percent > 0:
        return MatchBadge(MatchTier.FAIR, f"{percent}% Match")
    return MatchBadge(MatchTier.POOR, "0% Match")


# ── Helpers ───────────────────────────────────────────────────────────────────

def format_points(value: float) -> str:
    """``50`` → ``"50"``, ``12.5`` → ``"12.5"``."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}".rstrip("0").rstrip(".")


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _normalize(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
