"""
Recommendation pipeline: pets + preferences → bounded, ordered shortlist.

Steps
-----
1. Keep listings whose status is ``active`` and whose id is not excluded
   (the adopter has already applied).
2. No preferences (absent, or no keys) → return the first ``limit`` pets in
   input order, unscored. A score with no basis is never shown.
3. Otherwise score every pet, drop those below ``min_percent``, sort by
   percent descending (stable: ties keep input order), take ``limit``.

Side-effect free; inputs are not mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from pawmatch.matching.scorer import match_score_to_percent, score_match
from pawmatch.models.pet import PetListing, PreferenceSet

DEFAULT_LIMIT = 8
DEFAULT_MIN_PERCENT = 25


@dataclass(frozen=True)
class AnnotatedPet:
    """A recommended pet with its match data.

    ``match_score`` and ``match_percent`` are ``None`` on the unscored
    (no preferences) branch.
    """

    pet:           PetListing
    match_score:   Optional[float] = None
    match_percent: Optional[int] = None

    @property
    def is_scored(self) -> bool:
        return self.match_percent is not None


def available_pets(
    pets: Iterable[PetListing],
    excluded_pet_ids: Iterable[str] = (),
) -> list[PetListing]:
    """Active listings not in ``excluded_pet_ids``, input order preserved."""
    excluded = set(excluded_pet_ids)
    return [pet for pet in pets if pet.is_active and pet.id not in excluded]


def recommend(
    pets:             Sequence[PetListing],
    preferences:      Optional[PreferenceSet],
    excluded_pet_ids: Iterable[str] = (),
    limit:            int = DEFAULT_LIMIT,
    min_percent:      int = DEFAULT_MIN_PERCENT,
) -> list[AnnotatedPet]:
    """Produce the adopter's recommendation list.

    Args:
        pets:             Candidate listings (any status).
        preferences:      Adopter's preferences, or ``None``.
        excluded_pet_ids: Pets the adopter already applied for.
        limit:            Maximum results (default 8).
        min_percent:      Quality floor for scored results (default 25).

    Returns:
        Up to ``limit`` ``AnnotatedPet`` objects.
    """
    candidates = available_pets(pets, excluded_pet_ids)
    limit = max(0, limit)

    if preferences is None or preferences.is_empty:
        return [AnnotatedPet(pet=pet) for pet in candidates[:limit]]

    scored: list[AnnotatedPet] = []
    for pet in candidates:
        raw = score_match(pet, preferences)
        scored.append(AnnotatedPet(pet=pet, match_score=raw, match_percent=match_score_to_percent(raw)))

    kept = [ap for ap in scored if ap.match_percent >= min_percent]
    # sorted() is stable, so equal percentages keep input order
    ranked = sorted(kept, key=lambda ap: -ap.match_percent)
    return ranked[:limit]
