"""
Application grouper: flat applications → per-pet groups for the shelter view.

Usage flow
----------
1. Partition applications by ``pet_id`` (first-seen order).
2. Annotate each with the applicant's match percent against that pet and a
   resolved display name.
3. Sort each group by match percent descending (stable).
4. Split each group into active (``submitted``) and previous (decided)
   applications. A pet can appear in both result lists.
5. Order active groups by number of pending applications (desc) and
   previous groups by most recent activity (desc): the newest of the
   applications' ``created_at`` and the pet's ``updated_at``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Sequence

from pawmatch.matching.scorer import match_score_to_percent, score_match
from pawmatch.models.application import Application
from pawmatch.models.document import first_resolved
from pawmatch.models.pet import PetListing, PreferenceSet
from pawmatch.models.user import UserRecord, adopter_name

UNKNOWN_APPLICANT = "Unknown"
UNKNOWN_PET = "Unknown Pet"

_Applicant = tuple[Optional[UserRecord], Application]

# Tried in order; the first non-blank value names the applicant.
APPLICANT_NAME_CHAIN: list[Callable[[_Applicant], Optional[str]]] = [
    lambda src: adopter_name(src[0]) if src[0] else None,
    lambda src: src[0].display_name if src[0] else None,
    lambda src: src[0].email if src[0] else None,
    lambda src: src[1].applicant_name,
    lambda src: src[1].applicant_email,
]


@dataclass(frozen=True)
class AnnotatedApplication:
    application:           Application
    match_score:           float
    match_percent:         int
    has_preferences:       bool
    applicant_name:        str
    applicant_preferences: Optional[PreferenceSet] = None


@dataclass(frozen=True)
class ApplicationGroup:
    """All (active or previous) applications for one pet."""

    pet_id:       str
    pet_name:     str
    pet:          Optional[PetListing]
    applications: tuple[AnnotatedApplication, ...]

    @property
    def last_activity(self) -> float:
        """Newest of application ``created_at`` and pet ``updated_at``; 0 if none."""
        stamps = [a.application.created_at or 0.0 for a in self.applications]
        stamps.append((self.pet.updated_at or 0.0) if self.pet else 0.0)
        return max(stamps)


@dataclass(frozen=True)
class GroupedApplications:
    active:   tuple[ApplicationGroup, ...] = field(default_factory=tuple)
    previous: tuple[ApplicationGroup, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.active and not self.previous


def resolve_applicant_name(user: Optional[UserRecord], application: Application) -> str:
    """Profile name → display name → email → stored name → stored email → "Unknown"."""
    return first_resolved((user, application), APPLICANT_NAME_CHAIN, UNKNOWN_APPLICANT)


def annotate_application(
    application: Application,
    pet:         Optional[PetListing],
    applicant:   Optional[UserRecord],
) -> AnnotatedApplication:
    """Attach match data and a display name to one application."""
    prefs = applicant.preferences if applicant else None
    has_prefs = prefs is not None and not prefs.is_empty
    raw = score_match(pet, prefs) if has_prefs else 0
    return AnnotatedApplication(
        application=application,
        match_score=raw,
        match_percent=match_score_to_percent(raw),
        has_preferences=has_prefs,
        applicant_name=resolve_applicant_name(applicant, application),
        applicant_preferences=prefs,
    )


def group_applications(
    applications: Sequence[Application],
    pets:         Mapping[str, PetListing],
    applicants:   Mapping[str, UserRecord],
) -> GroupedApplications:
    """Group, score, split, and order applications.

    Args:
        applications: Flat application records, any order.
        pets:         ``pet_id`` → listing; missing pets yield "Unknown Pet".
        applicants:   ``applicant_id`` → user record; missing users have no
                      preferences and fall back to the stored name.

    Returns:
        ``GroupedApplications`` with ``active`` and ``previous`` groups.
    """
    by_pet: dict[str, list[AnnotatedApplication]] = {}
    for app in applications:
        annotated = annotate_application(app, pets.get(app.pet_id), applicants.get(app.applicant_id))
        by_pet.setdefault(app.pet_id, []).append(annotated)

    active: list[ApplicationGroup] = []
    previous: list[ApplicationGroup] = []

    for pet_id, items in by_pet.items():
        pet = pets.get(pet_id)
        pet_name = (pet.name if pet and pet.name else None) or UNKNOWN_PET
        ranked = sorted(items, key=lambda a: -a.match_percent)

        pending = tuple(a for a in ranked if a.application.is_active)
        decided = tuple(a for a in ranked if not a.application.is_active)

        if pending:
            active.append(ApplicationGroup(pet_id, pet_name, pet, pending))
        if decided:
            previous.append(ApplicationGroup(pet_id, pet_name, pet, decided))

    active.sort(key=lambda g: -len(g.applications))
    previous.sort(key=lambda g: -g.last_activity)

    return GroupedApplications(active=tuple(active), previous=tuple(previous))
