"""
Role-specific dashboard summaries derived from the live pet and
application views.

``dashboard_stats`` dispatches on ``Role``; ``build_adopter_dashboard``
combines the stats with the recommendation pipeline for adopters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from pawmatch.models.application import Application
from pawmatch.models.pet import PetListing, PreferenceSet
from pawmatch.recommendations.pipeline import (
    DEFAULT_LIMIT,
    DEFAULT_MIN_PERCENT,
    AnnotatedPet,
    available_pets,
    recommend,
)
from pawmatch.taxonomy.pet_taxonomy import ApplicationStatus, Role

DEFAULT_RECENT_APPLICATIONS = 8


def dashboard_stats(
    role:         Role,
    pets:         Sequence[PetListing],
    applications: Sequence[Application],
) -> dict[str, int]:
    """Headline counters for the given role.

    adopter → submitted / approved / closed (rejected)
    shelter → active / total listings, pending applications
    admin   → total pets, total applications, pending
    """
    pending = sum(1 for a in applications if a.status == ApplicationStatus.SUBMITTED)

    if role == Role.ADOPTER:
        return {
            "submitted": pending,
            "approved": sum(1 for a in applications if a.status == ApplicationStatus.APPROVED),
            "closed": sum(1 for a in applications if a.status == ApplicationStatus.REJECTED),
        }
    if role == Role.SHELTER:
        return {
            "active": sum(1 for p in pets if p.is_active),
            "total": len(pets),
            "pending_apps": pending,
        }
    if role == Role.ADMIN:
        return {
            "total_pets": len(pets),
            "total_apps": len(applications),
            "pending": pending,
        }
    raise ValueError(f"Unhandled role: {role!r}")


def has_available_pets(pets: Sequence[PetListing], excluded_pet_ids: Iterable[str] = ()) -> bool:
    return bool(available_pets(pets, excluded_pet_ids))


@dataclass(frozen=True)
class AdopterDashboard:
    stats:               dict[str, int]
    recommendations:     list[AnnotatedPet]
    has_available_pets:  bool
    recent_applications: list[Application]


def build_adopter_dashboard(
    pets:         Sequence[PetListing],
    applications: Sequence[Application],
    preferences:  Optional[PreferenceSet],
    limit:        int = DEFAULT_LIMIT,
    min_percent:  int = DEFAULT_MIN_PERCENT,
    recent_limit: int = DEFAULT_RECENT_APPLICATIONS,
) -> AdopterDashboard:
    """Stats, recommendations, recent applications, and whether any
    unapplied listing exists.

    ``applications`` is expected newest first, as the live feed sorts them;
    ``recent_applications`` keeps the first ``recent_limit`` of them. Stats
    and the applied-pet exclusion always use the full list.

    ``has_available_pets`` lets the caller tell "nothing matches your
    preferences" apart from "no listings at all".
    """
    applied = {a.pet_id for a in applications}
    return AdopterDashboard(
        stats=dashboard_stats(Role.ADOPTER, pets, applications),
        recommendations=recommend(pets, preferences, applied, limit=limit, min_percent=min_percent),
        has_available_pets=has_available_pets(pets, applied),
        recent_applications=list(applications[:max(recent_limit, 0)]),
    )
