"""
Role-aware query plans for the live feeds.

Each plan names a source and pairs an ordered primary query with the
unordered fallback used when the store cannot serve the ordering.

    pets          shelter → own listings, staff limit
                  admin   → all listings, staff limit
                  adopter → all listings, adopter limit
    applications  adopter → own applications
                  shelter → applications to the shelter
                  admin   → all applications
    threads       adopter/shelter → as adopter + as shelter
                  admin           → the above + every thread
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from pawmatch.live.merger import LiveCollectionMerger, SortPolicy
from pawmatch.live.query import DocumentStore, Query
from pawmatch.taxonomy.pet_taxonomy import Role

PETS = "pets"
APPLICATIONS = "applications"
THREADS = "threads"
USERS = "users"

ADOPTER_PET_LIMIT = 50
STAFF_PET_LIMIT = 25

PETS_SORT = SortPolicy("createdAt")
APPLICATIONS_SORT = SortPolicy("createdAt")
THREADS_SORT = SortPolicy("lastMessageAt")

PETS_FAILURE_MESSAGE = "Failed to load listings."
APPLICATIONS_FAILURE_MESSAGE = "Failed to load applications."
THREADS_FAILURE_MESSAGE = "Failed to load conversations."


@dataclass(frozen=True)
class FeedPlan:
    name:     str
    primary:  Query
    fallback: Optional[Query]


def _plan(name: str, primary: Query) -> FeedPlan:
    return FeedPlan(name=name, primary=primary, fallback=primary.unordered())


def pet_feed_plan(
    role:          Role,
    uid:           str,
    adopter_limit: int = ADOPTER_PET_LIMIT,
    staff_limit:   int = STAFF_PET_LIMIT,
) -> FeedPlan:
    base = Query(PETS).ordered("createdAt")
    if role == Role.SHELTER:
        return _plan("own_listings", base.where("shelterId", uid).limited(staff_limit))
    if role == Role.ADMIN:
        return _plan("all_listings", base.limited(staff_limit))
    if role == Role.ADOPTER:
        return _plan("all_listings", base.limited(adopter_limit))
    raise ValueError(f"Unhandled role: {role!r}")


def application_feed_plan(role: Role, uid: str) -> FeedPlan:
    base = Query(APPLICATIONS).ordered("createdAt")
    if role == Role.ADOPTER:
        return _plan("as_applicant", base.where("applicantId", uid))
    if role == Role.SHELTER:
        return _plan("as_shelter", base.where("shelterId", uid))
    if role == Role.ADMIN:
        return _plan("all_applications", base)
    raise ValueError(f"Unhandled role: {role!r}")


def thread_feed_plans(role: Role, uid: str) -> list[FeedPlan]:
    """A user can sit on either side of a thread, so both sides are watched."""
    base = Query(THREADS).ordered("lastMessageAt")
    plans = [
        _plan("as_adopter", base.where("adopterId", uid)),
        _plan("as_shelter", base.where("shelterId", uid)),
    ]
    if role == Role.ADMIN:
        plans.append(_plan("all_threads", base))
    elif role not in (Role.ADOPTER, Role.SHELTER):
        raise ValueError(f"Unhandled role: {role!r}")
    return plans


def open_feed(
    store:           DocumentStore,
    plans:           Iterable[FeedPlan],
    sort_policy:     Optional[SortPolicy],
    failure_message: str,
) -> LiveCollectionMerger:
    """Subscribe every plan into one merger; the caller must ``close()`` it."""
    merger = LiveCollectionMerger(store, sort_policy, failure_message)
    for plan in plans:
        merger.add_source(plan.name, plan.primary, plan.fallback)
    return merger


def required_indexes() -> list[tuple[str, tuple[str, ...]]]:
    """Composite indexes the primary queries of every role need."""
    seen: dict[tuple[str, tuple[str, ...]], None] = {}
    for role in Role:
        plans = [pet_feed_plan(role, ""), application_feed_plan(role, "")]
        plans += thread_feed_plans(role, "")
        for plan in plans:
            fields = plan.primary.required_index
            if fields is not None:
                seen[(plan.primary.collection, fields)] = None
    return list(seen)
