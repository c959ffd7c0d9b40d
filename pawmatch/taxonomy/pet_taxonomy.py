"""
Pet marketplace taxonomy: roles, lifecycle states, and attribute vocabularies.

Three enumerations drive every role- or status-dependent branch:
  - ``Role``              who is acting: adopter, shelter, or admin.
  - ``PetStatus``         listing lifecycle: active, inactive, adopted.
  - ``ApplicationStatus`` adoption application decision state.

``SIZE_ORDER`` and ``AGE_ORDER`` are the canonical orderings used for
half-credit "close" matches. Values are lowercase; comparisons elsewhere
normalise user input before looking them up.

This module has NO imports from any other ``pawmatch`` package.
"""

from enum import StrEnum


class Role(StrEnum):
    """Account role attached to every user record."""

    ADOPTER = "adopter"
    """Browses listings, takes the preference quiz, submits applications."""

    SHELTER = "shelter"
    """Owns pet listings and decides on applications to them."""

    ADMIN = "admin"
    """Sees every listing, application, and thread across shelters."""


class PetStatus(StrEnum):
    """Listing lifecycle state. Absent status is treated as ``ACTIVE``."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ADOPTED = "adopted"


class ApplicationStatus(StrEnum):
    """Adoption application state.

    Transitions (see ``ALLOWED_TRANSITIONS``):
        submitted → approved   (revocable)
        submitted → rejected   (reopenable)
        approved  → submitted  (revocation; pet reverts adopted → active)
        rejected  → submitted  (reopen)
    """

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.SUBMITTED: frozenset({
        ApplicationStatus.APPROVED, ApplicationStatus.REJECTED,
    }),
    ApplicationStatus.APPROVED: frozenset({ApplicationStatus.SUBMITTED}),
    ApplicationStatus.REJECTED: frozenset({ApplicationStatus.SUBMITTED}),
}


# ── Ordered attribute vocabularies ────────────────────────────────────────────

SIZE_ORDER: tuple[str, ...] = ("small", "medium", "large", "extra large")
AGE_ORDER: tuple[str, ...] = ("baby", "young", "adult", "senior")


# ── Display vocabularies (quiz / listing form options) ────────────────────────

SIZES: tuple[str, ...] = ("Small", "Medium", "Large", "Extra Large")
AGES: tuple[str, ...] = ("Baby", "Young", "Adult", "Senior")
GENDERS: tuple[str, ...] = ("Male", "Female")

ENVIRONMENTS: tuple[str, ...] = (
    "Good with other animals",
    "Good with children",
    "Animal must be leashed at all times",
    "Good with dogs",
    "Good with cats",
)

ATTRIBUTES: tuple[str, ...] = (
    "Spayed/Neutered",
    "House Trained",
    "Declawed",
    "Special Needs",
    "Shots Current",
)
