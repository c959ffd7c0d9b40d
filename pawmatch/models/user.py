"""
User record as hydrated by the auth/session collaborator.

Only the fields the engine reads are modelled: ``uid``, ``role``, contact
details, the adopter's ``preferences``, and the role-specific profile
sub-objects. ``display_label`` is the single place that decides how a user
is named in threads and application lists.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from pawmatch.models.document import first_resolved, first_value, is_blank, optional_str
from pawmatch.models.pet import PreferenceSet
from pawmatch.taxonomy.pet_taxonomy import Role


class AdopterProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None


class ShelterProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    company_name: Optional[str] = None
    address: Optional[str] = None


class UserRecord(BaseModel):
    """An adopter, shelter, or admin account.

    Attributes:
        uid: Auth-issued user id (alphanumeric).
        role: Account role; defaults to adopter when the document omits it.
        email: Sign-in email, if known.
        display_name: Auth display name, if set.
        preferences: Quiz answers; ``None`` until the quiz is saved.
        adopter_profile: Adopter onboarding details.
        shelter_profile: Shelter onboarding details.
    """

    model_config = ConfigDict(frozen=True)

    uid: str
    role: Role = Role.ADOPTER
    email: Optional[str] = None
    display_name: Optional[str] = None
    preferences: Optional[PreferenceSet] = None
    adopter_profile: Optional[AdopterProfile] = None
    shelter_profile: Optional[ShelterProfile] = None

    @field_validator("role", mode="before")
    @classmethod
    def default_role(cls, v: Any) -> Any:
        if is_blank(v):
            return Role.ADOPTER
        return v.lower() if isinstance(v, str) else v

    @classmethod
    def from_document(cls, uid: str, data: Mapping[str, Any]) -> "UserRecord":
        """Build from a ``users`` document."""
        adopter = data.get("adopterProfile") or {}
        shelter = data.get("shelterProfile") or {}
        return cls(
            uid=str(uid),
            role=data.get("role"),
            email=optional_str(data.get("email")),
            display_name=optional_str(data.get("displayName")),
            preferences=PreferenceSet.from_document(data.get("preferences")),
            adopter_profile=AdopterProfile(name=optional_str(adopter.get("name"))) if adopter else None,
            shelter_profile=ShelterProfile(
                company_name=optional_str(first_value(shelter, ("companyName",)) or data.get("companyName")),
                address=optional_str(shelter.get("address") or data.get("address")),
            ) if (shelter or data.get("companyName")) else None,
        )


# ── Name accessors ────────────────────────────────────────────────────────────

def adopter_name(user: UserRecord) -> Optional[str]:
    return user.adopter_profile.name if user.adopter_profile else None


def company_name(user: UserRecord) -> Optional[str]:
    return user.shelter_profile.company_name if user.shelter_profile else None


def display_name(user: UserRecord) -> Optional[str]:
    return user.display_name


def email(user: UserRecord) -> Optional[str]:
    return user.email


def label_chain(role: Role) -> tuple[list[Callable[[UserRecord], Optional[str]]], str]:
    """Return the ordered name accessors and literal default for ``role``."""
    if role == Role.SHELTER:
        return [company_name, display_name, email], "Shelter"
    if role == Role.ADOPTER:
        return [adopter_name, display_name, email], "Adopter"
    if role == Role.ADMIN:
        return [display_name, email], "(Unknown User)"
    raise ValueError(f"Unhandled role: {role!r}")


def display_label(user: Optional[UserRecord], fallback_role: Optional[Role] = None) -> str:
    """Human-readable label for a user in threads and headers.

    When the user document is unavailable, the generic label for
    ``fallback_role`` is used (``"(Unknown User)"`` without one).
    """
    if user is None:
        if fallback_role is None:
            return "(Unknown User)"
        _, default = label_chain(fallback_role)
        return default
    accessors, default = label_chain(user.role)
    return first_resolved(user, accessors, default)
