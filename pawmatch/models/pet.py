"""
Pet listing and adopter preference models.

``PetListing`` is a shelter-owned listing; ``PreferenceSet`` is the adopter's
quiz answers. Both share the attribute vocabulary scored by
``pawmatch.matching.scorer``.

A ``PreferenceSet`` distinguishes two states that score very differently:

  - no keys at all (``is_empty``): the adopter never took the quiz; scores 0.
  - keys present but blank:       the adopter answered "no preference"
    everywhere; every field counts as a match and scores the maximum.

``is_empty`` is derived from pydantic's ``model_fields_set``, so a
``PreferenceSet()`` built with no arguments is empty while
``PreferenceSet(size="")`` is not.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from pawmatch.models.document import (
    first_value,
    has_any_key,
    is_blank,
    optional_seconds,
    optional_str,
)
from pawmatch.taxonomy.pet_taxonomy import PetStatus

# attribute → accepted document keys, in priority order
PREFERENCE_KEYS: dict[str, tuple[str, ...]] = {
    "animal_type": ("animalType",),
    "breed":       ("breed",),
    "size":        ("size",),
    "temperament": ("temperament",),
    "age_range":   ("ageRange", "age"),
    "gender":      ("gender",),
    "color":       ("color",),
}

PET_KEYS: dict[str, tuple[str, ...]] = {
    "animal_type": ("animalType", "species"),
    "breed":       ("breed",),
    "size":        ("size",),
    "temperament": ("temperament",),
    "age_range":   ("ageRange", "age"),
    "gender":      ("gender",),
    "color":       ("color",),
}


class PreferenceSet(BaseModel):
    """Adopter-stated desired pet attributes; every attribute is optional.

    Attributes:
        animal_type: e.g. ``"Dog"``.
        breed: e.g. ``"Labrador Retriever"``.
        size: one of Small / Medium / Large / Extra Large.
        temperament: free text, e.g. ``"Calm"``.
        age_range: one of Baby / Young / Adult / Senior.
        gender: Male / Female.
        color: e.g. ``"Black"``.
    """

    model_config = ConfigDict(frozen=True)

    animal_type: Optional[str] = None
    breed: Optional[str] = None
    size: Optional[str] = None
    temperament: Optional[str] = None
    age_range: Optional[str] = None
    gender: Optional[str] = None
    color: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        """``True`` when the preference object carried no keys at all."""
        return not self.model_fields_set

    @property
    def has_values(self) -> bool:
        """``True`` when at least one attribute holds a non-blank string."""
        return any(
            isinstance(v, str) and v.strip()
            for v in (getattr(self, name) for name in PREFERENCE_KEYS)
        )

    @classmethod
    def from_document(cls, data: Optional[Mapping[str, Any]]) -> Optional["PreferenceSet"]:
        """Build from a stored ``preferences`` mapping; ``None`` stays ``None``.

        Only attributes whose keys appear in ``data`` are marked as set. A
        non-empty mapping with no recognised keys still yields a non-empty
        (all-blank) preference set.
        """
        if data is None:
            return None
        kwargs: dict[str, Optional[str]] = {}
        for attr, keys in PREFERENCE_KEYS.items():
            if has_any_key(data, keys):
                kwargs[attr] = optional_str(first_value(data, keys))
        if data and not kwargs:
            kwargs = {attr: None for attr in PREFERENCE_KEYS}
        return cls(**kwargs)

    def to_document(self) -> dict[str, Optional[str]]:
        """Serialise the set attributes back to document keys."""
        return {
            PREFERENCE_KEYS[attr][0]: getattr(self, attr)
            for attr in PREFERENCE_KEYS
            if attr in self.model_fields_set
        }


class PetListing(BaseModel):
    """A shelter's pet listing.

    Attributes:
        id: Store document id.
        name: Display name; ``None`` when the listing omitted it.
        animal_type: Species, read from ``animalType`` or ``species``.
        age_range: Read from ``ageRange`` or ``age``.
        status: Lifecycle state; defaults to ``active`` when absent.
        shelter_id: Owning shelter's uid.
        photo_urls: Media URLs in display order.
        created_at: Epoch seconds; ``None`` when unknown.
        updated_at: Epoch seconds; ``None`` when unknown.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: Optional[str] = None
    animal_type: Optional[str] = None
    breed: Optional[str] = None
    size: Optional[str] = None
    temperament: Optional[str] = None
    age_range: Optional[str] = None
    gender: Optional[str] = None
    color: Optional[str] = None
    status: PetStatus = PetStatus.ACTIVE
    shelter_id: Optional[str] = None
    shelter_name: Optional[str] = None
    photo_urls: tuple[str, ...] = ()
    created_at: Optional[float] = None
    updated_at: Optional[float] = None

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> Any:
        if is_blank(v):
            return PetStatus.ACTIVE
        return v.lower() if isinstance(v, str) else v

    @property
    def is_active(self) -> bool:
        return self.status == PetStatus.ACTIVE

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "PetListing":
        """Build from a ``pets`` document."""
        kwargs: dict[str, Any] = {
            attr: optional_str(first_value(data, keys)) for attr, keys in PET_KEYS.items()
        }
        photos = first_value(data, ("photos", "photoUrls", "photoURLs")) or ()
        if isinstance(photos, str):
            photos = (photos,)
        return cls(
            id=str(doc_id),
            name=optional_str(data.get("name")),
            status=data.get("status"),
            shelter_id=optional_str(data.get("shelterId")),
            shelter_name=optional_str(data.get("shelterName")),
            photo_urls=tuple(str(p) for p in photos if p),
            created_at=optional_seconds(data.get("createdAt")),
            updated_at=optional_seconds(data.get("updatedAt")),
            **kwargs,
        )
