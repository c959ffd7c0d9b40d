"""
Adoption application and conversation thread records.

``Application`` mirrors an ``applications`` document; its ``status`` moves
through the state machine in ``pawmatch.taxonomy.pet_taxonomy``.
``validate_transition`` is the only gate the workflow uses.

``Thread`` mirrors a ``threads`` document keyed by the deterministic thread
id (see ``pawmatch.matching.thread_identity``).
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from pawmatch.exceptions import InvalidTransitionError
from pawmatch.models.document import optional_seconds, optional_str
from pawmatch.taxonomy.pet_taxonomy import ALLOWED_TRANSITIONS, ApplicationStatus


class Application(BaseModel):
    """An adopter's application for one pet.

    Attributes:
        id: Store document id.
        pet_id: Pet applied for.
        applicant_id: Adopter uid.
        shelter_id: Shelter owning the pet at submission time.
        status: ``submitted`` | ``approved`` | ``rejected``.
        created_at: Submission time in epoch seconds, if known.
        pet_name / applicant_name / applicant_email / shelter_name:
            Denormalised labels stored at submission time.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    pet_id: str
    applicant_id: str
    shelter_id: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    created_at: Optional[float] = None
    pet_name: Optional[str] = None
    applicant_name: Optional[str] = None
    applicant_email: Optional[str] = None
    shelter_name: Optional[str] = None

    @property
    def is_active(self) -> bool:
        """Awaiting a decision."""
        return self.status == ApplicationStatus.SUBMITTED

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "Application":
        return cls(
            id=str(doc_id),
            pet_id=str(data.get("petId") or ""),
            applicant_id=str(data.get("applicantId") or ""),
            shelter_id=optional_str(data.get("shelterId")),
            status=data.get("status") or ApplicationStatus.SUBMITTED,
            created_at=optional_seconds(data.get("createdAt")),
            pet_name=optional_str(data.get("petName")),
            applicant_name=optional_str(data.get("applicantName")),
            applicant_email=optional_str(data.get("applicantEmail")),
            shelter_name=optional_str(data.get("shelterName")),
        )


def validate_transition(current: ApplicationStatus | str, target: ApplicationStatus | str) -> None:
    """Raise ``InvalidTransitionError`` unless ``current → target`` is allowed."""
    try:
        cur = ApplicationStatus(current)
        tgt = ApplicationStatus(target)
    except ValueError:
        raise InvalidTransitionError(str(current), str(target)) from None
    if tgt not in ALLOWED_TRANSITIONS[cur]:
        raise InvalidTransitionError(cur.value, tgt.value)


class Thread(BaseModel):
    """A conversation between one adopter and one shelter about one pet."""

    model_config = ConfigDict(frozen=True)

    id: str
    pet_id: Optional[str] = None
    pet_name: Optional[str] = None
    adopter_id: Optional[str] = None
    adopter_name: Optional[str] = None
    shelter_id: Optional[str] = None
    shelter_name: Optional[str] = None
    last_message: Optional[str] = None
    last_message_at: Optional[float] = None
    last_sender_id: Optional[str] = None
    adoption_closed: bool = False

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "Thread":
        return cls(
            id=str(doc_id),
            pet_id=optional_str(data.get("petId")),
            pet_name=optional_str(data.get("petName")),
            adopter_id=optional_str(data.get("adopterId")),
            adopter_name=optional_str(data.get("adopterName")),
            shelter_id=optional_str(data.get("shelterId")),
            shelter_name=optional_str(data.get("shelterName")),
            last_message=optional_str(data.get("lastMessage")),
            last_message_at=optional_seconds(data.get("lastMessageAt")),
            last_sender_id=optional_str(data.get("lastSenderId")),
            adoption_closed=bool(data.get("adoptionClosed", False)),
        )
