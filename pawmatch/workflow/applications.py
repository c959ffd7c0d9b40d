"""
Application workflow: submission, decisions, and their side effects.

Status changes follow ``ALLOWED_TRANSITIONS``:

    submitted → approved   pet marked adopted, adopter notified
    submitted → rejected   adopter notified
    rejected  → submitted  reopen; adopter notified
    approved  → submitted  revoke; pet back to active, thread reopened

Each state change is written before its notification is sent. Failed
writes of the change itself propagate; notifications are best effort and
their outcome is only logged (see ``SystemNotifier``).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pawmatch.exceptions import DocumentNotFoundError, InvalidTransitionError, WorkflowError
from pawmatch.live.plans import APPLICATIONS, PETS, THREADS
from pawmatch.live.query import SERVER_TIMESTAMP, DocumentStore, Query
from pawmatch.matching.thread_identity import thread_id_for
from pawmatch.models.application import Application, validate_transition
from pawmatch.models.document import first_resolved
from pawmatch.models.pet import PetListing
from pawmatch.models.user import UserRecord, display_label, label_chain
from pawmatch.taxonomy.pet_taxonomy import ApplicationStatus, PetStatus, Role
from pawmatch.workflow.notifications import (
    SYSTEM_SENDER_ID,
    NotificationOutcome,
    SystemMessage,
    SystemNotifier,
)

logger = logging.getLogger(__name__)

DEFAULT_SHELTER_NAME = "Shelter"
DEFAULT_ADOPTER_NAME = "Adopter"
DEFAULT_PET_LABEL = "this pet"

APPROVED_TEXT = "System: Your application for {pet} was approved!"
REJECTED_TEXT = "System: Your application for {pet} was not approved."
REOPENED_TEXT = "System: Your application for {pet} has been reopened for consideration."
REVOKED_TEXT = "System: The previous approval for {pet} was revoked. The listing is open again."

APPLY_THREAD_TEXT = "Started conversation"
SHELTER_THREAD_TEXT = "Conversation started"


class ApplicationWorkflow:
    """Store-backed application actions for one acting user.

    Args:
        store:    Document store.
        notifier: Delivers system messages into threads.
        actor:    The signed-in user performing shelter/admin actions; used
                  for the shelter label and as the sender when starting a
                  conversation.
    """

    def __init__(
        self,
        store:    DocumentStore,
        notifier: SystemNotifier,
        actor:    Optional[UserRecord] = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.actor = actor
        self.last_notification: Optional[NotificationOutcome] = None

    # ── Adopter actions ───────────────────────────────────────────────────────

    def find_existing(self, pet_id: str, applicant_id: str) -> Optional[Application]:
        q = Query(APPLICATIONS).where("petId", pet_id).where("applicantId", applicant_id).limited(1)
        rows = self.store.query(q)
        if not rows:
            return None
        doc_id, data = rows[0]
        return Application.from_document(doc_id, data)

    def submit(self, pet: PetListing, adopter: UserRecord) -> Application:
        """Apply for ``pet``; returns the existing application if there is one.

        Raises:
            WorkflowError: If the pet is not accepting applications.
        """
        existing = self.find_existing(pet.id, adopter.uid)
        if existing is not None:
            logger.info("Adopter %s already applied for pet %s (%s)", adopter.uid, pet.id, existing.id)
            return existing

        if not pet.is_active:
            raise WorkflowError(f"Pet '{pet.id}' is {pet.status.value} and not accepting applications.")

        accessors, default = label_chain(Role.ADOPTER)
        adopter_name = first_resolved(adopter, accessors, default)
        shelter_name = pet.shelter_name or DEFAULT_SHELTER_NAME

        app_id = self.store.add(APPLICATIONS, {
            "petId": pet.id,
            "petName": pet.name,
            "shelterId": pet.shelter_id,
            "shelterName": shelter_name,
            "applicantId": adopter.uid,
            "applicantEmail": adopter.email,
            "applicantName": adopter_name,
            "status": ApplicationStatus.SUBMITTED.value,
            "createdAt": SERVER_TIMESTAMP,
        })
        logger.info("Application %s submitted for pet %s by %s", app_id, pet.id, adopter.uid)

        if pet.shelter_id:
            self._ensure_thread(
                pet_id=pet.id,
                pet_name=pet.name,
                adopter_id=adopter.uid,
                shelter_id=pet.shelter_id,
                adopter_name=adopter_name,
                shelter_name=shelter_name,
                text=APPLY_THREAD_TEXT,
                sender_id=adopter.uid,
            )

        return self._load(app_id)

    # ── Shelter / admin actions ───────────────────────────────────────────────

    def set_status(self, app_id: str, status: ApplicationStatus | str) -> Application:
        """Move an application to ``status``.

        Moving back to ``submitted`` is routed through ``reopen`` or
        ``revoke`` so the pet and thread are restored too.

        Raises:
            DocumentNotFoundError: If the application (or its pet) is missing.
            InvalidTransitionError: If the transition is not allowed.
        """
        app = self._load(app_id)
        validate_transition(app.status, status)
        target = ApplicationStatus(status)

        if target == ApplicationStatus.SUBMITTED:
            if app.status == ApplicationStatus.APPROVED:
                return self.revoke(app_id)
            return self.reopen(app_id)

        self._write_status(app.id, target)

        if target == ApplicationStatus.APPROVED:
            self._set_pet_status(app.pet_id, PetStatus.ADOPTED)
            self._notify(app, APPROVED_TEXT, adoption_closed=True)
        else:
            self._notify(app, REJECTED_TEXT)

        return self._load(app_id)

    def approve(self, app_id: str) -> Application:
        return self.set_status(app_id, ApplicationStatus.APPROVED)

    def reject(self, app_id: str) -> Application:
        return self.set_status(app_id, ApplicationStatus.REJECTED)

    def reopen(self, app_id: str) -> Application:
        """Rejected → submitted."""
        app = self._load(app_id)
        if app.status != ApplicationStatus.REJECTED:
            raise InvalidTransitionError(app.status.value, ApplicationStatus.SUBMITTED.value)

        self._write_status(app.id, ApplicationStatus.SUBMITTED)
        self._notify(app, REOPENED_TEXT)
        return self._load(app_id)

    def revoke(self, app_id: str) -> Application:
        """Approved → submitted; the pet is listed as active again."""
        app = self._load(app_id)
        if app.status != ApplicationStatus.APPROVED:
            raise InvalidTransitionError(app.status.value, ApplicationStatus.SUBMITTED.value)

        self._set_pet_status(app.pet_id, PetStatus.ACTIVE)
        self._write_status(app.id, ApplicationStatus.SUBMITTED)
        self._notify(app, REVOKED_TEXT, adoption_reopened=True)
        return self._load(app_id)

    def start_conversation(self, app: Application) -> str:
        """Create or refresh the thread for ``app`` and return its id."""
        return self._ensure_thread(
            pet_id=app.pet_id,
            pet_name=app.pet_name,
            adopter_id=app.applicant_id,
            shelter_id=app.shelter_id,
            adopter_name=self._adopter_label(app),
            shelter_name=self._shelter_label(app),
            text=SHELTER_THREAD_TEXT,
            sender_id=self.actor.uid if self.actor else SYSTEM_SENDER_ID,
        )

    # ── Internals ─────────────────────────────────────────────────────────────

    def _load(self, app_id: str) -> Application:
        data = self.store.get(APPLICATIONS, app_id)
        if data is None:
            raise DocumentNotFoundError(APPLICATIONS, app_id)
        return Application.from_document(app_id, data)

    def _write_status(self, app_id: str, status: ApplicationStatus) -> None:
        self.store.update(APPLICATIONS, app_id, {"status": status.value, "updatedAt": SERVER_TIMESTAMP})
        logger.info("Application %s → %s", app_id, status.value)

    def _set_pet_status(self, pet_id: str, status: PetStatus) -> None:
        if not pet_id:
            raise WorkflowError("Application has no pet to update.")
        self.store.update(PETS, pet_id, {"status": status.value, "updatedAt": SERVER_TIMESTAMP})
        logger.info("Pet %s → %s", pet_id, status.value)

    def _adopter_label(self, app: Application) -> str:
        return app.applicant_name or app.applicant_email or DEFAULT_ADOPTER_NAME

    def _shelter_label(self, app: Application) -> Optional[str]:
        if self.actor is not None and self.actor.role == Role.SHELTER:
            return display_label(self.actor)
        return app.shelter_name

    def _notify(self, app: Application, template: str, **flags: bool) -> NotificationOutcome:
        message = SystemMessage(
            pet_id=app.pet_id,
            adopter_id=app.applicant_id,
            shelter_id=app.shelter_id,
            text=template.format(pet=app.pet_name or DEFAULT_PET_LABEL),
            pet_name=app.pet_name,
            adopter_name=self._adopter_label(app),
            shelter_name=self._shelter_label(app),
            **flags,
        )
        self.last_notification = self.notifier.send(message)
        return self.last_notification

    def _ensure_thread(
        self,
        pet_id:       str,
        pet_name:     Optional[str],
        adopter_id:   str,
        shelter_id:   Optional[str],
        adopter_name: Optional[str],
        shelter_name: Optional[str],
        text:         str,
        sender_id:    str,
    ) -> str:
        tid = thread_id_for(pet_id, adopter_id, shelter_id)
        payload: dict[str, Any] = {
            "id": tid,
            "petId": pet_id,
            "petName": pet_name or None,
            "adopterId": adopter_id,
            "shelterId": shelter_id,
            "lastMessageAt": SERVER_TIMESTAMP,
            "lastMessage": text,
            "lastSenderId": sender_id,
        }
        if adopter_name:
            payload["adopterName"] = adopter_name
        if shelter_name:
            payload["shelterName"] = shelter_name
        self.store.set(THREADS, tid, payload, merge=True)
        return tid
