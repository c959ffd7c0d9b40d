"""
Tests for pawmatch/workflow/applications.py against the SQLite store.

What we test
------------
- submit(): writes the application with denormalised names, opens the
  conversation thread, is idempotent per (pet, adopter), refuses pets
  that are not active.
- approve/reject: status written, pet adopted on approval, system message
  posted into the thread.
- revoke/reopen: moving back to submitted restores the pet and thread.
- Disallowed transitions and missing documents raise.
- A failing notifier never fails the status change.
- start_conversation(): shelter-initiated thread.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from pawmatch.exceptions import DocumentNotFoundError, InvalidTransitionError, WorkflowError
from pawmatch.live.query import Query
from pawmatch.models.pet import PetListing
from pawmatch.taxonomy.pet_taxonomy import ApplicationStatus, PetStatus
from pawmatch.workflow.applications import (
    APPLY_THREAD_TEXT,
    APPROVED_TEXT,
    REJECTED_TEXT,
    REOPENED_TEXT,
    REVOKED_TEXT,
    SHELTER_THREAD_TEXT,
    ApplicationWorkflow,
)
from pawmatch.workflow.notifications import SystemNotifier, messages_collection

THREAD_ID = "pet1_adopter1_shelter1"


@pytest.fixture
def workflow(store, dog_document, shelter_user) -> ApplicationWorkflow:
    store.set("pets", "pet1", dog_document)
    notifier = SystemNotifier(store, sleep=lambda _: None)
    return ApplicationWorkflow(store, notifier, actor=shelter_user)


@pytest.fixture
def submitted(workflow, dog, adopter):
    return workflow.submit(dog, adopter)


def _messages(store) -> list[dict]:
    return [doc for _, doc in store.query(Query(messages_collection(THREAD_ID)))]


def _pet_status(store) -> str:
    return store.get("pets", "pet1")["status"]


# ── Submission ────────────────────────────────────────────────────────────────

class TestSubmit:
    def test_application_written(self, submitted, clock):
        assert submitted.status == ApplicationStatus.SUBMITTED
        assert submitted.pet_id == "pet1"
        assert submitted.applicant_id == "adopter1"
        assert submitted.shelter_id == "shelter1"
        assert submitted.pet_name == "Biscuit"
        assert submitted.applicant_name == "Ana Diaz"
        assert submitted.applicant_email == "ana@example.com"
        assert submitted.shelter_name == "Happy Tails"
        assert submitted.created_at == clock.now

    def test_thread_opened(self, store, submitted):
        thread = store.get("threads", THREAD_ID)
        assert thread["lastMessage"] == APPLY_THREAD_TEXT
        assert thread["lastSenderId"] == "adopter1"
        assert thread["adopterName"] == "Ana Diaz"
        assert thread["shelterName"] == "Happy Tails"

    def test_idempotent(self, workflow, store, submitted, dog, adopter):
        again = workflow.submit(dog, adopter)
        assert again.id == submitted.id
        assert len(store.query(Query("applications"))) == 1

    def test_find_existing(self, workflow, submitted):
        assert workflow.find_existing("pet1", "adopter1").id == submitted.id
        assert workflow.find_existing("pet1", "someone-else") is None

    @pytest.mark.parametrize("status", [PetStatus.ADOPTED, PetStatus.INACTIVE])
    def test_unavailable_pet_refused(self, workflow, store, dog, adopter, status):
        pet = dog.model_copy(update={"status": status})
        with pytest.raises(WorkflowError):
            workflow.submit(pet, adopter)
        assert store.query(Query("applications")) == []

    def test_pet_without_shelter_has_no_thread(self, workflow, store, adopter):
        stray = PetListing(id="stray", name="Stray")
        app = workflow.submit(stray, adopter)
        assert app.shelter_name == "Shelter"
        assert store.query(Query("threads")) == []


# ── Decisions ─────────────────────────────────────────────────────────────────

class TestApproveReject:
    def test_approve(self, workflow, store, submitted, clock):
        clock.advance(100)
        app = workflow.approve(submitted.id)

        assert app.status == ApplicationStatus.APPROVED
        assert store.get("applications", submitted.id)["updatedAt"] == clock.now
        assert _pet_status(store) == "adopted"

        text = APPROVED_TEXT.format(pet="Biscuit")
        assert text == "System: Your application for Biscuit was approved!"
        assert [m["text"] for m in _messages(store)] == [text]
        assert _messages(store)[0]["senderId"] == "system"

        thread = store.get("threads", THREAD_ID)
        assert thread["adoptionClosed"] is True
        assert thread["lastMessage"] == text
        assert thread["lastSenderId"] == "system"
        assert workflow.last_notification.delivered

    def test_reject(self, workflow, store, submitted):
        app = workflow.reject(submitted.id)
        assert app.status == ApplicationStatus.REJECTED
        assert _pet_status(store) == "active"
        assert [m["text"] for m in _messages(store)] == [REJECTED_TEXT.format(pet="Biscuit")]
        assert not store.get("threads", THREAD_ID).get("adoptionClosed", False)

    def test_set_status_accepts_strings(self, workflow, submitted):
        assert workflow.set_status(submitted.id, "rejected").status == ApplicationStatus.REJECTED

    def test_double_approve_refused(self, workflow, submitted):
        workflow.approve(submitted.id)
        with pytest.raises(InvalidTransitionError):
            workflow.approve(submitted.id)

    def test_reject_after_approve_refused(self, workflow, submitted):
        workflow.approve(submitted.id)
        with pytest.raises(InvalidTransitionError):
            workflow.reject(submitted.id)

    def test_unknown_status_refused(self, workflow, submitted):
        with pytest.raises(InvalidTransitionError):
            workflow.set_status(submitted.id, "withdrawn")

    def test_missing_application(self, workflow):
        with pytest.raises(DocumentNotFoundError):
            workflow.approve("ghost")


# ── Moving back to submitted ──────────────────────────────────────────────────

class TestRevokeReopen:
    def test_revoke_restores_pet_and_thread(self, workflow, store, submitted):
        workflow.approve(submitted.id)
        app = workflow.set_status(submitted.id, ApplicationStatus.SUBMITTED)

        assert app.status == ApplicationStatus.SUBMITTED
        assert _pet_status(store) == "active"
        thread = store.get("threads", THREAD_ID)
        assert thread["adoptionClosed"] is False
        assert "adoptionReopenedAt" in thread
        assert thread["lastMessage"] == REVOKED_TEXT.format(pet="Biscuit")

    def test_reopen_after_reject(self, workflow, store, submitted):
        workflow.reject(submitted.id)
        app = workflow.set_status(submitted.id, ApplicationStatus.SUBMITTED)

        assert app.status == ApplicationStatus.SUBMITTED
        assert [m["text"] for m in _messages(store)][-1] == REOPENED_TEXT.format(pet="Biscuit")

    def test_reopen_requires_rejected(self, workflow, submitted):
        with pytest.raises(InvalidTransitionError):
            workflow.reopen(submitted.id)

    def test_revoke_requires_approved(self, workflow, submitted):
        with pytest.raises(InvalidTransitionError):
            workflow.revoke(submitted.id)

    def test_submitted_to_submitted_refused(self, workflow, submitted):
        with pytest.raises(InvalidTransitionError):
            workflow.set_status(submitted.id, ApplicationStatus.SUBMITTED)

    def test_approve_again_after_revoke(self, workflow, store, submitted):
        workflow.approve(submitted.id)
        workflow.revoke(submitted.id)
        workflow.approve(submitted.id)
        assert _pet_status(store) == "adopted"
        assert len(_messages(store)) == 3


# ── Notification failures ─────────────────────────────────────────────────────

class TestNotifierFailure:
    def test_status_change_survives_failed_notification(self, store, dog_document, dog, adopter):
        store.set("pets", "pet1", dog_document)
        broken = MagicMock()
        broken.set.side_effect = RuntimeError("threads unavailable")
        workflow = ApplicationWorkflow(store, SystemNotifier(broken, max_retries=1, sleep=lambda _: None))

        app = workflow.submit(dog, adopter)
        approved = workflow.approve(app.id)

        assert approved.status == ApplicationStatus.APPROVED
        assert _pet_status(store) == "adopted"
        assert workflow.last_notification.delivered is False
        assert workflow.last_notification.attempts == 2

    def test_pet_label_fallback(self, store):
        store.set("applications", "a1", {"petId": "p9", "applicantId": "adopter1", "status": "submitted"})
        notifier = MagicMock()
        workflow = ApplicationWorkflow(store, notifier)

        workflow.reject("a1")

        message = notifier.send.call_args[0][0]
        assert message.text == "System: Your application for this pet was not approved."
        assert message.adopter_name == "Adopter"


# ── Conversations ─────────────────────────────────────────────────────────────

class TestStartConversation:
    def test_shelter_starts_thread(self, workflow, store, submitted, clock):
        clock.advance(50)
        tid = workflow.start_conversation(submitted)

        assert tid == THREAD_ID
        thread = store.get("threads", tid)
        assert thread["lastMessage"] == SHELTER_THREAD_TEXT
        assert thread["lastSenderId"] == "shelter1"
        assert thread["lastMessageAt"] == clock.now
        assert thread["shelterName"] == "Happy Tails"

    def test_without_actor_sender_is_system(self, store, submitted):
        workflow = ApplicationWorkflow(store, MagicMock())
        workflow.start_conversation(submitted)
        assert store.get("threads", THREAD_ID)["lastSenderId"] == "system"
