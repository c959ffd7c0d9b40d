"""
System notifications posted into adoption conversation threads.

A notification is a side effect of an application status change and is
delivered independently of it:

  1. Merge-write the thread header (ids, names, adoption flags).
  2. Add a message with ``senderId = "system"`` to the thread's messages.
  3. Update the thread's ``lastMessage`` / ``lastMessageAt`` / ``lastSenderId``.

The three writes are retried together with exponential backoff. ``send``
never raises: the outcome (delivered or not, attempts used, last error) is
returned and a failure is logged at WARNING.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pawmatch.config import NotificationsConfig
from pawmatch.live.plans import THREADS
from pawmatch.live.query import SERVER_TIMESTAMP, DocumentStore
from pawmatch.matching.thread_identity import thread_id_for

logger = logging.getLogger(__name__)

SYSTEM_SENDER_ID = "system"

MAX_BACKOFF_SECONDS = 10.0


def messages_collection(thread_id: str) -> str:
    return f"{THREADS}/{thread_id}/messages"


@dataclass(frozen=True)
class SystemMessage:
    """One system message for the thread of ``(pet, adopter, shelter)``."""

    pet_id:            str
    adopter_id:        str
    shelter_id:        Optional[str]
    text:              str
    pet_name:          Optional[str] = None
    adopter_name:      Optional[str] = None
    shelter_name:      Optional[str] = None
    adoption_closed:   bool = False
    adoption_reopened: bool = False

    @property
    def thread_id(self) -> str:
        return thread_id_for(self.pet_id, self.adopter_id, self.shelter_id)

    def thread_header(self) -> dict[str, Any]:
        header: dict[str, Any] = {
            "id": self.thread_id,
            "petId": self.pet_id,
            "petName": self.pet_name or None,
            "adopterId": self.adopter_id,
            "shelterId": self.shelter_id,
        }
        if self.adopter_name:
            header["adopterName"] = self.adopter_name
        if self.shelter_name:
            header["shelterName"] = self.shelter_name
        if self.adoption_closed:
            header["adoptionClosed"] = True
            header["adoptionClosedAt"] = SERVER_TIMESTAMP
        if self.adoption_reopened:
            header["adoptionClosed"] = False
            header["adoptionReopenedAt"] = SERVER_TIMESTAMP
        return header


@dataclass(frozen=True)
class NotificationOutcome:
    thread_id: str
    delivered: bool
    attempts:  int
    error:     Optional[str] = None


class SystemNotifier:
    """Best-effort delivery of ``SystemMessage`` into the store.

    Args:
        store:       Document store holding threads.
        max_retries: Retries after the first attempt.
        base_delay:  First backoff delay in seconds (doubles each retry).
        sleep:       Sleep function; tests pass a no-op.
    """

    def __init__(
        self,
        store:       DocumentStore,
        max_retries: int = 2,
        base_delay:  float = 0.5,
        sleep:       Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.sleep = sleep

    @classmethod
    def from_config(cls, store: DocumentStore, config: NotificationsConfig) -> "SystemNotifier":
        return cls(store, max_retries=config.max_retries, base_delay=config.base_delay_seconds)

    def send(self, message: SystemMessage) -> NotificationOutcome:
        attempts = 0

        def deliver() -> None:
            nonlocal attempts
            attempts += 1
            self._deliver(message)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, max=MAX_BACKOFF_SECONDS),
            retry=retry_if_exception_type(Exception),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            sleep=self.sleep,
        )

        try:
            retrying(deliver)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            logger.warning(
                "System message to thread %s not delivered after %d attempt(s): %s",
                message.thread_id, attempts, cause,
            )
            return NotificationOutcome(message.thread_id, False, attempts, str(cause))

        logger.info("System message posted to thread %s", message.thread_id)
        return NotificationOutcome(message.thread_id, True, attempts)

    def _deliver(self, message: SystemMessage) -> None:
        tid = message.thread_id
        self.store.set(THREADS, tid, message.thread_header(), merge=True)
        self.store.add(messages_collection(tid), {
            "text": message.text,
            "senderId": SYSTEM_SENDER_ID,
            "createdAt": SERVER_TIMESTAMP,
        })
        self.store.update(THREADS, tid, {
            "lastMessage": message.text,
            "lastMessageAt": SERVER_TIMESTAMP,
            "lastSenderId": SYSTEM_SENDER_ID,
        })
