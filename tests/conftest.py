"""
Shared pytest fixtures for the PawMatch engine test suite.

Provides:
  - ``in_memory_db``: a fresh in-memory SQLite connection with the store
    schema applied.
  - ``store``: a ``SqliteDocumentStore`` on that connection with a fixed,
    steppable clock (``store.clock`` is a ``FakeClock``).
  - Sample records: a dog listing, a fully specified preference set, adopter
    and shelter users.
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from pawmatch.db.document_store import SqliteDocumentStore
from pawmatch.db.schema import apply_schema
from pawmatch.models.pet import PetListing, PreferenceSet
from pawmatch.models.user import UserRecord


class FakeClock:
    """Callable returning a fixed epoch time that tests can advance."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(in_memory_db: sqlite3.Connection, clock: FakeClock) -> SqliteDocumentStore:
    return SqliteDocumentStore(in_memory_db, clock=clock)


# ── Sample records ────────────────────────────────────────────────────────────

@pytest.fixture
def dog_document() -> dict:
    """A listing document using the store's key names."""
    return {
        "name": "Biscuit",
        "animalType": "Dog",
        "breed": "Beagle",
        "size": "Medium",
        "temperament": "Calm",
        "ageRange": "Adult",
        "gender": "Male",
        "color": "Brown",
        "status": "active",
        "shelterId": "shelter1",
        "shelterName": "Happy Tails",
        "createdAt": 1_690_000_000.0,
    }


@pytest.fixture
def dog(dog_document: dict) -> PetListing:
    return PetListing.from_document("pet1", dog_document)


@pytest.fixture
def matching_prefs() -> PreferenceSet:
    """Matches ``dog`` on every field."""
    return PreferenceSet(
        animal_type="dog",
        breed="beagle",
        size="medium",
        temperament="calm",
        age_range="adult",
        gender="male",
        color="brown",
    )


@pytest.fixture
def adopter_document() -> dict:
    return {
        "role": "adopter",
        "email": "ana@example.com",
        "displayName": "Ana D.",
        "adopterProfile": {"name": "Ana Diaz"},
        "preferences": {
            "animalType": "Dog",
            "size": "Medium",
            "ageRange": "Adult",
        },
    }


@pytest.fixture
def adopter(adopter_document: dict) -> UserRecord:
    return UserRecord.from_document("adopter1", adopter_document)


@pytest.fixture
def shelter_user() -> UserRecord:
    return UserRecord.from_document("shelter1", {
        "role": "shelter",
        "email": "staff@happytails.org",
        "shelterProfile": {"companyName": "Happy Tails", "address": "1 Main St"},
    })
