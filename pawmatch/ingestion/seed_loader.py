"""
JSON seed import for users, pets and applications.

Format::

    {
      "users":        [{"id": "u1", "role": "adopter", "displayName": "Ana",
                        "preferences": {"animalType": "Dog", "size": "Medium"}}],
      "pets":         [{"id": "p1", "name": "Rex", "animalType": "Dog",
                        "shelterId": "s1", "status": "active"}],
      "applications": [{"id": "a1", "petId": "p1", "applicantId": "u1",
                        "shelterId": "s1", "status": "submitted"}]
    }

Every section is optional. Each record needs a non-blank ``id``; the rest of
the record is written as the document body with the store's own key names.
Pets and applications without ``createdAt`` get a server timestamp.

All records are validated before anything is written. If any fails, a single
``ValueError`` lists the first 10 failures and the store is left untouched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from pawmatch.live.plans import APPLICATIONS, PETS, USERS
from pawmatch.live.query import SERVER_TIMESTAMP, DocumentStore
from pawmatch.models.application import Application
from pawmatch.models.document import is_blank
from pawmatch.models.pet import PetListing
from pawmatch.models.user import UserRecord

logger = logging.getLogger(__name__)

SEED_SECTIONS: dict[str, tuple[str, Callable[[str, dict[str, Any]], Any]]] = {
    "users":        (USERS, UserRecord.from_document),
    "pets":         (PETS, PetListing.from_document),
    "applications": (APPLICATIONS, Application.from_document),
}

_TIMESTAMPED = {PETS, APPLICATIONS}


@dataclass
class SeedData:
    """Validated seed records: collection → ``[(id, body), ...]``."""

    documents: dict[str, list[tuple[str, dict[str, Any]]]] = field(default_factory=dict)

    def count(self, collection: str) -> int:
        return len(self.documents.get(collection, []))


def parse_seed(raw: Any) -> SeedData:
    """Validate a decoded seed payload.

    Raises:
        ValueError: If the payload is not an object or any record is invalid.
    """
    if not isinstance(raw, dict):
        raise ValueError("Seed file must contain a JSON object")

    seed = SeedData()
    errors: list[str] = []

    for section, (collection, parse) in SEED_SECTIONS.items():
        records = raw.get(section) or []
        if not isinstance(records, list):
            errors.append(f"{section}: expected a list")
            continue

        for i, record in enumerate(records):
            label = f"{section}[{i}]"
            if not isinstance(record, dict):
                errors.append(f"{label}: expected an object")
                continue
            doc_id = record.get("id")
            if is_blank(doc_id):
                errors.append(f"{label}: missing 'id'")
                continue

            body = {k: v for k, v in record.items() if k != "id"}
            try:
                parse(str(doc_id), body)
            except ValidationError as exc:
                errors.append(f"{label} ({doc_id}): {exc.errors()[0]['msg']}")
                continue
            seed.documents.setdefault(collection, []).append((str(doc_id), body))

    if errors:
        shown = "\n  ".join(errors[:10])
        raise ValueError(f"{len(errors)} invalid seed record(s):\n  {shown}")
    return seed


def load_seed_file(path: Path) -> SeedData:
    """Read and validate a seed file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the JSON is malformed or any record is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")
    with open(path, encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Seed file is not valid JSON: {exc}") from exc
    return parse_seed(raw)


def import_seed(store: DocumentStore, seed: SeedData) -> dict[str, int]:
    """Write validated records to ``store``; returns counts per collection."""
    counts: dict[str, int] = {}
    for collection, docs in seed.documents.items():
        for doc_id, body in docs:
            data = dict(body)
            if collection in _TIMESTAMPED and "createdAt" not in data:
                data["createdAt"] = SERVER_TIMESTAMP
            store.set(collection, doc_id, data)
        counts[collection] = len(docs)
        logger.info("Imported %d %s", len(docs), collection)
    return counts
