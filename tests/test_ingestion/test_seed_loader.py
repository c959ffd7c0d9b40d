"""
Tests for pawmatch.ingestion.seed_loader.

Covers:
  - parse_seed(): sections optional, records grouped by collection
  - validation errors are collected and nothing is written
  - load_seed_file(): missing file, malformed JSON
  - import_seed(): documents written under their ids, createdAt stamped
    from the store clock only where absent
"""

from __future__ import annotations

import json

import pytest

from pawmatch.ingestion.seed_loader import import_seed, load_seed_file, parse_seed
from pawmatch.models.pet import PetListing

_SEED = {
    "users": [
        {"id": "u1", "role": "adopter", "displayName": "Ana",
         "preferences": {"animalType": "Dog", "size": "Medium"}},
        {"id": "s1", "role": "shelter", "shelterProfile": {"companyName": "Happy Tails"}},
    ],
    "pets": [
        {"id": "p1", "name": "Rex", "animalType": "Dog", "shelterId": "s1", "status": "active"},
        {"id": "p2", "name": "Tom", "animalType": "Cat", "shelterId": "s1", "createdAt": 123.0},
    ],
    "applications": [
        {"id": "a1", "petId": "p1", "applicantId": "u1", "shelterId": "s1", "status": "submitted"},
    ],
}


# ── parse_seed ─────────────────────────────────────────────────────────────────

class TestParseSeed:
    def test_groups_by_collection(self):
        seed = parse_seed(_SEED)
        assert seed.count("users") == 2
        assert seed.count("pets") == 2
        assert seed.count("applications") == 1

    def test_id_removed_from_body(self):
        seed = parse_seed(_SEED)
        doc_id, body = seed.documents["pets"][0]
        assert doc_id == "p1"
        assert "id" not in body
        assert body["name"] == "Rex"

    def test_sections_are_optional(self):
        seed = parse_seed({"pets": [{"id": "p1"}]})
        assert seed.count("pets") == 1
        assert seed.count("users") == 0

    def test_non_object_payload(self):
        with pytest.raises(ValueError, match="JSON object"):
            parse_seed([1, 2])

    def test_missing_id_reported(self):
        with pytest.raises(ValueError, match=r"pets\[0\]: missing 'id'"):
            parse_seed({"pets": [{"name": "No Id"}]})

    def test_invalid_status_reported(self):
        with pytest.raises(ValueError, match=r"pets\[0\] \(p1\)"):
            parse_seed({"pets": [{"id": "p1", "status": "sold"}]})

    def test_invalid_role_reported(self):
        with pytest.raises(ValueError, match=r"users\[0\] \(u1\)"):
            parse_seed({"users": [{"id": "u1", "role": "superuser"}]})

    def test_section_must_be_list(self):
        with pytest.raises(ValueError, match="pets: expected a list"):
            parse_seed({"pets": {"id": "p1"}})

    def test_reports_at_most_ten_errors(self):
        raw = {"pets": [{"name": f"x{i}"} for i in range(15)]}
        with pytest.raises(ValueError) as exc_info:
            parse_seed(raw)
        message = str(exc_info.value)
        assert message.startswith("15 invalid seed record(s)")
        assert "pets[9]" in message
        assert "pets[10]" not in message


# ── load_seed_file ─────────────────────────────────────────────────────────────

class TestLoadSeedFile:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps(_SEED), encoding="utf-8")
        assert load_seed_file(path).count("pets") == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_seed_file(tmp_path / "nope.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(ValueError, match="not valid JSON"):
            load_seed_file(path)


# ── import_seed ────────────────────────────────────────────────────────────────

class TestImportSeed:
    def test_writes_every_record(self, store):
        counts = import_seed(store, parse_seed(_SEED))
        assert counts == {"users": 2, "pets": 2, "applications": 1}
        assert store.get("users", "s1")["shelterProfile"] == {"companyName": "Happy Tails"}

    def test_created_at_stamped_when_missing(self, store, clock):
        import_seed(store, parse_seed(_SEED))
        assert store.get("pets", "p1")["createdAt"] == clock.now
        assert store.get("pets", "p2")["createdAt"] == 123.0
        assert store.get("applications", "a1")["createdAt"] == clock.now
        assert "createdAt" not in store.get("users", "u1")

    def test_imported_pets_read_back(self, store):
        import_seed(store, parse_seed(_SEED))
        pet = PetListing.from_document("p1", store.get("pets", "p1"))
        assert pet.animal_type == "Dog"
        assert pet.is_active

    def test_invalid_seed_writes_nothing(self, store):
        raw = {"pets": [{"id": "ok"}, {"id": "bad", "status": "sold"}]}
        with pytest.raises(ValueError):
            import_seed(store, parse_seed(raw))
        assert store.get("pets", "ok") is None

    def test_reimport_overwrites(self, store):
        import_seed(store, parse_seed(_SEED))
        import_seed(store, parse_seed({"pets": [{"id": "p1", "name": "Max"}]}))
        assert store.get("pets", "p1")["name"] == "Max"
