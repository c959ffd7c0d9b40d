"""
Tests for pawmatch/db/document_store.py.

What we test
------------
- Generated ids: 20 alphanumeric characters, unique.
- SERVER_TIMESTAMP resolves to the store clock, including nested values.
- set() replaces, set(merge=True) merges, update() requires an existing
  document.
- query(): equality filters, descending order, limit, missing order field,
  MissingIndexError without a declared index.
- subscribe(): immediate snapshot, delivery on relevant writes only,
  unsubscribe, missing index reported through on_error.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pawmatch.db.document_store import ID_LENGTH, generate_id
from pawmatch.exceptions import DocumentNotFoundError, MissingIndexError
from pawmatch.live.query import SERVER_TIMESTAMP, Query


# ── Ids and writes ────────────────────────────────────────────────────────────

class TestGenerateId:
    def test_length_and_alphabet(self):
        doc_id = generate_id()
        assert len(doc_id) == ID_LENGTH == 20
        assert doc_id.isalnum()

    def test_unique(self):
        assert len({generate_id() for _ in range(200)}) == 200


class TestWrites:
    def test_add_returns_generated_id(self, store):
        doc_id = store.add("pets", {"name": "Rex"})
        assert len(doc_id) == ID_LENGTH
        assert store.get("pets", doc_id) == {"name": "Rex"}

    def test_get_missing_returns_none(self, store):
        assert store.get("pets", "nope") is None

    def test_server_timestamp_uses_clock(self, store, clock):
        store.set("pets", "p1", {"createdAt": SERVER_TIMESTAMP, "meta": {"at": SERVER_TIMESTAMP}})
        assert store.get("pets", "p1") == {"createdAt": clock.now, "meta": {"at": clock.now}}

    def test_datetimes_stored_as_epoch_seconds(self, store):
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        store.set("pets", "p1", {"createdAt": when})
        assert store.get("pets", "p1")["createdAt"] == pytest.approx(when.timestamp())

    def test_set_replaces(self, store):
        store.set("pets", "p1", {"a": 1, "b": 2})
        store.set("pets", "p1", {"a": 3})
        assert store.get("pets", "p1") == {"a": 3}

    def test_set_merge_keeps_other_fields(self, store):
        store.set("threads", "t1", {"a": 1, "b": 2})
        store.set("threads", "t1", {"b": 5, "c": 6}, merge=True)
        assert store.get("threads", "t1") == {"a": 1, "b": 5, "c": 6}

    def test_set_merge_creates_missing(self, store):
        store.set("threads", "t1", {"a": 1}, merge=True)
        assert store.get("threads", "t1") == {"a": 1}

    def test_update_existing(self, store, clock):
        store.set("applications", "a1", {"status": "submitted"})
        clock.advance(60)
        store.update("applications", "a1", {"status": "approved", "updatedAt": SERVER_TIMESTAMP})
        assert store.get("applications", "a1") == {"status": "approved", "updatedAt": clock.now}

    def test_update_missing_raises(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.update("applications", "ghost", {"status": "approved"})

    def test_collections_are_isolated(self, store):
        store.set("pets", "x", {"kind": "pet"})
        store.set("users", "x", {"kind": "user"})
        assert store.get("pets", "x") == {"kind": "pet"}
        assert store.get("users", "x") == {"kind": "user"}

    def test_get_returns_a_copy(self, store):
        store.set("pets", "p1", {"tags": ["a"]})
        store.get("pets", "p1")["tags"].append("b")
        assert store.get("pets", "p1") == {"tags": ["a"]}

    def test_delete(self, store):
        store.set("pets", "p1", {})
        store.delete("pets", "p1")
        assert store.get("pets", "p1") is None


# ── One-shot queries ──────────────────────────────────────────────────────────

class TestQuery:
    @pytest.fixture(autouse=True)
    def _seed(self, store):
        store.set("pets", "p1", {"shelterId": "s1", "createdAt": 10})
        store.set("pets", "p2", {"shelterId": "s2", "createdAt": 30})
        store.set("pets", "p3", {"shelterId": "s1", "createdAt": 20})
        store.set("pets", "p4", {"shelterId": "s1"})

    def test_store_order_without_ordering(self, store):
        assert [d for d, _ in store.query(Query("pets"))] == ["p1", "p2", "p3", "p4"]

    def test_equality_filter(self, store):
        rows = store.query(Query("pets").where("shelterId", "s1"))
        assert [d for d, _ in rows] == ["p1", "p3", "p4"]

    def test_ordered_descending_skips_missing_field(self, store):
        rows = store.query(Query("pets").ordered("createdAt"))
        assert [d for d, _ in rows] == ["p2", "p3", "p1"]

    def test_ordered_ascending(self, store):
        rows = store.query(Query("pets").ordered("createdAt", descending=False))
        assert [d for d, _ in rows] == ["p1", "p3", "p2"]

    def test_limit(self, store):
        rows = store.query(Query("pets").ordered("createdAt").limited(2))
        assert [d for d, _ in rows] == ["p2", "p3"]

    def test_filtered_ordered_needs_index(self, store):
        query = Query("pets").where("shelterId", "s1").ordered("createdAt")
        with pytest.raises(MissingIndexError) as exc_info:
            store.query(query)
        assert exc_info.value.fields == ("shelterId", "createdAt")

        store.declare_index("pets", ("shelterId", "createdAt"))
        assert store.has_index("pets", ("shelterId", "createdAt"))
        assert [d for d, _ in store.query(query)] == ["p3", "p1"]

    def test_declare_index_is_idempotent(self, store):
        store.declare_index("pets", ("shelterId", "createdAt"))
        store.declare_index("pets", ("shelterId", "createdAt"))
        assert store.has_index("pets", ("shelterId", "createdAt"))

    def test_update_keeps_store_order(self, store):
        store.update("pets", "p1", {"name": "Renamed"})
        assert [d for d, _ in store.query(Query("pets"))][0] == "p1"


# ── Live subscriptions ────────────────────────────────────────────────────────

class TestSubscribe:
    def test_delivers_current_result_immediately(self, store):
        store.set("pets", "p1", {"createdAt": 1})
        snapshots = []
        sub = store.subscribe(Query("pets"), snapshots.append, pytest.fail)
        assert sub.active
        assert snapshots == [[("p1", {"createdAt": 1})]]

    def test_delivers_after_relevant_writes(self, store):
        snapshots = []
        store.subscribe(Query("pets").where("shelterId", "s1"), snapshots.append, pytest.fail)
        store.set("pets", "p1", {"shelterId": "s1"})
        store.set("pets", "p2", {"shelterId": "s2"})
        store.set("users", "u1", {})
        assert [[d for d, _ in snap] for snap in snapshots] == [[], ["p1"]]

    def test_unsubscribe_stops_delivery(self, store):
        snapshots = []
        sub = store.subscribe(Query("pets"), snapshots.append, pytest.fail)
        assert store.active_subscription_count == 1
        sub.unsubscribe()
        sub.unsubscribe()
        store.set("pets", "p1", {})
        assert len(snapshots) == 1
        assert store.active_subscription_count == 0

    def test_missing_index_reported_through_on_error(self, store):
        errors = []
        sub = store.subscribe(
            Query("pets").where("shelterId", "s1").ordered("createdAt"),
            lambda rows: pytest.fail("no snapshot expected"),
            errors.append,
        )
        assert not sub.active
        assert isinstance(errors[0], MissingIndexError)
        assert store.active_subscription_count == 0

    def test_callback_may_unsubscribe_another_listener(self, store):
        second_snaps = []
        subs = {}

        def first(rows):
            if rows and "second" in subs:
                subs["second"].unsubscribe()

        store.subscribe(Query("pets"), first, pytest.fail)
        subs["second"] = store.subscribe(Query("pets"), second_snaps.append, pytest.fail)
        store.set("pets", "p1", {})
        assert second_snaps == [[]]
