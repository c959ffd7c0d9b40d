"""
Tests for pawmatch/matching/thread_identity.py.

What we test
------------
- thread_id_for joins the three ids with "_" and is deterministic.
- None components become empty strings; values are trimmed.
- parse_thread_id round-trips safe ids and rejects ambiguous ones.
- is_safe_component flags ids containing the separator.
"""

from __future__ import annotations

from pawmatch.matching.thread_identity import (
    ThreadKey,
    is_safe_component,
    parse_thread_id,
    thread_id_for,
    thread_key_for,
)


class TestThreadIdFor:
    def test_joins_components(self):
        assert thread_id_for("p", "a", "s") == "p_a_s"

    def test_deterministic(self):
        assert thread_id_for("p", "a", "s") == thread_id_for("p", "a", "s")

    def test_order_matters(self):
        assert thread_id_for("p", "a", "s") != thread_id_for("p", "s", "a")

    def test_none_component_becomes_empty(self):
        assert thread_id_for("p", "a", None) == "p_a_"

    def test_components_are_trimmed_and_stringified(self):
        assert thread_id_for(" p1 ", 42, "s1") == "p1_42_s1"

    def test_key_exposes_thread_id(self):
        key = thread_key_for("p", "a", "s")
        assert key == ThreadKey("p", "a", "s")
        assert key.thread_id == "p_a_s"


class TestParseThreadId:
    def test_round_trip(self):
        assert parse_thread_id(thread_id_for("pet9", "ad7", "sh3")) == ThreadKey("pet9", "ad7", "sh3")

    def test_rejects_ambiguous_id(self):
        assert parse_thread_id(thread_id_for("pet_9", "ad7", "sh3")) is None

    def test_rejects_empty(self):
        assert parse_thread_id(None) is None
        assert parse_thread_id("") is None

    def test_rejects_too_few_parts(self):
        assert parse_thread_id("p_a") is None


class TestIsSafeComponent:
    def test_alphanumeric_is_safe(self):
        assert is_safe_component("aB3xYz")

    def test_separator_is_unsafe(self):
        assert not is_safe_component("a_b")
