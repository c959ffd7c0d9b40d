"""Tests for pet taxonomy integrity: enums, transitions, ordered vocabularies."""

from __future__ import annotations

import pytest

from pawmatch.taxonomy.pet_taxonomy import (
    AGE_ORDER,
    AGES,
    ALLOWED_TRANSITIONS,
    SIZE_ORDER,
    SIZES,
    ApplicationStatus,
    PetStatus,
    Role,
)


class TestEnums:
    @pytest.mark.parametrize("enum_cls", [Role, PetStatus, ApplicationStatus])
    def test_values_are_lowercase_slugs(self, enum_cls):
        for member in enum_cls:
            assert member.value == member.value.lower(), f"{enum_cls.__name__}.{member.name} not lowercase"
            assert " " not in member.value

    def test_str_enum_compares_to_plain_string(self):
        assert Role.SHELTER == "shelter"
        assert PetStatus("adopted") is PetStatus.ADOPTED


class TestAllowedTransitions:
    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(ApplicationStatus)

    def test_no_self_transitions(self):
        for status, targets in ALLOWED_TRANSITIONS.items():
            assert status not in targets

    def test_decisions_only_from_submitted(self):
        for status in (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED):
            assert ALLOWED_TRANSITIONS[status] == frozenset({ApplicationStatus.SUBMITTED})

    def test_approved_cannot_flip_to_rejected(self):
        assert ApplicationStatus.REJECTED not in ALLOWED_TRANSITIONS[ApplicationStatus.APPROVED]


class TestVocabularies:
    def test_orders_match_display_values(self):
        assert tuple(s.lower() for s in SIZES) == SIZE_ORDER
        assert tuple(a.lower() for a in AGES) == AGE_ORDER

    @pytest.mark.parametrize("order", [SIZE_ORDER, AGE_ORDER])
    def test_no_duplicates(self, order):
        assert len(order) == len(set(order))
