"""
Unit tests for section progression on multi-section forms.

Tests cover:
- Step composition (identity fields first, unassigned fields and terms last)
- Advancing only when the active step validates
- Retreat and jumping back, never skipping ahead
- Index stays within range at the last section
- Submit only from the last section
"""

import pytest

from regforms.core.progression import NavigationError, SectionProgression
from regforms.core.schema import TERMS_FIELD_ID
from regforms.core.visibility import compute_visibility
from regforms.tests.helpers import build_definition

STEP_ONE = {"firstName": "Ada", "church": "Grace Chapel"}
STEP_TWO = {"age": 30}
STEP_THREE = {"shirt": "M", "comments": "None", TERMS_FIELD_ID: True}
ALL_VALUES = {**STEP_ONE, **STEP_TWO, **STEP_THREE}


def advance(progression: SectionProgression, values: dict):
    return progression.advance(values, compute_visibility(values, progression.definition))


# =============================================================
# Test: Construction and step layout
# =============================================================


class TestSteps:
    """Tests for which fields belong to each step."""

    def test_requires_sections(self):
        with pytest.raises(NavigationError, match="no sections"):
            SectionProgression(build_definition())

    def test_initial_state(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        assert progression.section_index == 0
        assert progression.completed_sections == set()
        assert progression.section_count == 3
        assert progression.is_first and not progression.is_last
        assert progression.active_section.id == "s1"

    def test_step_field_ids(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        assert progression.step_field_ids(0) == ["firstName", "church"]
        assert progression.step_field_ids(1) == ["age"]
        assert progression.step_field_ids(2) == ["shirt", "comments", TERMS_FIELD_ID]

    def test_single_section_holds_everything(self, rsvp_definition):
        progression = SectionProgression(rsvp_definition)
        assert progression.is_first and progression.is_last
        assert progression.step_field_ids() == ["attending", "guestCount", "dietaryNotes"]

    def test_section_at_out_of_range(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        with pytest.raises(NavigationError, match="out of range"):
            progression.section_at(3)
        with pytest.raises(NavigationError):
            progression.step_field_ids(-1)


# =============================================================
# Test: Advance
# =============================================================


class TestAdvance:
    """Tests for forward movement."""

    def test_refused_with_errors(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        result = advance(progression, {})
        assert not result.ok
        assert result.section_index == 0
        assert {e.field_id for e in result.errors} == {"firstName", "church"}
        assert progression.completed_sections == set()

    def test_errors_only_from_active_step(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        result = advance(progression, STEP_ONE)
        assert result.ok
        assert result.section_index == 1
        assert progression.completed_sections == {0}

    def test_hidden_fields_do_not_block(self, rsvp_definition):
        progression = SectionProgression(rsvp_definition)
        result = advance(progression, {"attending": False})
        assert result.ok

    def test_visible_required_field_blocks(self, rsvp_definition):
        progression = SectionProgression(rsvp_definition)
        result = advance(progression, {"attending": True})
        assert not result.ok
        assert [e.field_id for e in result.errors] == ["guestCount"]

    def test_index_capped_at_last_section(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        for _ in range(5):
            advance(progression, ALL_VALUES)
        assert progression.section_index == 2
        assert progression.completed_sections == {0, 1, 2}

    def test_walk_through(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        assert advance(progression, STEP_ONE).ok
        assert not advance(progression, STEP_ONE).ok
        assert advance(progression, {**STEP_ONE, **STEP_TWO}).ok
        assert progression.is_last


# =============================================================
# Test: Retreat and jump
# =============================================================


class TestBackwardNavigation:
    """Tests for retreat and jump_to."""

    def test_retreat_at_first_section(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        assert progression.retreat() is False
        assert progression.section_index == 0

    def test_retreat_keeps_completion(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        advance(progression, ALL_VALUES)
        advance(progression, ALL_VALUES)
        assert progression.retreat() is True
        assert progression.section_index == 1
        assert progression.completed_sections == {0, 1}

    def test_jump_back(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        advance(progression, ALL_VALUES)
        advance(progression, ALL_VALUES)
        assert progression.jump_to(0) is True
        assert progression.section_index == 0

    def test_jump_forward_to_completed_section(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        advance(progression, ALL_VALUES)
        advance(progression, ALL_VALUES)
        progression.jump_to(0)
        assert progression.can_jump_to(1)
        assert progression.jump_to(1) is True

    def test_cannot_skip_ahead(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        assert not progression.can_jump_to(2)
        assert progression.jump_to(2) is False
        assert progression.section_index == 0

    def test_jump_out_of_range(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        with pytest.raises(NavigationError):
            progression.jump_to(7)


# =============================================================
# Test: Submit check
# =============================================================


class TestCheckSubmit:
    """Tests for the final-step check."""

    def test_not_on_last_section(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        with pytest.raises(NavigationError, match="last section"):
            progression.check_submit(ALL_VALUES, compute_visibility(ALL_VALUES, three_section_definition))

    def test_terms_required(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        advance(progression, ALL_VALUES)
        advance(progression, ALL_VALUES)
        values = {**ALL_VALUES, TERMS_FIELD_ID: False}
        result = progression.check_submit(values, compute_visibility(values, three_section_definition))
        assert not result.ok
        assert [e.field_id for e in result.errors] == [TERMS_FIELD_ID]
        assert 2 not in progression.completed_sections

    def test_success_marks_last_complete(self, three_section_definition):
        progression = SectionProgression(three_section_definition)
        advance(progression, ALL_VALUES)
        advance(progression, ALL_VALUES)
        result = progression.check_submit(ALL_VALUES, compute_visibility(ALL_VALUES, three_section_definition))
        assert result.ok
        assert progression.completed_sections == {0, 1, 2}
