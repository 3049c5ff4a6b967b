"""
Section progression for multi-section registration forms.

A small state machine over the form's sections: it tracks the active
section index and the set of completed sections, and only lets the
registrant move forward once the active step validates. The step for a
section is its own fields plus, by convention, the identity fields on
the first step and the unassigned fields and terms acceptance on the
last step.

The controller does not evaluate visibility itself; callers pass in the
current values and visible set they have just computed.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from regforms.core.rules import FieldError, collect_errors
from regforms.core.schema import FormDefinition, FormSection

logger = logging.getLogger(__name__)


class NavigationError(ValueError):
    """Raised when a navigation request is not valid for the form."""


class StepResult(BaseModel):
    """Outcome of an advance or submit check."""

    ok: bool
    section_index: int
    errors: list[FieldError] = Field(default_factory=list)


class SectionProgression:
    """Tracks the active section and completed sections of one session.

    Args:
        definition: A form definition with at least one section.
    """

    def __init__(self, definition: FormDefinition):
        if not definition.sections:
            raise NavigationError(f"Form '{definition.form_id}' has no sections to progress through")
        self.definition = definition
        self._sections = definition.ordered_sections()
        self.section_index = 0
        self.completed_sections: set[int] = set()

    # -----------------------------------------------------------------
    # State
    # -----------------------------------------------------------------

    @property
    def section_count(self) -> int:
        return len(self._sections)

    @property
    def is_first(self) -> bool:
        return self.section_index == 0

    @property
    def is_last(self) -> bool:
        return self.section_index == self.section_count - 1

    @property
    def active_section(self) -> FormSection:
        return self._sections[self.section_index]

    def section_at(self, index: int) -> FormSection:
        self._check_index(index)
        return self._sections[index]

    def step_field_ids(self, index: int | None = None) -> list[str]:
        """IDs of every field shown on a step, in presentation order."""
        index = self.section_index if index is None else index
        self._check_index(index)

        ids: list[str] = []
        if index == 0:
            ids.extend(f.id for f in sorted(self.definition.identity_fields, key=lambda f: f.order))
        ids.extend(f.id for f in self.definition.fields_for_section(self._sections[index].id))
        if index == self.section_count - 1:
            ids.extend(f.id for f in self.definition.unassigned_fields())
            if self.definition.terms_field is not None:
                ids.append(self.definition.terms_field.id)
        return ids

    def validate_step(
        self,
        values: Mapping[str, Any],
        visible: frozenset[str],
        index: int | None = None,
    ) -> list[FieldError]:
        """All validation failures on a step's visible fields."""
        return collect_errors(self.step_field_ids(index), values, visible, self.definition)

    # -----------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------

    def advance(self, values: Mapping[str, Any], visible: frozenset[str]) -> StepResult:
        """Move to the next section if the active step validates.

        On success the active section is marked complete and the index
        moves forward by one, never past the last section.
        """
        errors = self.validate_step(values, visible)
        if errors:
            logger.info(
                "Advance refused on section %d of form '%s': %d error(s)",
                self.section_index, self.definition.form_id, len(errors),
            )
            return StepResult(ok=False, section_index=self.section_index, errors=errors)

        self.completed_sections.add(self.section_index)
        self.section_index = min(self.section_index + 1, self.section_count - 1)
        logger.info("Advanced to section %d of form '%s'", self.section_index, self.definition.form_id)
        return StepResult(ok=True, section_index=self.section_index)

    def retreat(self) -> bool:
        """Move back one section. Completed sections stay completed."""
        if self.section_index == 0:
            return False
        self.section_index -= 1
        logger.info("Retreated to section %d of form '%s'", self.section_index, self.definition.form_id)
        return True

    def can_jump_to(self, index: int) -> bool:
        """A section can be reached if it is completed or not ahead of the active one."""
        self._check_index(index)
        return index in self.completed_sections or index <= self.section_index

    def jump_to(self, index: int) -> bool:
        """Jump to a completed or earlier section. Never skips ahead.

        Raises:
            NavigationError: If the index is outside the form's sections.
        """
        if not self.can_jump_to(index):
            logger.warning(
                "Jump to unvisited section %d of form '%s' refused",
                index, self.definition.form_id,
            )
            return False
        self.section_index = index
        return True

    def check_submit(self, values: Mapping[str, Any], visible: frozenset[str]) -> StepResult:
        """Validate the last step before submission.

        Raises:
            NavigationError: If the active section is not the last one.
        """
        if not self.is_last:
            raise NavigationError(
                f"Submit is only allowed from the last section "
                f"(active: {self.section_index}, last: {self.section_count - 1})"
            )

        errors = self.validate_step(values, visible)
        if errors:
            return StepResult(ok=False, section_index=self.section_index, errors=errors)

        self.completed_sections.add(self.section_index)
        return StepResult(ok=True, section_index=self.section_index)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.section_count:
            raise NavigationError(
                f"Section index {index} out of range (0 to {self.section_count - 1})"
            )
