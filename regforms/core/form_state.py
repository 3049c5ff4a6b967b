"""
Form session: the engine façade for one in-progress registration.

Ties together the value store, visibility evaluator, rule compiler and
section progression:
- Every edit synchronously recomputes which fields are visible
- Values of fields that become hidden are cleared (configurable)
- Multi-section forms navigate through SectionProgression
- Single-page forms skip navigation and validate everything on submit
- Submission hands the visible values to a collaborator and keeps the
  session intact on failure so it can be retried
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from regforms.core.progression import NavigationError, SectionProgression, StepResult
from regforms.core.rules import FieldError, RuleSet, collect_errors, effective_rules, serialize_value
from regforms.core.schema import FormDefinition
from regforms.core.store import FormValueStore
from regforms.core.submission import SubmissionCollaborator, SubmissionResult
from regforms.core.utils import is_empty_value
from regforms.core.visibility import compute_visibility, hidden_value_ids

logger = logging.getLogger(__name__)


class UnknownFieldError(ValueError):
    """Raised when a value is set for a field the form does not define."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Field '{field_id}' does not exist in the form definition")


class SessionClosedError(Exception):
    """Raised when a submitted (or submitting) session is used again."""


class SubmitOutcome(BaseModel):
    """Result of a submit attempt.

    ``errors`` is non-empty when validation blocked the submit; ``result``
    is the collaborator's answer when the payload was handed over.
    """

    submitted: bool
    errors: list[FieldError] = Field(default_factory=list)
    result: SubmissionResult | None = None


class FormSession:
    """State of a single registration session.

    Args:
        definition: A validated FormDefinition.
        draft: Optional values to pre-seed the session with.
        clear_hidden_values: Remove a field's value when it becomes hidden.
            Hidden values are never validated or submitted either way.
    """

    def __init__(
        self,
        definition: FormDefinition,
        draft: Mapping[str, Any] | None = None,
        clear_hidden_values: bool = True,
    ):
        self.definition = definition
        self.clear_hidden_values = clear_hidden_values
        self.progression = SectionProgression(definition) if definition.is_multi_section else None
        self.submitted = False
        self.last_result: SubmissionResult | None = None
        self._submitting = False

        seed = {}
        for field_id, value in (draft or {}).items():
            if definition.get_field(field_id) is None:
                logger.warning("Ignoring draft value for unknown field '%s'", field_id)
                continue
            seed[field_id] = value
        self.store = FormValueStore(seed)
        self._visible: frozenset[str] = frozenset()
        self._recompute()

    # -----------------------------------------------------------------
    # Visibility and rules
    # -----------------------------------------------------------------

    @property
    def visible_field_ids(self) -> frozenset[str]:
        return self._visible

    def is_visible(self, field_id: str) -> bool:
        self._require_field(field_id)
        return field_id in self._visible

    def rules_for(self, field_id: str) -> RuleSet:
        """Effective rules for a field (empty while it is hidden)."""
        self._require_field(field_id)
        return effective_rules(field_id, self._visible, self.definition)

    # -----------------------------------------------------------------
    # Value management
    # -----------------------------------------------------------------

    def get_value(self, field_id: str) -> Any:
        return self.store.get(field_id)

    @property
    def values(self) -> dict[str, Any]:
        """A copy of all stored values."""
        return self.store.snapshot()

    def set_value(self, field_id: str, value: Any) -> None:
        """Store a value and recompute visibility.

        Values are not validated here; validation runs when advancing or
        submitting.

        Raises:
            UnknownFieldError: If the field does not exist.
            SessionClosedError: If the session was already submitted.
        """
        self._require_open()
        self._require_field(field_id)
        self.store.set(field_id, value)
        self._recompute()

    def set_values(self, values: Mapping[str, Any]) -> None:
        """Store several values, recomputing visibility once at the end.

        Raises:
            UnknownFieldError: If any field does not exist (nothing is stored).
        """
        self._require_open()
        for field_id in values:
            self._require_field(field_id)
        for field_id, value in values.items():
            self.store.set(field_id, value)
        self._recompute()

    def clear_value(self, field_id: str) -> None:
        """Remove a field's value and recompute visibility."""
        self._require_open()
        self._require_field(field_id)
        if self.store.delete(field_id):
            self._recompute()

    # -----------------------------------------------------------------
    # Navigation
    # -----------------------------------------------------------------

    @property
    def is_multi_section(self) -> bool:
        return self.progression is not None

    def current_field_ids(self) -> list[str]:
        """Fields on the active step, or every field of a single-page form."""
        if self.progression is not None:
            return self.progression.step_field_ids()
        return [f.id for f in self.definition.presentation_order()]

    def advance(self) -> StepResult:
        self._require_open()
        return self._require_progression().advance(self.store.snapshot(), self._visible)

    def retreat(self) -> bool:
        self._require_open()
        return self._require_progression().retreat()

    def jump_to(self, index: int) -> bool:
        self._require_open()
        return self._require_progression().jump_to(index)

    # -----------------------------------------------------------------
    # Validation and submission
    # -----------------------------------------------------------------

    def validate(self) -> list[FieldError]:
        """All failures on the current step (every visible field if single-page)."""
        return collect_errors(
            self.current_field_ids(), self.store.snapshot(), self._visible, self.definition
        )

    def submission_payload(self) -> dict[str, Any]:
        """Serialized values of visible fields, in presentation order.

        Hidden fields, empty values and terms acceptance are left out.
        """
        terms_field = self.definition.terms_field
        payload: dict[str, Any] = {}
        for field in self.definition.presentation_order():
            if terms_field is not None and field.id == terms_field.id:
                continue
            if field.id not in self._visible:
                continue
            value = self.store.get(field.id)
            if is_empty_value(value):
                continue
            payload[field.id] = serialize_value(field, value)
        return payload

    async def submit(self, collaborator: SubmissionCollaborator) -> SubmitOutcome:
        """Validate the final step and hand the payload to the collaborator.

        A failed submission leaves values, section index and completed
        sections untouched, so the same session can simply submit again.

        Raises:
            SessionClosedError: If already submitted or a submit is in flight.
            NavigationError: If a multi-section form is not on its last section.
        """
        self._require_open()
        if self._submitting:
            raise SessionClosedError("A submission for this session is already in progress")

        if self.progression is not None:
            errors = self.progression.check_submit(self.store.snapshot(), self._visible).errors
        else:
            errors = self.validate()

        if errors:
            logger.info(
                "Submit of form '%s' blocked by %d validation error(s)",
                self.definition.form_id, len(errors),
            )
            return SubmitOutcome(submitted=False, errors=errors)

        payload = self.submission_payload()
        self._submitting = True
        try:
            result = await collaborator.submit(self.definition.form_id, payload)
        finally:
            self._submitting = False

        self.last_result = result
        if result.success:
            self.submitted = True
            logger.info("Form '%s' submitted with %d field(s)", self.definition.form_id, len(payload))
        else:
            logger.warning("Submission of form '%s' failed: %s", self.definition.form_id, result.reason)
        return SubmitOutcome(submitted=result.success, result=result)

    # -----------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------

    def _require_field(self, field_id: str) -> None:
        if self.definition.get_field(field_id) is None:
            raise UnknownFieldError(field_id)

    def _require_open(self) -> None:
        if self.submitted:
            raise SessionClosedError("This session has already been submitted")

    def _require_progression(self) -> SectionProgression:
        if self.progression is None:
            raise NavigationError(
                f"Form '{self.definition.form_id}' is single-page and has no section navigation"
            )
        return self.progression

    def _recompute(self) -> None:
        """Re-evaluate visibility and clear values of fields that became hidden.

        Clearing repeats until stable so chained dependencies settle.
        """
        values = self.store.snapshot()
        visible = compute_visibility(values, self.definition)

        if self.clear_hidden_values:
            hidden = hidden_value_ids(values, visible)
            while hidden:
                for field_id in hidden:
                    self.store.delete(field_id)
                logger.debug("Cleared values of hidden fields: %s", hidden)
                values = self.store.snapshot()
                visible = compute_visibility(values, self.definition)
                hidden = hidden_value_ids(values, visible)

        self._visible = visible
