"""
Deterministic visibility evaluator for registration form fields.

Given the current values and a form definition, computes which fields
are visible. A field without conditional logic is always visible. A field
with logic is visible when its rules match, and only while every field it
depends on is itself visible: a hidden controller never activates its
dependents. Evaluation walks the dependency graph in topological order so
hiding propagates along the whole chain.

Evaluation is a pure function of (values, definition).
"""

from collections.abc import Mapping
from typing import Any

from regforms.core.dependencies import evaluation_order
from regforms.core.schema import (
    ConditionalLogic,
    ConditionalOperator,
    ConditionalRule,
    FormDefinition,
    LogicAction,
    LogicType,
)
from regforms.core.utils import is_empty_value, to_number


def compute_visibility(values: Mapping[str, Any], definition: FormDefinition) -> frozenset[str]:
    """Return the IDs of all fields visible for the given values.

    Args:
        values: Current field values keyed by field ID.
        definition: A validated form definition.

    Returns:
        The set of visible field IDs (the terms field, when enabled, is
        always included).
    """
    fields = {f.id: f for f in definition.all_fields}
    visible: set[str] = set()

    for field_id in evaluation_order(definition.all_fields):
        field = fields[field_id]
        logic = field.visibility_logic

        if logic is None:
            visible.add(field_id)
            continue

        # A hidden controller forces its dependents hidden
        if any(dep not in visible for dep in field.depends_on):
            continue

        if evaluate_logic(logic, values):
            visible.add(field_id)

    if definition.terms_field is not None:
        visible.add(definition.terms_field.id)

    return frozenset(visible)


def is_field_visible(field_id: str, values: Mapping[str, Any], definition: FormDefinition) -> bool:
    """Determine whether a single field is visible for the given values.

    Raises:
        ValueError: If the field does not exist in the definition.
    """
    if definition.get_field(field_id) is None:
        raise ValueError(f"Field '{field_id}' does not exist in the form definition")
    return field_id in compute_visibility(values, definition)


def hidden_value_ids(values: Mapping[str, Any], visible: frozenset[str]) -> list[str]:
    """IDs that hold a value but are not currently visible."""
    return [field_id for field_id in values if field_id not in visible]


def evaluate_logic(logic: ConditionalLogic, values: Mapping[str, Any]) -> bool:
    """Evaluate a logic block and return whether the field should be shown."""
    results = [evaluate_rule(rule, values) for rule in logic.rules]
    matched = all(results) if logic.logic_type == LogicType.ALL else any(results)
    return matched if logic.action == LogicAction.SHOW else not matched


def evaluate_rule(rule: ConditionalRule, values: Mapping[str, Any]) -> bool:
    """Evaluate a single conditional rule against the current values.

    An unset or empty controlling value never satisfies a comparison; it
    only satisfies ``isEmpty``.
    """
    actual = values.get(rule.depends_on_field_id)
    expected = rule.comparison_value

    if rule.operator == ConditionalOperator.IS_EMPTY:
        return is_empty_value(actual)
    if rule.operator == ConditionalOperator.IS_NOT_EMPTY:
        return not is_empty_value(actual)

    if is_empty_value(actual) or expected is None:
        return False

    match rule.operator:
        case ConditionalOperator.EQUALS:
            return _matches(actual, expected)

        case ConditionalOperator.NOT_EQUALS:
            return not _matches(actual, expected)

        case ConditionalOperator.CONTAINS:
            return _contains(actual, expected)

        case ConditionalOperator.NOT_CONTAINS:
            return not _contains(actual, expected)

        case ConditionalOperator.GREATER_THAN:
            return _compare_numbers(actual, expected, lambda a, b: a > b)

        case ConditionalOperator.LESS_THAN:
            return _compare_numbers(actual, expected, lambda a, b: a < b)

    return False


# -----------------------------------------------------------------
# Comparison helpers
# -----------------------------------------------------------------


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    return None


def _scalar_equals(actual: Any, expected: Any) -> bool:
    """Type-aware equality of two scalar values."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        actual_bool = _as_bool(actual)
        return actual_bool is not None and actual_bool == _as_bool(expected)

    if isinstance(actual, (int, float)) or isinstance(expected, (int, float)):
        actual_num, expected_num = to_number(actual), to_number(expected)
        if actual_num is not None and expected_num is not None:
            return actual_num == expected_num

    return str(actual) == str(expected)


def _matches(actual: Any, expected: Any) -> bool:
    """Equality, where a multi-select value matches if it contains the expected value."""
    if isinstance(actual, (list, tuple, set)):
        return any(_scalar_equals(item, expected) for item in actual)
    return _scalar_equals(actual, expected)


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (list, tuple, set)):
        return any(_scalar_equals(item, expected) for item in actual)
    # Free text: case-insensitive substring match
    return str(expected).lower() in str(actual).lower()


def _compare_numbers(actual: Any, expected: Any, comparator) -> bool:
    actual_num, expected_num = to_number(actual), to_number(expected)
    if actual_num is None or expected_num is None:
        return False
    return comparator(actual_num, expected_num)
