"""
Validation rule compiler.

Turns a field's declared ``required`` flag and ``validation`` block into
concrete, serialisable rules for its type, and checks values against
them. Rules are only in force while the field is visible: a hidden field
gets an empty rule set, whatever it declares.

Per-type behaviour lives in the FIELD_TYPES dispatch table, which maps
each FieldType to a handler that builds its rules and serialises its
values for submission.

Failures are returned as FieldError values and always collected in
full; nothing here raises on invalid user input.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel

from regforms.core.schema import FieldDefinition, FieldType, FormDefinition, TERMS_FIELD_ID
from regforms.core.utils import is_empty_value, parse_date, parse_time, to_number

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
EMAIL_MESSAGE = "Please enter a valid email address"
TERMS_MESSAGE = "You must accept the terms and conditions"

RATING_MIN = 1
RATING_MAX = 5


class RuleKind(str, Enum):
    """Kinds of validation rule."""

    REQUIRED = "required"
    TYPE = "type"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    PATTERN = "pattern"
    MIN = "min"
    MAX = "max"
    OPTION = "option"
    MIN_SELECTED = "minSelected"
    MAX_SELECTED = "maxSelected"
    EARLIEST = "earliest"
    LATEST = "latest"
    MUST_BE_TRUE = "mustBeTrue"


_PRESENCE_KINDS = frozenset({RuleKind.REQUIRED, RuleKind.MUST_BE_TRUE})


class Rule(BaseModel):
    """One validation predicate, with the message shown when it fails."""

    kind: RuleKind
    field_type: FieldType
    value: Any = None
    message: str

    def check(self, value: Any) -> bool:
        """Return True if the value satisfies this rule.

        Apart from presence rules, rules pass on empty values. Value rules
        also pass on values they cannot interpret, leaving the report to
        the TYPE rule.
        """
        if self.kind == RuleKind.REQUIRED:
            return not is_empty_value(value)
        if self.kind == RuleKind.MUST_BE_TRUE:
            return value is True
        if is_empty_value(value):
            return True

        match self.kind:
            case RuleKind.TYPE:
                return _SHAPE_CHECKS[self.field_type](value)

            case RuleKind.MIN_LENGTH:
                return not isinstance(value, str) or len(value) >= self.value

            case RuleKind.MAX_LENGTH:
                return not isinstance(value, str) or len(value) <= self.value

            case RuleKind.PATTERN:
                return not isinstance(value, str) or re.search(self.value, value) is not None

            case RuleKind.MIN:
                number = to_number(value)
                return number is None or number >= self.value

            case RuleKind.MAX:
                number = to_number(value)
                return number is None or number <= self.value

            case RuleKind.OPTION:
                if isinstance(value, list):
                    return all(str(item) in self.value for item in value)
                return str(value) in self.value

            case RuleKind.MIN_SELECTED:
                return not isinstance(value, list) or len(value) >= self.value

            case RuleKind.MAX_SELECTED:
                return not isinstance(value, list) or len(value) <= self.value

            case RuleKind.EARLIEST:
                return _compare_temporal(self.field_type, value, self.value, lambda a, b: a >= b)

            case RuleKind.LATEST:
                return _compare_temporal(self.field_type, value, self.value, lambda a, b: a <= b)

        return True


RuleSet = tuple[Rule, ...]


class FieldError(BaseModel):
    """A failed rule on one field."""

    field_id: str
    kind: RuleKind
    message: str


# -----------------------------------------------------------------
# Value shape checks per type
# -----------------------------------------------------------------


def _is_text(value: Any) -> bool:
    return isinstance(value, str)


def _is_number(value: Any) -> bool:
    return to_number(value) is not None


def _is_rating(value: Any) -> bool:
    number = to_number(value)
    return number is not None and number.is_integer()


def _is_date(value: Any) -> bool:
    return isinstance(value, str) and parse_date(value) is not None


def _is_time(value: Any) -> bool:
    return isinstance(value, str) and parse_time(value) is not None


def _is_choice(value: Any) -> bool:
    return isinstance(value, str)


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _is_selection(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


_SHAPE_CHECKS: dict[FieldType, Callable[[Any], bool]] = {
    FieldType.TEXT: _is_text,
    FieldType.TEXTAREA: _is_text,
    FieldType.EMAIL: _is_text,
    FieldType.PHONE: _is_text,
    FieldType.NUMBER: _is_number,
    FieldType.RATING: _is_rating,
    FieldType.DATE: _is_date,
    FieldType.TIME: _is_time,
    FieldType.SELECT: _is_choice,
    FieldType.RADIO: _is_choice,
    FieldType.CHECKBOX: _is_bool,
    FieldType.MULTI_CHECKBOX: _is_selection,
}

_TYPE_MESSAGES: dict[FieldType, str] = {
    FieldType.NUMBER: "{label} must be a number",
    FieldType.RATING: "{label} must be a whole-number rating",
    FieldType.DATE: "{label} must be a valid date",
    FieldType.TIME: "{label} must be a valid time",
    FieldType.CHECKBOX: "{label} must be checked or unchecked",
    FieldType.MULTI_CHECKBOX: "{label} must be a list of selections",
}


def _compare_temporal(field_type: FieldType, value: Any, bound: str, comparator) -> bool:
    parse = parse_time if field_type == FieldType.TIME else parse_date
    parsed_value = parse(value) if isinstance(value, str) else None
    parsed_bound = parse(bound)
    if parsed_value is None or parsed_bound is None:
        return True
    return comparator(parsed_value, parsed_bound)


# -----------------------------------------------------------------
# Rule builders per type family
# -----------------------------------------------------------------


def _label(field: FieldDefinition) -> str:
    return field.label or field.id


def _fmt(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


def _rule(field: FieldDefinition, kind: RuleKind, message: str, value: Any = None) -> Rule:
    return Rule(kind=kind, field_type=field.type, value=value, message=message)


def _base_rules(field: FieldDefinition) -> list[Rule]:
    label = _label(field)
    rules = []
    if field.required:
        rules.append(_rule(field, RuleKind.REQUIRED, f"{label} is required"))
    type_message = _TYPE_MESSAGES.get(field.type, "{label} is invalid")
    rules.append(_rule(field, RuleKind.TYPE, type_message.format(label=label)))
    return rules


def _text_rules(field: FieldDefinition) -> list[Rule]:
    label = _label(field)
    rules = _base_rules(field)
    validation = field.validation

    if validation is not None and validation.min_length is not None:
        rules.append(_rule(
            field, RuleKind.MIN_LENGTH,
            f"{label} must be at least {validation.min_length} characters",
            validation.min_length,
        ))
    if validation is not None and validation.max_length is not None:
        rules.append(_rule(
            field, RuleKind.MAX_LENGTH,
            f"{label} must be no more than {validation.max_length} characters",
            validation.max_length,
        ))

    # Email always uses the fixed address shape; phone is free-form unless a pattern is given
    if field.type == FieldType.EMAIL:
        rules.append(_rule(field, RuleKind.PATTERN, EMAIL_MESSAGE, EMAIL_PATTERN))
    elif validation is not None and validation.pattern:
        rules.append(_rule(
            field, RuleKind.PATTERN,
            validation.pattern_message or f"{label} is invalid",
            validation.pattern,
        ))
    return rules


def _number_rules(field: FieldDefinition) -> list[Rule]:
    label = _label(field)
    rules = _base_rules(field)
    validation = field.validation
    low = validation.min if validation is not None else None
    high = validation.max if validation is not None else None

    if field.type == FieldType.RATING:
        low = RATING_MIN if low is None else low
        high = RATING_MAX if high is None else high

    if low is not None:
        rules.append(_rule(field, RuleKind.MIN, f"{label} must be at least {_fmt(low)}", low))
    if high is not None:
        rules.append(_rule(field, RuleKind.MAX, f"{label} must be no more than {_fmt(high)}", high))
    return rules


def _temporal_rules(field: FieldDefinition) -> list[Rule]:
    label = _label(field)
    rules = _base_rules(field)
    validation = field.validation

    if validation is not None and validation.earliest:
        rules.append(_rule(
            field, RuleKind.EARLIEST,
            f"{label} must not be earlier than {validation.earliest}",
            validation.earliest,
        ))
    if validation is not None and validation.latest:
        rules.append(_rule(
            field, RuleKind.LATEST,
            f"{label} must not be later than {validation.latest}",
            validation.latest,
        ))
    return rules


def _choice_rules(field: FieldDefinition) -> list[Rule]:
    rules = _base_rules(field)
    rules.append(_rule(
        field, RuleKind.OPTION,
        f"{_label(field)} must be one of: {', '.join(field.options or [])}",
        list(field.options or []),
    ))
    return rules


def _checkbox_rules(field: FieldDefinition) -> list[Rule]:
    label = _label(field)
    rules = [_rule(field, RuleKind.TYPE, _TYPE_MESSAGES[FieldType.CHECKBOX].format(label=label))]
    if field.required:
        message = TERMS_MESSAGE if field.id == TERMS_FIELD_ID else f"{label} must be checked"
        rules.insert(0, _rule(field, RuleKind.MUST_BE_TRUE, message))
    return rules


def _multi_checkbox_rules(field: FieldDefinition) -> list[Rule]:
    label = _label(field)
    rules = _choice_rules(field)
    validation = field.validation

    if validation is not None and validation.min is not None:
        rules.append(_rule(
            field, RuleKind.MIN_SELECTED,
            f"Select at least {_fmt(validation.min)} options for {label}",
            validation.min,
        ))
    if validation is not None and validation.max is not None:
        rules.append(_rule(
            field, RuleKind.MAX_SELECTED,
            f"Select no more than {_fmt(validation.max)} options for {label}",
            validation.max,
        ))
    return rules


# -----------------------------------------------------------------
# Value serialisers per type
# -----------------------------------------------------------------


def _serialize_text(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _serialize_email(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _serialize_number(value: Any) -> Any:
    number = to_number(value)
    if number is None:
        return value
    return int(number) if number.is_integer() else number


def _serialize_rating(value: Any) -> Any:
    number = to_number(value)
    return int(number) if number is not None else value


def _serialize_date(value: Any) -> Any:
    parsed = parse_date(value) if isinstance(value, str) else None
    return parsed.isoformat() if parsed is not None else value


def _serialize_time(value: Any) -> Any:
    parsed = parse_time(value) if isinstance(value, str) else None
    return parsed.strftime("%H:%M") if parsed is not None else value


def _serialize_checkbox(value: Any) -> Any:
    return bool(value)


def _serialize_selection(value: Any) -> Any:
    return list(value) if isinstance(value, (list, tuple)) else value


# -----------------------------------------------------------------
# Dispatch table
# -----------------------------------------------------------------


class FieldTypeHandler:
    """Rule builder and value serialiser for one field type."""

    def __init__(
        self,
        build_rules: Callable[[FieldDefinition], list[Rule]],
        serialize_value: Callable[[Any], Any],
    ):
        self.build_rules = build_rules
        self.serialize_value = serialize_value


FIELD_TYPES: dict[FieldType, FieldTypeHandler] = {
    FieldType.TEXT: FieldTypeHandler(_text_rules, _serialize_text),
    FieldType.TEXTAREA: FieldTypeHandler(_text_rules, _serialize_text),
    FieldType.EMAIL: FieldTypeHandler(_text_rules, _serialize_email),
    FieldType.PHONE: FieldTypeHandler(_text_rules, _serialize_text),
    FieldType.NUMBER: FieldTypeHandler(_number_rules, _serialize_number),
    FieldType.RATING: FieldTypeHandler(_number_rules, _serialize_rating),
    FieldType.DATE: FieldTypeHandler(_temporal_rules, _serialize_date),
    FieldType.TIME: FieldTypeHandler(_temporal_rules, _serialize_time),
    FieldType.SELECT: FieldTypeHandler(_choice_rules, _serialize_text),
    FieldType.RADIO: FieldTypeHandler(_choice_rules, _serialize_text),
    FieldType.CHECKBOX: FieldTypeHandler(_checkbox_rules, _serialize_checkbox),
    FieldType.MULTI_CHECKBOX: FieldTypeHandler(_multi_checkbox_rules, _serialize_selection),
}


# -----------------------------------------------------------------
# Public API
# -----------------------------------------------------------------


def declared_rules(field: FieldDefinition) -> RuleSet:
    """All rules a field declares, ignoring visibility."""
    return tuple(FIELD_TYPES[field.type].build_rules(field))


def effective_rules(field_id: str, visible: Iterable[str], definition: FormDefinition) -> RuleSet:
    """The rules enforced on a field right now.

    Args:
        field_id: The field to compile rules for.
        visible: IDs of the currently visible fields.
        definition: The form definition.

    Returns:
        The field's rules, or an empty tuple if the field is hidden.

    Raises:
        ValueError: If the field does not exist in the definition.
    """
    field = definition.get_field(field_id)
    if field is None:
        raise ValueError(f"Field '{field_id}' does not exist in the form definition")
    if field_id not in visible:
        return ()
    return declared_rules(field)


def check_field(field_id: str, value: Any, rules: RuleSet) -> list[FieldError]:
    """Check a value against every rule and return all failures."""
    return [
        FieldError(field_id=field_id, kind=rule.kind, message=rule.message)
        for rule in rules
        if not rule.check(value)
    ]


def collect_errors(
    field_ids: Iterable[str],
    values: Mapping[str, Any],
    visible: Iterable[str],
    definition: FormDefinition,
) -> list[FieldError]:
    """Validate several fields and return every failure, in field order.

    Hidden fields contribute nothing.
    """
    visible_ids = frozenset(visible)
    errors: list[FieldError] = []
    for field_id in field_ids:
        rules = effective_rules(field_id, visible_ids, definition)
        errors.extend(check_field(field_id, values.get(field_id), rules))
    return errors


def serialize_value(field: FieldDefinition, value: Any) -> Any:
    """Convert a stored value into its submission form."""
    return FIELD_TYPES[field.type].serialize_value(value)
