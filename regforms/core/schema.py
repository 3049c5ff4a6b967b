"""
Form definition models for public registration forms.

These Pydantic models describe a registration form as data: its fields,
their grouping into sections, the conditional rules that control field
visibility, and the validation bounds attached to each field. A form
definition is authored by the form builder and loaded read-only; the
engine never mutates it.

JSON keys follow the camelCase names used by the form builder
(``sectionId``, ``helpText``, ``conditionalRule``); Python attributes are
snake_case. Both spellings are accepted on input.
"""

import re
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from regforms.core.dependencies import find_dependency_issue
from regforms.core.utils import parse_date, parse_time


def _lookup_enum(enum_cls: type[Enum], value: Any) -> Any:
    """Resolve a loosely spelled enum value (``multi-checkbox``, ``not_equals``).

    Separators and case are ignored. Unknown values are returned as-is so
    that Pydantic reports them with its normal error.
    """
    if isinstance(value, enum_cls) or not isinstance(value, str):
        return value
    normalized = value.replace("-", "").replace("_", "").lower()
    for member in enum_cls:
        if member.value.replace("-", "").lower() == normalized:
            return member
    return value


# --- Enums ---


class FieldType(str, Enum):
    """Supported registration field types."""

    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"
    DATE = "date"
    TIME = "time"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    MULTI_CHECKBOX = "multiCheckbox"
    RATING = "rating"


OPTION_FIELD_TYPES = frozenset({FieldType.SELECT, FieldType.RADIO, FieldType.MULTI_CHECKBOX})


class ConditionalOperator(str, Enum):
    """Operators a conditional rule can apply to its controlling field."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"


class LogicAction(str, Enum):
    """Whether a matching condition shows or hides the field."""

    SHOW = "show"
    HIDE = "hide"


class LogicType(str, Enum):
    """How multiple rules are combined."""

    ALL = "all"
    ANY = "any"


class FormLayout(str, Enum):
    """How sections are presented."""

    SINGLE_PAGE = "single-page"
    MULTI_SECTION = "multi-section"


class _DefinitionModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# --- Conditional visibility ---


class ConditionalRule(_DefinitionModel):
    """A dependency of one field's visibility on another field's value."""

    depends_on_field_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("dependsOnFieldId", "fieldId", "depends_on_field_id"),
        serialization_alias="dependsOnFieldId",
        description="ID of the controlling field",
    )
    operator: ConditionalOperator = Field(
        ...,
        description="Comparison applied to the controlling field's value",
    )
    comparison_value: str | int | float | bool | None = Field(
        default=None,
        validation_alias=AliasChoices("comparisonValue", "value", "comparison_value"),
        serialization_alias="comparisonValue",
        description="Static value compared against (unused by isEmpty/isNotEmpty)",
    )

    @field_validator("operator", mode="before")
    @classmethod
    def _normalize_operator(cls, value: Any) -> Any:
        return _lookup_enum(ConditionalOperator, value)


class ConditionalLogic(_DefinitionModel):
    """One or more conditional rules combined with all/any logic.

    With ``action=show`` the field is visible while the combined condition
    holds; with ``action=hide`` it is hidden while the condition holds.
    """

    enabled: bool = True
    action: LogicAction = LogicAction.SHOW
    logic_type: LogicType = Field(
        default=LogicType.ALL,
        validation_alias=AliasChoices("logicType", "logic_type"),
        serialization_alias="logicType",
    )
    rules: list[ConditionalRule] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.enabled and len(self.rules) > 0


# --- Validation bounds ---


class FieldValidation(_DefinitionModel):
    """Declared validation bounds. Their meaning depends on the field type."""

    min_length: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("minLength", "min_length"),
        serialization_alias="minLength",
    )
    max_length: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("maxLength", "max_length"),
        serialization_alias="maxLength",
    )
    min: float | None = Field(default=None, description="Numeric minimum or minimum selections")
    max: float | None = Field(default=None, description="Numeric maximum or maximum selections")
    pattern: str | None = None
    pattern_message: str | None = Field(
        default=None,
        validation_alias=AliasChoices("patternMessage", "pattern_message"),
        serialization_alias="patternMessage",
    )
    earliest: str | None = Field(default=None, description="Lower bound for date/time fields")
    latest: str | None = Field(default=None, description="Upper bound for date/time fields")

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"Invalid validation pattern '{value}': {e}")
        return value


# --- Field definition ---


class FieldDefinition(_DefinitionModel):
    """Static description of one registration field."""

    id: str = Field(..., min_length=1, description="Unique field identifier")
    type: FieldType
    label: str = ""
    placeholder: str | None = None
    help_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("helpText", "help_text"),
        serialization_alias="helpText",
    )
    description: str | None = None
    required: bool = False
    options: list[str] | None = None
    validation: FieldValidation | None = None
    conditional_rule: ConditionalRule | None = Field(
        default=None,
        validation_alias=AliasChoices("conditionalRule", "conditional_rule"),
        serialization_alias="conditionalRule",
    )
    conditional_logic: ConditionalLogic | None = Field(
        default=None,
        validation_alias=AliasChoices("conditionalLogic", "conditional_logic"),
        serialization_alias="conditionalLogic",
    )
    section_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("sectionId", "section_id"),
        serialization_alias="sectionId",
    )
    order: int = 0

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        return _lookup_enum(FieldType, value)

    @field_validator("section_id", mode="before")
    @classmethod
    def _blank_section_is_unassigned(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def validate_field_shape(self) -> "FieldDefinition":
        """Option fields need options; a field has at most one rule block.

        Date and time bounds must parse for the field's type.
        """
        if self.type in OPTION_FIELD_TYPES:
            if not self.options:
                raise ValueError(
                    f"Field '{self.id}' of type '{self.type.value}' must have non-empty 'options'"
                )
        elif self.options:
            raise ValueError(
                f"Field '{self.id}' of type '{self.type.value}' should not have 'options'"
            )

        if self.conditional_rule is not None and self.conditional_logic is not None:
            raise ValueError(
                f"Field '{self.id}' declares both 'conditionalRule' and 'conditionalLogic'"
            )

        if self.validation is not None and self.type in (FieldType.DATE, FieldType.TIME):
            parse = parse_time if self.type == FieldType.TIME else parse_date
            for name in ("earliest", "latest"):
                bound = getattr(self.validation, name)
                if bound and parse(bound) is None:
                    raise ValueError(
                        f"Field '{self.id}' has an invalid '{name}' bound '{bound}' "
                        f"for type '{self.type.value}'"
                    )
        return self

    @property
    def visibility_logic(self) -> ConditionalLogic | None:
        """The field's visibility logic, or None when it is always visible."""
        if self.conditional_rule is not None:
            return ConditionalLogic(rules=[self.conditional_rule])
        if self.conditional_logic is not None and self.conditional_logic.is_active:
            return self.conditional_logic
        return None

    @property
    def depends_on(self) -> list[str]:
        """IDs of the fields this field's visibility depends on."""
        logic = self.visibility_logic
        if logic is None:
            return []
        return [rule.depends_on_field_id for rule in logic.rules]


# --- Sections and form-level settings ---


class FormSection(_DefinitionModel):
    """An ordered group of fields, one step of a multi-section form."""

    id: str = Field(..., min_length=1)
    title: str = ""
    description: str | None = None
    order: int = 0
    collapsible: bool = False
    default_expanded: bool = Field(
        default=True,
        validation_alias=AliasChoices("defaultExpanded", "default_expanded"),
        serialization_alias="defaultExpanded",
    )


class TermsAndConditions(_DefinitionModel):
    """Terms the registrant must accept before submitting."""

    enabled: bool = False
    text: str | None = None
    link_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("linkUrl", "link_url"),
        serialization_alias="linkUrl",
    )


TERMS_FIELD_ID = "termsAccepted"


def registration_identity_fields() -> list[FieldDefinition]:
    """The standard personal-information fields of a public registration."""
    return [
        FieldDefinition(id="firstName", type=FieldType.TEXT, label="First Name",
                        placeholder="John", required=True, order=0),
        FieldDefinition(id="lastName", type=FieldType.TEXT, label="Last Name",
                        placeholder="Doe", required=True, order=1),
        FieldDefinition(id="email", type=FieldType.EMAIL, label="Email Address",
                        placeholder="john.doe@example.com", order=2),
        FieldDefinition(id="phone", type=FieldType.PHONE, label="Phone Number",
                        placeholder="+234...", order=3),
        FieldDefinition(id="gender", type=FieldType.SELECT, label="Gender",
                        options=["Male", "Female"], placeholder="Select gender", order=4),
    ]


# --- Top-level form definition ---


class FormDefinition(_DefinitionModel):
    """A complete registration form: sections, fields and form settings.

    Validates field/section uniqueness, section references and the
    dependency graph, so a constructed instance is always safe to evaluate.
    """

    form_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("formId", "form_id"),
        serialization_alias="formId",
    )
    title: str = ""
    layout: FormLayout = FormLayout.SINGLE_PAGE
    sections: list[FormSection] = Field(default_factory=list)
    identity_fields: list[FieldDefinition] = Field(
        default_factory=list,
        validation_alias=AliasChoices("identityFields", "identity_fields"),
        serialization_alias="identityFields",
        description="Base identity fields, always part of the first step",
    )
    fields: list[FieldDefinition] = Field(default_factory=list)
    terms: TermsAndConditions | None = None

    @field_validator("layout", mode="before")
    @classmethod
    def _normalize_layout(cls, value: Any) -> Any:
        return _lookup_enum(FormLayout, value)

    @model_validator(mode="after")
    def validate_cross_references(self) -> "FormDefinition":
        """Validate ID uniqueness, section references and field dependencies."""
        section_ids = set()
        for section in self.sections:
            if section.id in section_ids:
                raise ValueError(f"Duplicate section ID: '{section.id}'")
            section_ids.add(section.id)

        field_ids = set()
        for f in self.all_fields:
            if f.id in field_ids:
                raise ValueError(f"Duplicate field ID: '{f.id}'")
            field_ids.add(f.id)

        if self.terms_enabled and TERMS_FIELD_ID in field_ids:
            raise ValueError(f"Field ID '{TERMS_FIELD_ID}' is reserved for terms acceptance")

        for f in self.identity_fields:
            if f.section_id is not None:
                raise ValueError(f"Identity field '{f.id}' cannot be assigned to a section")

        for f in self.fields:
            if f.section_id is not None and f.section_id not in section_ids:
                raise ValueError(
                    f"Field '{f.id}' references non-existent section '{f.section_id}'"
                )

        issue = find_dependency_issue(self.all_fields)
        if issue is not None:
            raise PydanticCustomError(
                "dependency_error",
                "{message}",
                {"message": issue.message, "kind": issue.kind.value, "field_id": issue.field_id},
            )

        return self

    # -----------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------

    @property
    def all_fields(self) -> list[FieldDefinition]:
        """Identity fields followed by custom fields."""
        return [*self.identity_fields, *self.fields]

    @property
    def terms_enabled(self) -> bool:
        return self.terms is not None and self.terms.enabled

    @property
    def terms_field(self) -> FieldDefinition | None:
        """Synthetic required checkbox for terms acceptance, if enabled."""
        if not self.terms_enabled:
            return None
        return FieldDefinition(
            id=TERMS_FIELD_ID,
            type=FieldType.CHECKBOX,
            label="I accept the terms and conditions",
            description=self.terms.text,
            required=True,
        )

    @property
    def is_multi_section(self) -> bool:
        return self.layout == FormLayout.MULTI_SECTION and len(self.sections) > 0

    def get_field(self, field_id: str) -> FieldDefinition | None:
        """Look up a field (including the terms field) by its ID."""
        for f in self.all_fields:
            if f.id == field_id:
                return f
        terms_field = self.terms_field
        if terms_field is not None and terms_field.id == field_id:
            return terms_field
        return None

    def ordered_sections(self) -> list[FormSection]:
        return sorted(self.sections, key=lambda s: s.order)

    def fields_for_section(self, section_id: str) -> list[FieldDefinition]:
        """Custom fields assigned to a section, in presentation order."""
        return sorted(
            (f for f in self.fields if f.section_id == section_id),
            key=lambda f: f.order,
        )

    def unassigned_fields(self) -> list[FieldDefinition]:
        """Custom fields without a section, in presentation order."""
        return sorted(
            (f for f in self.fields if f.section_id is None),
            key=lambda f: f.order,
        )

    def presentation_order(self) -> list[FieldDefinition]:
        """Every field in the order a single-page form shows them."""
        ordered = sorted(self.identity_fields, key=lambda f: f.order)
        for section in self.ordered_sections():
            ordered.extend(self.fields_for_section(section.id))
        ordered.extend(self.unassigned_fields())
        if self.terms_field is not None:
            ordered.append(self.terms_field)
        return ordered
