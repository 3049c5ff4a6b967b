"""
Rendering views: what the UI layer needs to draw a session.

The engine does not render widgets. It tells the rendering layer, per
field, whether the field is visible, which rules are in force, and what
value it currently holds, grouped into the sections of the active step.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from regforms.core.form_state import FormSession
from regforms.core.rules import FieldError, Rule, RuleKind
from regforms.core.schema import FieldDefinition, FieldType, FormLayout


class _View(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FieldView(_View):
    """One field as the rendering layer sees it."""

    id: str
    type: FieldType
    label: str
    placeholder: str | None = None
    help_text: str | None = Field(default=None, serialization_alias="helpText")
    description: str | None = None
    options: list[str] | None = None
    visible: bool
    required: bool = Field(description="Whether a value is required right now")
    value: Any = None
    rules: list[Rule] = Field(default_factory=list)


class SectionView(_View):
    """A group of fields. Identity and trailing groups have no section ID."""

    id: str | None = None
    title: str
    description: str | None = None
    collapsible: bool = False
    default_expanded: bool = Field(default=True, serialization_alias="defaultExpanded")
    fields: list[FieldView]


class SessionView(_View):
    """Everything needed to draw a session's current state."""

    session_id: str | None = Field(default=None, serialization_alias="sessionId")
    form_id: str = Field(serialization_alias="formId")
    title: str
    layout: FormLayout
    section_index: int | None = Field(default=None, serialization_alias="sectionIndex")
    section_count: int = Field(serialization_alias="sectionCount")
    completed_sections: list[int] = Field(default_factory=list, serialization_alias="completedSections")
    can_retreat: bool = Field(default=False, serialization_alias="canRetreat")
    can_submit: bool = Field(default=False, serialization_alias="canSubmit")
    groups: list[SectionView]
    errors: list[FieldError] = Field(default_factory=list)
    submitted: bool = False


def build_field_view(field: FieldDefinition, session: FormSession) -> FieldView:
    """Describe one field for rendering, using the session's current state."""
    rules = list(session.rules_for(field.id))
    return FieldView(
        id=field.id,
        type=field.type,
        label=field.label or field.id,
        placeholder=field.placeholder,
        help_text=field.help_text,
        description=field.description,
        options=field.options,
        visible=session.is_visible(field.id),
        required=any(r.kind in {RuleKind.REQUIRED, RuleKind.MUST_BE_TRUE} for r in rules),
        value=session.get_value(field.id),
        rules=rules,
    )


def _group(
    title: str,
    fields: list[FieldDefinition],
    session: FormSession,
    section_id: str | None = None,
    **section_attrs: Any,
) -> SectionView:
    return SectionView(
        id=section_id,
        title=title,
        fields=[build_field_view(f, session) for f in fields],
        **section_attrs,
    )


def _section_group(section, session: FormSession) -> SectionView:
    return _group(
        section.title,
        session.definition.fields_for_section(section.id),
        session,
        section_id=section.id,
        description=section.description,
        collapsible=section.collapsible,
        default_expanded=section.default_expanded,
    )


def build_session_view(
    session: FormSession,
    session_id: str | None = None,
    errors: list[FieldError] | None = None,
) -> SessionView:
    """Build the view of a session's current step (or whole single-page form).

    Args:
        session: The session to describe.
        session_id: Optional ID to include in the view.
        errors: Validation failures to report alongside the view.
    """
    definition = session.definition
    groups: list[SectionView] = []
    progression = session.progression

    identity = sorted(definition.identity_fields, key=lambda f: f.order)
    trailing = list(definition.unassigned_fields())
    if definition.terms_field is not None:
        trailing.append(definition.terms_field)

    if progression is not None:
        if progression.is_first and identity:
            groups.append(_group("Personal Information", identity, session))
        groups.append(_section_group(progression.active_section, session))
        if progression.is_last and trailing:
            groups.append(_group("Additional Information", trailing, session))
    else:
        if identity:
            groups.append(_group("Personal Information", identity, session))
        for section in definition.ordered_sections():
            if definition.fields_for_section(section.id):
                groups.append(_section_group(section, session))
        if trailing:
            groups.append(_group("Additional Information", trailing, session))

    return SessionView(
        session_id=session_id,
        form_id=definition.form_id,
        title=definition.title,
        layout=FormLayout.MULTI_SECTION if progression is not None else FormLayout.SINGLE_PAGE,
        section_index=progression.section_index if progression is not None else None,
        section_count=progression.section_count if progression is not None else 1,
        completed_sections=sorted(progression.completed_sections) if progression is not None else [],
        can_retreat=progression is not None and not progression.is_first,
        can_submit=progression is None or progression.is_last,
        groups=groups,
        errors=errors or [],
        submitted=session.submitted,
    )
