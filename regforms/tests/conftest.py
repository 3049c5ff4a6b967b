"""
Shared fixtures for the registration form test suite.

Provides small inline definitions (the RSVP chain used throughout, a
three-section form) plus the example definitions shipped in forms/.
"""

from pathlib import Path

import pytest

from regforms.core.loader import load_form_definition
from regforms.core.schema import FormDefinition
from regforms.tests.helpers import RSVP_FIELDS, RecordingSubmitter

FORMS_DIR = Path(__file__).parent.parent / "forms"


@pytest.fixture
def rsvp_definition() -> FormDefinition:
    """attending -> guestCount -> dietaryNotes, all in one section."""
    return FormDefinition.model_validate({
        "formId": "rsvp",
        "layout": "multi-section",
        "sections": [{"id": "rsvp", "title": "RSVP"}],
        "fields": [{**f, "sectionId": "rsvp"} for f in RSVP_FIELDS],
    })


@pytest.fixture
def three_section_definition() -> FormDefinition:
    """Three sections, identity fields on step one, terms and an unassigned field on the last."""
    return FormDefinition.model_validate({
        "formId": "three_step",
        "layout": "multi-section",
        "sections": [
            {"id": "s1", "title": "One", "order": 0},
            {"id": "s2", "title": "Two", "order": 1},
            {"id": "s3", "title": "Three", "order": 2},
        ],
        "identityFields": [
            {"id": "firstName", "type": "text", "label": "First Name", "required": True},
        ],
        "fields": [
            {"id": "church", "type": "text", "label": "Church", "required": True, "sectionId": "s1"},
            {"id": "age", "type": "number", "label": "Age", "required": True, "sectionId": "s2",
             "validation": {"min": 0, "max": 120}},
            {"id": "shirt", "type": "select", "label": "Shirt size", "required": True,
             "options": ["S", "M", "L"], "sectionId": "s3"},
            {"id": "comments", "type": "textarea", "label": "Comments", "required": True},
        ],
        "terms": {"enabled": True, "text": "Be kind."},
    })


@pytest.fixture
def youth_camp() -> FormDefinition:
    return load_form_definition(FORMS_DIR / "youth_camp.yaml")


@pytest.fixture
def visitor_card() -> FormDefinition:
    return load_form_definition(FORMS_DIR / "visitor_card.json")


@pytest.fixture
def submitter() -> RecordingSubmitter:
    return RecordingSubmitter()
