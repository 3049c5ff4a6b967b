"""
Builders and fakes shared by the test modules.
"""

from typing import Any

from regforms.core.schema import FormDefinition
from regforms.core.submission import SubmissionResult


def build_definition(**overrides) -> FormDefinition:
    """Build a minimal single-page definition, with optional overrides."""
    base: dict[str, Any] = {
        "formId": "test_form",
        "fields": [
            {"id": "name", "type": "text", "label": "Name", "required": True},
        ],
    }
    base.update(overrides)
    return FormDefinition.model_validate(base)


RSVP_FIELDS = [
    {"id": "attending", "type": "checkbox", "label": "Attending"},
    {
        "id": "guestCount",
        "type": "number",
        "label": "Guest count",
        "required": True,
        "conditionalRule": {
            "dependsOnFieldId": "attending",
            "operator": "equals",
            "comparisonValue": True,
        },
    },
    {
        "id": "dietaryNotes",
        "type": "text",
        "label": "Dietary notes",
        "conditionalRule": {"dependsOnFieldId": "guestCount", "operator": "isNotEmpty"},
    },
]


class RecordingSubmitter:
    """Submission collaborator that records payloads and replays results."""

    def __init__(self, results: list[SubmissionResult] | None = None):
        self.results = list(results or [])
        self.calls: list[tuple[str, dict]] = []

    async def submit(self, form_id: str, payload: dict) -> SubmissionResult:
        self.calls.append((form_id, payload))
        if self.results:
            return self.results.pop(0)
        return SubmissionResult.ok({"checkInCode": "ABC123"})
