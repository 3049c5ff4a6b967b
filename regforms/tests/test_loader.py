"""
Unit tests for loading form definitions from JSON and YAML.

Tests cover:
- The example definitions in forms/ load cleanly
- Parse errors and invalid definitions raise FormConfigurationError
- Dependency problems keep their kind and field ID
- FormCatalog skips invalid files and records why
"""

import json
from pathlib import Path

import pytest

from regforms.core.dependencies import DependencyErrorKind, FormConfigurationError
from regforms.core.loader import FormCatalog, load_form_definition, parse_form_definition
from regforms.core.schema import FieldType, FormLayout

FORMS_DIR = Path(__file__).parent.parent / "forms"


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# =============================================================
# Test: Example definitions
# =============================================================


class TestExampleForms:
    """The shipped definitions are valid."""

    def test_youth_camp(self, youth_camp):
        assert youth_camp.form_id == "youth_camp"
        assert youth_camp.layout == FormLayout.MULTI_SECTION
        assert [s.id for s in youth_camp.ordered_sections()] == ["attendance", "logistics"]
        assert youth_camp.get_field("activities").type == FieldType.MULTI_CHECKBOX
        assert youth_camp.terms_enabled

    def test_visitor_card(self, visitor_card):
        assert visitor_card.form_id == "visitor_card"
        assert not visitor_card.is_multi_section
        assert visitor_card.get_field("howHeardOther").depends_on == ["howHeard", "howHeard"]


# =============================================================
# Test: Parsing
# =============================================================


class TestParseFormDefinition:
    """Tests for parse_form_definition."""

    def test_valid(self):
        definition = parse_form_definition({"formId": "x", "fields": [{"id": "a", "type": "text"}]})
        assert definition.form_id == "x"

    def test_not_a_mapping(self):
        with pytest.raises(FormConfigurationError, match="mapping"):
            parse_form_definition(["not", "a", "form"])

    def test_structural_error_has_no_kind(self):
        with pytest.raises(FormConfigurationError) as exc_info:
            parse_form_definition({"formId": "x", "fields": [{"id": "a", "type": "select"}]})
        assert exc_info.value.kind is None
        assert "options" in exc_info.value.message
        assert "Value error" not in exc_info.value.message

    def test_missing_form_id(self):
        with pytest.raises(FormConfigurationError, match="formId"):
            parse_form_definition({"fields": []})

    def test_fields_not_a_list(self):
        with pytest.raises(FormConfigurationError):
            parse_form_definition({"formId": "x", "fields": "oops"})

    @pytest.mark.parametrize("fields, kind, field_id", [
        (
            [{"id": "a", "type": "text", "conditionalRule": {"dependsOnFieldId": "a", "operator": "isEmpty"}}],
            DependencyErrorKind.SELF_DEPENDENCY,
            "a",
        ),
        (
            [{"id": "a", "type": "text", "conditionalRule": {"dependsOnFieldId": "ghost", "operator": "isEmpty"}}],
            DependencyErrorKind.UNKNOWN_DEPENDENCY_TARGET,
            "a",
        ),
        (
            [
                {"id": "a", "type": "text", "conditionalRule": {"dependsOnFieldId": "b", "operator": "isEmpty"}},
                {"id": "b", "type": "text", "conditionalRule": {"dependsOnFieldId": "a", "operator": "isEmpty"}},
            ],
            DependencyErrorKind.CYCLIC_DEPENDENCY,
            "a",
        ),
    ])
    def test_dependency_errors_keep_kind(self, fields, kind, field_id):
        with pytest.raises(FormConfigurationError) as exc_info:
            parse_form_definition({"formId": "x", "fields": fields})
        assert exc_info.value.kind == kind
        assert exc_info.value.field_id == field_id
        assert "Value error" not in exc_info.value.message

    def test_cross_reference_error_has_no_kind(self):
        fields = [
            {"id": "a", "type": "text"},
            {"id": "a", "type": "text", "conditionalRule": {"dependsOnFieldId": "a", "operator": "isEmpty"}},
        ]
        with pytest.raises(FormConfigurationError, match="Duplicate field ID") as exc_info:
            parse_form_definition({"formId": "x", "fields": fields})
        assert exc_info.value.kind is None
        assert exc_info.value.field_id is None


# =============================================================
# Test: Files
# =============================================================


class TestLoadFormDefinition:
    """Tests for load_form_definition."""

    def test_yaml_and_yml(self, tmp_path):
        content = "formId: hand_written\nfields:\n  - id: a\n    type: text\n"
        (tmp_path / "a.yaml").write_text(content, encoding="utf-8")
        (tmp_path / "b.yml").write_text(content, encoding="utf-8")
        assert load_form_definition(tmp_path / "a.yaml").form_id == "hand_written"
        assert load_form_definition(tmp_path / "b.yml").form_id == "hand_written"

    def test_json(self, tmp_path):
        path = write_json(tmp_path / "f.json", {"formId": "j", "fields": []})
        assert load_form_definition(str(path)).form_id == "j"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FormConfigurationError, match="Cannot read"):
            load_form_definition(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(FormConfigurationError, match="Cannot parse"):
            load_form_definition(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("formId: [unclosed\n", encoding="utf-8")
        with pytest.raises(FormConfigurationError, match="Cannot parse"):
            load_form_definition(path)


# =============================================================
# Test: Catalog
# =============================================================


class TestFormCatalog:
    """Tests for FormCatalog."""

    def test_shipped_forms(self):
        catalog = FormCatalog(FORMS_DIR)
        assert len(catalog) == 2
        assert [d.form_id for d in catalog.forms()] == ["visitor_card", "youth_camp"]
        assert catalog.errors == {}

    def test_invalid_files_skipped(self, tmp_path):
        write_json(tmp_path / "good.json", {"formId": "good", "fields": []})
        write_json(tmp_path / "cyclic.json", {
            "formId": "cyclic",
            "fields": [{"id": "a", "type": "text", "conditionalRule": {"dependsOnFieldId": "a", "operator": "isEmpty"}}],
        })
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

        catalog = FormCatalog(tmp_path)
        assert len(catalog) == 1
        assert catalog.get("good") is not None
        assert catalog.get("cyclic") is None
        assert "cyclic.json" in catalog.errors
        assert "notes.txt" not in catalog.errors

    def test_missing_directory(self, tmp_path):
        catalog = FormCatalog(tmp_path / "nowhere")
        assert len(catalog) == 0

    def test_add_replaces_same_id(self):
        catalog = FormCatalog()
        catalog.add(parse_form_definition({"formId": "x", "title": "First"}))
        catalog.add(parse_form_definition({"formId": "x", "title": "Second"}))
        assert len(catalog) == 1
        assert catalog.get("x").title == "Second"
