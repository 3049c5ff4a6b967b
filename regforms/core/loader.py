"""
Loading form definitions from data.

Form definitions come from the form builder as JSON, or as YAML when
written by hand. Loading validates the whole definition, including the
dependency graph; a definition that fails is a configuration error and
is never handed to the engine.

Format (YAML):
    formId: youth_camp
    title: Youth Camp Registration
    layout: multi-section
    sections:
      - id: details
        title: Your details
    fields:
      - id: attending
        type: checkbox
        label: Will you attend?
        sectionId: details
      - id: guestCount
        type: number
        required: true
        sectionId: details
        conditionalRule:
          dependsOnFieldId: attending
          operator: equals
          comparisonValue: true
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from regforms.core.dependencies import DependencyErrorKind, FormConfigurationError
from regforms.core.schema import FormDefinition

logger = logging.getLogger(__name__)

DEFINITION_SUFFIXES = (".json", ".yaml", ".yml")


def parse_form_definition(data: Any) -> FormDefinition:
    """Validate raw definition data into a FormDefinition.

    Args:
        data: A dict as decoded from JSON or YAML.

    Returns:
        The validated definition.

    Raises:
        FormConfigurationError: If the data is not a valid definition.
    """
    if not isinstance(data, dict):
        raise FormConfigurationError("Form definition must be a mapping")

    try:
        return FormDefinition.model_validate(data)
    except ValidationError as e:
        raise _configuration_error(e) from e


def load_form_definition(path: str | Path) -> FormDefinition:
    """Read and validate a form definition file (.json, .yaml or .yml).

    Raises:
        FormConfigurationError: If the file cannot be parsed or is invalid.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FormConfigurationError(f"Cannot read form definition '{path}': {e}") from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise FormConfigurationError(f"Cannot parse form definition '{path.name}': {e}") from e

    return parse_form_definition(data)


def validation_messages(error: ValidationError) -> list[str]:
    """Flatten a Pydantic ValidationError into readable messages."""
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        message = err["msg"].removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def _configuration_error(error: ValidationError) -> FormConfigurationError:
    """Build a FormConfigurationError, tagging dependency problems with their kind."""
    message = "; ".join(validation_messages(error))
    for err in error.errors():
        if err["type"] == "dependency_error":
            ctx = err["ctx"]
            return FormConfigurationError(
                message, kind=DependencyErrorKind(ctx["kind"]), field_id=ctx["field_id"]
            )
    return FormConfigurationError(message)


class FormCatalog:
    """The set of form definitions available to a running service.

    Loads every definition file in a directory once. Invalid files are
    logged and skipped so one bad form does not take the others down.

    Args:
        directory: Directory to scan, or None for an empty catalog.
    """

    def __init__(self, directory: str | Path | None = None):
        self._forms: dict[str, FormDefinition] = {}
        self.errors: dict[str, str] = {}
        if directory is not None:
            self.load_directory(directory)

    def load_directory(self, directory: str | Path) -> int:
        """Load all definition files in a directory. Returns the count loaded."""
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning("Form directory %s does not exist", directory)
            return 0

        loaded = 0
        for path in sorted(directory.iterdir()):
            if path.suffix.lower() not in DEFINITION_SUFFIXES:
                continue
            try:
                self.add(load_form_definition(path))
                loaded += 1
            except FormConfigurationError as e:
                self.errors[path.name] = e.message
                logger.warning("Skipping invalid form definition %s: %s", path.name, e.message)
        logger.info("Loaded %d form definition(s) from %s", loaded, directory)
        return loaded

    def add(self, definition: FormDefinition) -> None:
        if definition.form_id in self._forms:
            logger.warning("Form '%s' defined more than once, keeping the last", definition.form_id)
        self._forms[definition.form_id] = definition

    def get(self, form_id: str) -> FormDefinition | None:
        return self._forms.get(form_id)

    def forms(self) -> list[FormDefinition]:
        return [self._forms[form_id] for form_id in sorted(self._forms)]

    def __len__(self) -> int:
        return len(self._forms)
