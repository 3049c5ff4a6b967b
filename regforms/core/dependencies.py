"""
Dependency graph checks for conditional field rules.

Every conditional rule makes one field's visibility depend on another
field's value. Those references form a directed graph that must resolve
to real fields and must be acyclic, otherwise visibility cannot be
evaluated. The checks run once when a form definition is loaded.
"""

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from regforms.core.schema import FieldDefinition


class DependencyErrorKind(str, Enum):
    """Ways a dependency graph can be broken."""

    UNKNOWN_DEPENDENCY_TARGET = "UnknownDependencyTarget"
    SELF_DEPENDENCY = "SelfDependency"
    CYCLIC_DEPENDENCY = "CyclicDependency"


class DependencyIssue(BaseModel):
    """The first problem found in a form's dependency graph."""

    kind: DependencyErrorKind
    field_id: str
    message: str


class FormConfigurationError(Exception):
    """Raised when a form definition cannot be used.

    This is an authoring error in the form definition, not a user error.
    ``kind`` is a DependencyErrorKind for graph problems and None for
    structural problems (duplicate IDs, bad section references, ...).
    """

    def __init__(self, message: str, kind: DependencyErrorKind | None = None, field_id: str | None = None):
        self.kind = kind
        self.field_id = field_id
        self.message = message
        super().__init__(message)


def find_dependency_issue(fields: Sequence["FieldDefinition"]) -> DependencyIssue | None:
    """Check that every rule target exists and the graph is acyclic.

    Args:
        fields: All fields of a form definition.

    Returns:
        None when the graph is valid, otherwise the first issue found.
    """
    graph = {f.id: f.depends_on for f in fields}

    for field_id, targets in graph.items():
        for target in targets:
            if target == field_id:
                return DependencyIssue(
                    kind=DependencyErrorKind.SELF_DEPENDENCY,
                    field_id=field_id,
                    message=f"Field '{field_id}' has a conditional rule referencing itself",
                )
            if target not in graph:
                return DependencyIssue(
                    kind=DependencyErrorKind.UNKNOWN_DEPENDENCY_TARGET,
                    field_id=field_id,
                    message=(
                        f"Field '{field_id}' has a conditional rule referencing "
                        f"non-existent field '{target}'"
                    ),
                )

    cycle_at = _find_cycle(graph)
    if cycle_at is not None:
        return DependencyIssue(
            kind=DependencyErrorKind.CYCLIC_DEPENDENCY,
            field_id=cycle_at,
            message=f"Field '{cycle_at}' is part of a cyclic conditional dependency",
        )
    return None


def validate_dependencies(fields: Sequence["FieldDefinition"]) -> None:
    """Raise FormConfigurationError if the dependency graph is invalid."""
    issue = find_dependency_issue(fields)
    if issue is not None:
        raise FormConfigurationError(issue.message, kind=issue.kind, field_id=issue.field_id)


def _find_cycle(graph: dict[str, list[str]]) -> str | None:
    """Depth-first search with a recursion stack.

    Returns the ID of a field reached again while still on the stack,
    or None if the graph is acyclic.
    """
    done: set[str] = set()
    on_stack: set[str] = set()

    def visit(node: str) -> str | None:
        on_stack.add(node)
        for target in graph.get(node, []):
            if target in on_stack:
                return target
            if target not in done:
                found = visit(target)
                if found is not None:
                    return found
        on_stack.discard(node)
        done.add(node)
        return None

    for node in graph:
        if node not in done:
            found = visit(node)
            if found is not None:
                return found
    return None


def evaluation_order(fields: Sequence["FieldDefinition"]) -> list[str]:
    """Order field IDs so that every controlling field precedes its dependents.

    Fields keep their declaration order where the graph allows it.
    Assumes the graph has already been validated as acyclic.
    """
    graph = {f.id: f.depends_on for f in fields}
    ordered: list[str] = []
    placed: set[str] = set()

    def place(node: str) -> None:
        if node in placed:
            return
        placed.add(node)
        for target in graph.get(node, []):
            place(target)
        ordered.append(node)

    for f in fields:
        place(f.id)
    return ordered
