"""
Per-session store of field values.

The store is a plain mapping of field ID to the value the registrant
entered. It holds no derived state and evaluates nothing: after every
``set`` the owner recomputes visibility and effective rules itself.
"""

from collections.abc import Mapping
from typing import Any


class FormValueStore:
    """Mutable field values for one in-progress submission.

    Args:
        initial: Optional draft values to pre-seed the store with.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._values: dict[str, Any] = dict(initial or {})

    def get(self, field_id: str, default: Any = None) -> Any:
        """Return the stored value for a field, or default if unset."""
        return self._values.get(field_id, default)

    def set(self, field_id: str, value: Any) -> None:
        """Store a value for a field, replacing any previous one."""
        self._values[field_id] = value

    def delete(self, field_id: str) -> bool:
        """Remove a value. Returns True if one was stored."""
        if field_id in self._values:
            del self._values[field_id]
            return True
        return False

    def snapshot(self) -> dict[str, Any]:
        """Return a copy of all stored values."""
        return dict(self._values)

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"FormValueStore({self._values!r})"
