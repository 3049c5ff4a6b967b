"""
In-memory registry of registration sessions.

Each session owns its own FormSession (and so its own value store);
sessions never share mutable engine state. Sessions are created when a
registrant opens a form and expire after a period of inactivity.
"""

import logging
import threading
import time
import uuid
from collections.abc import Mapping
from typing import Any

from regforms.core.form_state import FormSession
from regforms.core.schema import FormDefinition

logger = logging.getLogger(__name__)

# Default idle timeout: 30 minutes
DEFAULT_SESSION_TIMEOUT_SECONDS = 30 * 60


class Session:
    """A registrant's FormSession plus when it was opened and last used."""

    def __init__(self, form: FormSession):
        self.form: FormSession = form
        self.created_at: float = time.time()
        self.last_accessed_at: float = self.created_at

    @property
    def form_id(self) -> str:
        return self.form.definition.form_id

    def touch(self) -> None:
        self.last_accessed_at = time.time()

    def is_expired(self, timeout_seconds: int = DEFAULT_SESSION_TIMEOUT_SECONDS) -> bool:
        """True once the session has been idle for longer than the timeout."""
        return time.time() - self.last_accessed_at > timeout_seconds


class SessionStore:
    """Registration sessions of this process, keyed by a generated ID.

    Args:
        timeout_seconds: Idle time after which a session is dropped.
        clear_hidden_values: Clearing policy handed to every new FormSession.
    """

    def __init__(
        self,
        timeout_seconds: int = DEFAULT_SESSION_TIMEOUT_SECONDS,
        clear_hidden_values: bool = True,
    ):
        self._sessions: dict[str, Session] = {}
        self._timeout_seconds = timeout_seconds
        self._clear_hidden_values = clear_hidden_values
        self._lock = threading.RLock()

    def create_session(
        self,
        definition: FormDefinition,
        draft: Mapping[str, Any] | None = None,
        session_id: str | None = None,
    ) -> tuple[str, Session]:
        """Open a session on a form definition.

        Args:
            definition: The validated form definition.
            draft: Optional values to pre-seed the session with.
            session_id: Optional custom ID. A uuid4 is generated if omitted.

        Returns:
            Tuple of (session_id, Session).
        """
        session_id = session_id or str(uuid.uuid4())
        session = Session(
            FormSession(definition, draft=draft, clear_hidden_values=self._clear_hidden_values)
        )
        with self._lock:
            self._sessions[session_id] = session
        return session_id, session

    def get_session(self, session_id: str) -> Session | None:
        """Return a live session and mark it as used.

        Returns None for unknown IDs. An expired session is dropped on
        access and also reported as None.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and session.is_expired(self._timeout_seconds):
                del self._sessions[session_id]
                logger.info("Session %s for form '%s' expired", session_id, session.form_id)
                return None
        if session is not None:
            session.touch()
        return session

    def delete_session(self, session_id: str) -> bool:
        """Drop a session. Returns True if it existed."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def cleanup_expired(self) -> int:
        """Drop every expired session and return how many were removed."""
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.is_expired(self._timeout_seconds)
            ]
            for session_id in expired:
                del self._sessions[session_id]
        if expired:
            logger.info("Removed %d expired session(s)", len(expired))
        return len(expired)

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def list_session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)
