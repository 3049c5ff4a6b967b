"""
FastAPI routes for the registration form engine.

Endpoints:
- GET    /health                     — health check
- GET    /forms                      — list available form definitions
- GET    /forms/{form_id}            — get one form definition
- POST   /forms/validate             — validate a form definition
- POST   /sessions                   — start a registration session
- GET    /sessions/{session_id}      — current state of a session
- PATCH  /sessions/{session_id}/values — set field values
- POST   /sessions/{session_id}/advance | retreat | jump | submit
- DELETE /sessions/{session_id}      — abandon a session
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from regforms.core.dependencies import FormConfigurationError
from regforms.core.form_state import SessionClosedError, UnknownFieldError
from regforms.core.loader import parse_form_definition
from regforms.core.progression import NavigationError
from regforms.core.session import Session
from regforms.core.submission import SubmissionResult
from regforms.core.views import SessionView, build_session_view

logger = logging.getLogger(__name__)

router = APIRouter()

# These will be injected by the app factory
_session_store = None
_catalog = None
_submitter = None


def configure_routes(session_store, catalog, submitter=None):
    """Inject the session store, form catalog and submission collaborator.

    Called by the app factory during startup. ``submitter`` may be None,
    in which case submit requests are refused with 503.
    """
    global _session_store, _catalog, _submitter
    _session_store = session_store
    _catalog = catalog
    _submitter = submitter


# --- Request / Response Models ---


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ValidateFormRequest(_Body):
    """Request body for /forms/validate."""

    definition: dict[str, Any]


class ValidateFormResponse(_Body):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    kind: str | None = None
    field_id: str | None = Field(default=None, serialization_alias="fieldId")


class CreateSessionRequest(_Body):
    """Request body for /sessions."""

    form_id: str = Field(..., alias="formId")
    draft: dict[str, Any] | None = None


class SetValuesRequest(_Body):
    values: dict[str, Any]


class JumpRequest(_Body):
    index: int


class NavigationResponse(_Body):
    ok: bool
    session: SessionView


class SubmitResponse(_Body):
    submitted: bool
    session: SessionView
    result: SubmissionResult | None = None


# --- Helpers ---


def _require_configured() -> None:
    if _session_store is None or _catalog is None:
        raise HTTPException(status_code=500, detail="Server not properly configured")


def _get_session(session_id: str) -> Session:
    _require_configured()
    session = _session_store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return session


def _view(session_id: str, session: Session, errors=None) -> SessionView:
    return build_session_view(session.form, session_id=session_id, errors=errors)


# --- Form endpoints ---


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "active_sessions": _session_store.count() if _session_store else 0,
        "forms": len(_catalog) if _catalog is not None else 0,
        "submission_configured": _submitter is not None,
    }


@router.get("/forms")
async def list_forms():
    """List the form definitions this service can serve."""
    _require_configured()
    return {
        "forms": [
            {
                "formId": d.form_id,
                "title": d.title,
                "layout": d.layout.value,
                "sections": len(d.sections),
                "fields": len(d.all_fields),
            }
            for d in _catalog.forms()
        ]
    }


@router.get("/forms/{form_id}")
async def get_form(form_id: str):
    """Return a form definition in its authored (camelCase) shape."""
    _require_configured()
    definition = _catalog.get(form_id)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Form '{form_id}' not found")
    return definition.model_dump(by_alias=True, exclude_none=True, mode="json")


@router.post("/forms/validate", response_model=ValidateFormResponse)
async def validate_form(request: ValidateFormRequest):
    """Check a form definition without registering it."""
    try:
        parse_form_definition(request.definition)
    except FormConfigurationError as e:
        return ValidateFormResponse(
            valid=False,
            errors=e.message.split("; "),
            kind=e.kind.value if e.kind is not None else None,
            field_id=e.field_id,
        )
    return ValidateFormResponse(valid=True)


# --- Session endpoints ---


@router.post("/sessions", response_model=SessionView)
async def create_session(request: CreateSessionRequest):
    """Start a registration session for a form, optionally from a draft."""
    _require_configured()
    definition = _catalog.get(request.form_id)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Form '{request.form_id}' not found")

    session_id, session = _session_store.create_session(definition, draft=request.draft)
    logger.info("Created session %s for form '%s'", session_id, definition.form_id)
    return _view(session_id, session)


@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session(session_id: str):
    session = _get_session(session_id)
    return _view(session_id, session)


@router.patch("/sessions/{session_id}/values", response_model=SessionView)
async def set_values(session_id: str, request: SetValuesRequest):
    """Apply field edits; visibility is recomputed before responding."""
    session = _get_session(session_id)
    try:
        session.form.set_values(request.values)
    except UnknownFieldError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _view(session_id, session)


@router.post("/sessions/{session_id}/advance", response_model=NavigationResponse)
async def advance(session_id: str):
    """Move to the next section if the current one validates."""
    session = _get_session(session_id)
    try:
        result = session.form.advance()
    except (NavigationError, SessionClosedError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    return NavigationResponse(ok=result.ok, session=_view(session_id, session, result.errors))


@router.post("/sessions/{session_id}/retreat", response_model=NavigationResponse)
async def retreat(session_id: str):
    session = _get_session(session_id)
    try:
        moved = session.form.retreat()
    except (NavigationError, SessionClosedError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    return NavigationResponse(ok=moved, session=_view(session_id, session))


@router.post("/sessions/{session_id}/jump", response_model=NavigationResponse)
async def jump(session_id: str, request: JumpRequest):
    """Jump to a completed or earlier section."""
    session = _get_session(session_id)
    try:
        moved = session.form.jump_to(request.index)
    except (NavigationError, SessionClosedError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    return NavigationResponse(ok=moved, session=_view(session_id, session))


@router.post("/sessions/{session_id}/submit", response_model=SubmitResponse)
async def submit(session_id: str):
    """Validate the final step and forward the registration.

    Validation failures come back with ``submitted: false`` and the errors
    in the session view. A failure of the registration service is a 502;
    the session is kept so the request can be retried.
    """
    session = _get_session(session_id)
    if _submitter is None:
        raise HTTPException(status_code=503, detail="Registration submission is not configured")

    try:
        outcome = await session.form.submit(_submitter)
    except (NavigationError, SessionClosedError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    if outcome.result is not None and not outcome.result.success:
        raise HTTPException(status_code=502, detail=outcome.result.reason or "Submission failed")

    response = SubmitResponse(
        submitted=outcome.submitted,
        session=_view(session_id, session, outcome.errors),
        result=outcome.result,
    )
    if outcome.submitted:
        # The session ends once the registration is accepted
        _session_store.delete_session(session_id)
        logger.info("Session %s submitted and closed", session_id)
    return response


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    """Abandon a session."""
    _require_configured()
    deleted = _session_store.delete_session(session_id)
    return {
        "success": deleted,
        "message": "Session deleted" if deleted else "Session not found",
    }
