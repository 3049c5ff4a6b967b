"""
FastAPI application factory for the registration form service.

Creates and configures the FastAPI app: loads the form catalog,
sets up the session store and the submission client, and mounts the
routes under /api.

Run with:
    uvicorn regforms.api.app:app --reload
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from regforms.api.routes import configure_routes, router
from regforms.core.loader import FormCatalog
from regforms.core.session import SessionStore
from regforms.core.submission import HttpSubmissionClient

# Load environment variables from .env
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_FORMS_DIR = Path(__file__).parent.parent / "forms"


def _is_truthy(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _build_submitter() -> HttpSubmissionClient | None:
    """HTTP submission client for REGISTRATION_SUBMIT_URL, or None if unset."""
    submit_url = os.getenv("REGISTRATION_SUBMIT_URL")
    if not submit_url:
        logger.warning(
            "REGISTRATION_SUBMIT_URL is not set. "
            "Sessions can be filled in but submit requests will be refused."
        )
        return None
    return HttpSubmissionClient(
        submit_url,
        timeout=float(os.getenv("SUBMIT_TIMEOUT_SECONDS", "10")),
    )


def create_app() -> FastAPI:
    """Create the registration form service from environment settings."""

    application = FastAPI(
        title="Registration Forms",
        description="Dynamic registration form engine",
        version="0.1.0",
    )

    # Public registration pages are served from other origins
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Definitions are validated once here; invalid files never reach a session
    forms_dir = os.getenv("FORMS_DIR") or str(DEFAULT_FORMS_DIR)
    catalog = FormCatalog(forms_dir)

    session_timeout = int(os.getenv("SESSION_TIMEOUT_SECONDS", "1800"))
    session_store = SessionStore(
        timeout_seconds=session_timeout,
        clear_hidden_values=_is_truthy(os.getenv("CLEAR_HIDDEN_VALUES"), default=True),
    )
    submitter = _build_submitter()

    configure_routes(session_store, catalog, submitter)
    application.include_router(router, prefix="/api")

    @application.on_event("startup")
    async def on_startup():
        logger.info("Registration form service starting up")
        logger.info("Forms loaded: %d from %s", len(catalog), forms_dir)
        if catalog.errors:
            logger.warning("Invalid form definitions skipped: %s", ", ".join(sorted(catalog.errors)))
        logger.info("Submission %s", "enabled" if submitter is not None else "disabled")
        logger.info("Session timeout: %d seconds", session_timeout)

    return application


# Create the app instance (used by uvicorn)
app = create_app()
