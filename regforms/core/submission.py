"""
Submission collaborators.

A collaborator receives the final, validated payload of visible field
values and persists it somewhere, usually the registration backend.
Failures come back as a SubmissionResult rather than an exception, so
the session can stay intact and be resubmitted.
"""

import logging
from typing import Any, Protocol

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class SubmissionResult(BaseModel):
    """Outcome reported by a submission collaborator."""

    success: bool
    reason: str | None = None
    data: dict[str, Any] | None = None

    @classmethod
    def ok(cls, data: dict[str, Any] | None = None) -> "SubmissionResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, reason: str) -> "SubmissionResult":
        return cls(success=False, reason=reason)


class SubmissionCollaborator(Protocol):
    """Anything that can accept a validated registration payload."""

    async def submit(self, form_id: str, payload: dict[str, Any]) -> SubmissionResult:
        ...


class HttpSubmissionClient:
    """Posts registration payloads to the backend over HTTP.

    The request body is ``{"formId": ..., "responses": {...}}``. Any 2xx
    response is a success and its JSON body (if any) becomes the result
    data. Transport failures, malformed URLs and payloads that cannot be
    encoded as JSON all come back as failed results.

    Args:
        url: Endpoint to POST registrations to.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (used for testing).
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def submit(self, form_id: str, payload: dict[str, Any]) -> SubmissionResult:
        body = {"formId": form_id, "responses": payload}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Submission of form '%s' failed: %s", form_id, e)
            return SubmissionResult.failure(f"Could not reach registration service: {e}")
        except (TypeError, ValueError) as e:
            # Payload values that cannot be encoded as JSON
            logger.warning("Submission of form '%s' could not be encoded: %s", form_id, e)
            return SubmissionResult.failure(f"Registration could not be encoded: {e}")

        if response.is_success:
            logger.info("Submitted form '%s' (HTTP %d)", form_id, response.status_code)
            return SubmissionResult.ok(_json_or_none(response))

        reason = _error_reason(response)
        logger.warning(
            "Registration service rejected form '%s' (HTTP %d): %s",
            form_id, response.status_code, reason,
        )
        return SubmissionResult.failure(reason)


def _json_or_none(response: httpx.Response) -> dict[str, Any] | None:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else {"result": data}


def _error_reason(response: httpx.Response) -> str:
    data = _json_or_none(response)
    if data:
        for key in ("message", "detail", "error"):
            if isinstance(data.get(key), str):
                return data[key]
    return f"Registration service returned HTTP {response.status_code}"
