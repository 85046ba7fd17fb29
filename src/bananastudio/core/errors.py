"""Exception taxonomy for Banana Studio.

Every failure a request can run into is represented by a subclass of
:class:`StudioError`.  Each class knows its HTTP status and how to render
itself as the JSON error body the browser expects::

    {"error": ..., "status": ..., "details": ..., "hint": ..., "finishReason": ...}

Only the keys that carry a value are emitted.  The FastAPI layer installs a
single exception handler for ``StudioError`` so route handlers simply raise.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

#: Upper bound on raw upstream text echoed back to the client.
DETAILS_LIMIT = 1000

API_KEY_HINT = "Get an API key at https://aistudio.google.com/apikey"
BILLING_HINT = (
    "Check that the API key is valid and that billing is enabled "
    "for it in Google AI Studio"
)
PROMPT_HINT = (
    'Try a simpler, explicit English prompt such as "Add sunglasses" '
    'or "Change background to beach"'
)


class OutcomeClassification(str, Enum):
    """What became of one generation attempt."""

    SUCCESS = "SUCCESS"
    CONTENT_FILTERED = "CONTENT_FILTERED"
    NO_IMAGE = "NO_IMAGE"
    TOKEN_LIMIT = "TOKEN_LIMIT"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    OTHER = "OTHER"


def truncate(text: str | None, limit: int = DETAILS_LIMIT) -> str | None:
    """Clip diagnostic text to *limit* characters."""
    if text is None:
        return None
    return text[:limit]


class StudioError(Exception):
    """Base class for errors that are reported to the client as JSON."""

    status_code: int = 500

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.hint:
            payload["hint"] = self.hint
        return payload


class ValidationError(StudioError):
    """Caller input was rejected (missing prompt, too many files, ...)."""

    status_code = 400


class MissingCredentialError(ValidationError):
    """No API key was supplied in the request or configured on the server."""

    def __init__(self, message: str = "Missing Google API key") -> None:
        super().__init__(message, hint=API_KEY_HINT)


class UpstreamTransportError(StudioError):
    """The Gemini call failed at the HTTP level.

    ``status`` is the upstream HTTP status, or ``None`` when no response was
    received at all (connection refused, timeout).  In that case the client
    gets a 502.
    """

    classification = OutcomeClassification.TRANSPORT_ERROR

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        details: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status = status
        self.details = truncate(details)

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return self.status if self.status is not None else 502

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.status is not None:
            payload["status"] = self.status
        if self.details:
            payload["details"] = self.details
        return payload


class EmptyUpstreamBodyError(StudioError):
    """The Gemini call succeeded but returned no body."""

    status_code = 500
    classification = OutcomeClassification.MALFORMED_RESPONSE

    def __init__(self, message: str = "Gemini API returned an empty response") -> None:
        super().__init__(message)


class UpstreamContentPolicyError(StudioError):
    """Gemini finished without producing an image for a content reason."""

    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        classification: OutcomeClassification,
        finish_reason: str | None = None,
        hint: str | None = PROMPT_HINT,
    ) -> None:
        super().__init__(message, hint=hint)
        self.classification = classification
        self.finish_reason = finish_reason

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.finish_reason:
            payload["finishReason"] = self.finish_reason
        return payload


class UpstreamMalformedResponseError(StudioError):
    """The Gemini response could not be parsed or had an unexpected shape."""

    status_code = 500
    classification = OutcomeClassification.MALFORMED_RESPONSE

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.details = truncate(details)

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.details:
            payload["details"] = self.details
        return payload


class LocalIOError(StudioError):
    """Reading or writing local files failed."""

    status_code = 500

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.details:
            payload["details"] = self.details
        return payload
