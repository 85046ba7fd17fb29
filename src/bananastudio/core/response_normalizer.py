"""Turn a raw Gemini ``generateContent`` response into stored images.

The normalizer makes one pass over the response body:

1. Parse the body as JSON.
2. Require at least one candidate (a prompt blocked outright comes back with
   ``promptFeedback.blockReason`` and no candidates).
3. If the first candidate stopped for any reason other than ``STOP``, classify
   the reason and stop.  Nothing is written to disk.
4. Collect the candidate's inline image parts.
5. Decode, persist and describe each image.

Every failure raises a :class:`~bananastudio.core.errors.StudioError`
subclass; success returns :class:`GeneratedImage` objects in response order.

Classification
--------------
``FinishReason`` mirrors the upstream enum.  :func:`parse_finish_reason` maps
unknown strings to ``FinishReason.OTHER`` and :func:`classify_finish_reason`
is defined for every member, so a new upstream value can never slip through
unclassified.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from bananastudio.core.errors import (
    OutcomeClassification,
    UpstreamContentPolicyError,
    UpstreamMalformedResponseError,
)
from bananastudio.core.references import to_data_uri
from bananastudio.core.storage import ImageStorage, extension_for

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_MIME_TYPE = "image/png"


class FinishReason(str, Enum):
    """Completion reasons reported by Gemini on a candidate."""

    FINISH_REASON_UNSPECIFIED = "FINISH_REASON_UNSPECIFIED"
    STOP = "STOP"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"
    RECITATION = "RECITATION"
    LANGUAGE = "LANGUAGE"
    BLOCKLIST = "BLOCKLIST"
    PROHIBITED_CONTENT = "PROHIBITED_CONTENT"
    SPII = "SPII"
    MALFORMED_FUNCTION_CALL = "MALFORMED_FUNCTION_CALL"
    IMAGE_SAFETY = "IMAGE_SAFETY"
    IMAGE_PROHIBITED_CONTENT = "IMAGE_PROHIBITED_CONTENT"
    IMAGE_RECITATION = "IMAGE_RECITATION"
    IMAGE_OTHER = "IMAGE_OTHER"
    NO_IMAGE = "NO_IMAGE"
    OTHER = "OTHER"


_CONTENT_FILTER_REASONS = frozenset(
    {
        FinishReason.SAFETY,
        FinishReason.RECITATION,
        FinishReason.BLOCKLIST,
        FinishReason.PROHIBITED_CONTENT,
        FinishReason.SPII,
        FinishReason.IMAGE_SAFETY,
        FinishReason.IMAGE_PROHIBITED_CONTENT,
        FinishReason.IMAGE_RECITATION,
    }
)

_RECITATION_REASONS = frozenset({FinishReason.RECITATION, FinishReason.IMAGE_RECITATION})

NO_IMAGE_MESSAGE = (
    "The model could not generate an image for this prompt. The prompt may not "
    "match the reference images, describe something that cannot be drawn, or be "
    "too complex or vague. Try a simpler, more explicit description that relates "
    "to the reference images, preferably in English."
)
CONTENT_FILTERED_MESSAGE = "The content was blocked by the safety filter, please revise the prompt"
RECITATION_MESSAGE = "The generated content may be subject to copyright and was withheld"
TOKEN_LIMIT_MESSAGE = (
    "Token limit exceeded, use fewer reference images or a shorter prompt"
)
OTHER_MESSAGE = "Generation failed, please try again"


def parse_finish_reason(value: str) -> FinishReason:
    """Map an upstream string to :class:`FinishReason` (unknown → ``OTHER``)."""
    try:
        return FinishReason(value)
    except ValueError:
        logger.warning(f"Unknown finish reason {value!r}, treating as OTHER")
        return FinishReason.OTHER


def classify_finish_reason(reason: FinishReason) -> OutcomeClassification:
    """Classify a completion reason."""
    if reason is FinishReason.STOP:
        return OutcomeClassification.SUCCESS
    if reason is FinishReason.NO_IMAGE:
        return OutcomeClassification.NO_IMAGE
    if reason is FinishReason.MAX_TOKENS:
        return OutcomeClassification.TOKEN_LIMIT
    if reason in _CONTENT_FILTER_REASONS:
        return OutcomeClassification.CONTENT_FILTERED
    return OutcomeClassification.OTHER


def message_for(reason: FinishReason) -> str:
    """User-facing explanation for a non-STOP completion reason."""
    classification = classify_finish_reason(reason)
    if classification is OutcomeClassification.NO_IMAGE:
        return NO_IMAGE_MESSAGE
    if classification is OutcomeClassification.TOKEN_LIMIT:
        return TOKEN_LIMIT_MESSAGE
    if classification is OutcomeClassification.CONTENT_FILTERED:
        return RECITATION_MESSAGE if reason in _RECITATION_REASONS else CONTENT_FILTERED_MESSAGE
    return OTHER_MESSAGE


@dataclass
class GeneratedImage:
    """One image returned by Gemini and written to storage."""

    data: bytes
    mime_type: str
    filename: str
    url: str
    source_prompt: str

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.mime_type, base64.b64encode(self.data).decode("ascii"))

    def to_payload(self) -> dict[str, str]:
        # Gemini never rewrites the prompt, so the revised prompt is the original.
        return {"url": self.url, "base64": self.data_uri, "revised_prompt": self.source_prompt}


def _generated_name(stamp: int, index: int, mime_type: str) -> str:
    return f"generated_{stamp}_{index}.{extension_for(mime_type)}"


def _inline_data(part: Any) -> dict | None:
    if not isinstance(part, dict):
        return None
    inline = part.get("inlineData") or part.get("inline_data")
    if isinstance(inline, dict) and inline.get("data"):
        return inline
    return None


class ResponseNormalizer:
    """Normalize Gemini responses into :class:`GeneratedImage` lists.

    Args:
        storage: Where generated images are written.
        inspect_finish_reason: When ``False``, the completion reason is
            ignored and image extraction is attempted directly.
    """

    def __init__(self, storage: ImageStorage, *, inspect_finish_reason: bool = True):
        self.storage = storage
        self.inspect_finish_reason = inspect_finish_reason

    def normalize(self, body: str, prompt: str) -> list[GeneratedImage]:
        """Parse *body* and persist every image it carries.

        Args:
            body: Raw response text.
            prompt: Prompt that produced the response, echoed back unchanged.

        Returns:
            Generated images in the order their parts appear in the response.

        Raises:
            UpstreamMalformedResponseError: Unparseable or unexpected body.
            UpstreamContentPolicyError: Generation stopped for a content reason.
        """
        try:
            data = json.loads(body)
        except ValueError as e:
            logger.error(f"Failed to parse Gemini response: {e}")
            raise UpstreamMalformedResponseError(
                "Failed to parse Gemini API response", details=body
            ) from e

        if not isinstance(data, dict):
            raise UpstreamMalformedResponseError(
                "Gemini API returned an unexpected response format", details=body
            )

        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            self._raise_for_blocked_prompt(data)
            raise UpstreamMalformedResponseError(
                "Gemini API returned no valid result", details=body
            )

        candidate = candidates[0] if isinstance(candidates[0], dict) else {}

        finish_reason = candidate.get("finishReason")
        if self.inspect_finish_reason and finish_reason and finish_reason != FinishReason.STOP.value:
            reason = parse_finish_reason(str(finish_reason))
            classification = classify_finish_reason(reason)
            logger.warning(f"Generation stopped: {finish_reason} ({classification.value})")
            raise UpstreamContentPolicyError(
                message_for(reason),
                classification=classification,
                finish_reason=str(finish_reason),
            )

        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise UpstreamMalformedResponseError(
                "Gemini API returned an unexpected response format", details=body
            )

        inline_parts = [inline for inline in map(_inline_data, parts) if inline is not None]
        if not inline_parts:
            raise UpstreamMalformedResponseError(
                "No generated image data found in the response", details=body
            )

        decoded: list[tuple[bytes, str]] = []
        for inline in inline_parts:
            mime_type = inline.get("mimeType") or inline.get("mime_type") or DEFAULT_OUTPUT_MIME_TYPE
            try:
                raw = base64.b64decode(inline["data"], validate=True)
            except (binascii.Error, ValueError) as e:
                raise UpstreamMalformedResponseError(
                    "Gemini API returned invalid image data", details=str(e)
                ) from e
            decoded.append((raw, mime_type))

        # One timestamp per response; the index keeps names unique within it.
        stamp = int(time.time() * 1000)
        while any(
            self.storage.exists(_generated_name(stamp, i, mime)) for i, (_, mime) in enumerate(decoded)
        ):
            stamp += 1

        images: list[GeneratedImage] = []
        for index, (raw, mime_type) in enumerate(decoded):
            filename = _generated_name(stamp, index, mime_type)
            self.storage.write(filename, raw)
            images.append(
                GeneratedImage(
                    data=raw,
                    mime_type=mime_type,
                    filename=filename,
                    url=self.storage.url_for(filename),
                    source_prompt=prompt,
                )
            )

        logger.info(f"Normalized {len(images)} generated image(s)")
        return images

    @staticmethod
    def _raise_for_blocked_prompt(data: dict) -> None:
        feedback = data.get("promptFeedback")
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if block_reason:
            logger.warning(f"Prompt blocked upstream: {block_reason}")
            raise UpstreamContentPolicyError(
                CONTENT_FILTERED_MESSAGE,
                classification=OutcomeClassification.CONTENT_FILTERED,
                finish_reason=str(block_reason),
            )
