"""Translate a prompt and reference images into a Gemini request body.

This is a pure transformation: nothing here touches the network or disk.

The request body produced by :meth:`AdaptedRequest.to_payload` has the shape
expected by ``models/<model>:generateContent``::

    {
        "contents": [{"parts": [
            {"inline_data": {"mime_type": "image/png", "data": "<b64>"}},
            ...,
            {"text": "<prompt>"}
        ]}],
        "generationConfig": {
            "temperature": 1.0, "topK": 40, "topP": 0.95,
            "maxOutputTokens": 8192, "responseModalities": ["IMAGE"]
        }
    }

Image parts keep the order of the input references and the prompt is always
the single, final text part.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from bananastudio.core.errors import ValidationError
from bananastudio.core.references import (
    DataUri,
    RawBase64,
    ReferenceImage,
    RemoteUrl,
    parse_reference,
)

logger = logging.getLogger(__name__)

MAX_REFERENCE_IMAGES = 10

REMOTE_URL_WARNING = (
    "Skipped reference image {href}: the Gemini API does not accept image URLs, "
    "convert it to base64 first"
)


@dataclass(frozen=True)
class GenerationSettings:
    """Sampling parameters sent as ``generationConfig``."""

    temperature: float = 1.0
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 8192
    image_only: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
            "responseModalities": ["IMAGE"] if self.image_only else ["IMAGE", "TEXT"],
        }


@dataclass(frozen=True)
class InlineImagePart:
    mime_type: str
    data: str

    def to_payload(self) -> dict[str, Any]:
        return {"inline_data": {"mime_type": self.mime_type, "data": self.data}}


@dataclass(frozen=True)
class TextPart:
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {"text": self.text}


ContentPart = InlineImagePart | TextPart


@dataclass
class AdaptedRequest:
    """Content parts and generation config ready for serialization.

    Attributes:
        parts: Image parts in input order followed by one text part.
        settings: Sampling parameters.
        warnings: Human-readable notes about references that were skipped.
    """

    parts: list[ContentPart]
    settings: GenerationSettings
    warnings: list[str] = field(default_factory=list)

    @property
    def image_parts(self) -> list[InlineImagePart]:
        return [p for p in self.parts if isinstance(p, InlineImagePart)]

    @property
    def text_parts(self) -> list[TextPart]:
        return [p for p in self.parts if isinstance(p, TextPart)]

    def to_payload(self) -> dict[str, Any]:
        return {
            "contents": [{"parts": [part.to_payload() for part in self.parts]}],
            "generationConfig": self.settings.to_payload(),
        }


def _part_for(reference: ReferenceImage) -> InlineImagePart | None:
    if isinstance(reference, DataUri):
        return InlineImagePart(mime_type=reference.mime_type, data=reference.payload)
    if isinstance(reference, RawBase64):
        return InlineImagePart(mime_type=reference.mime_type, data=reference.payload)
    if isinstance(reference, RemoteUrl):
        return None
    raise TypeError(f"Unhandled reference type: {type(reference).__name__}")


def build_request(
    prompt: str,
    references: Sequence[str | ReferenceImage] = (),
    settings: GenerationSettings | None = None,
    *,
    max_references: int = MAX_REFERENCE_IMAGES,
) -> AdaptedRequest:
    """Build the Gemini request for a prompt and its reference images.

    Args:
        prompt: Instruction text.  Leading and trailing whitespace is removed.
        references: Reference images as raw strings or parsed references.
        settings: Sampling parameters (defaults if omitted).
        max_references: Maximum number of references accepted.

    Returns:
        The adapted request.

    Raises:
        ValidationError: If the prompt is empty, there are too many
            references, or a reference cannot be parsed.
    """
    if len(references) > max_references:
        raise ValidationError(f"At most {max_references} reference images are supported")

    prompt = (prompt or "").strip()
    if not prompt:
        raise ValidationError("Prompt must not be empty")

    parts: list[ContentPart] = []
    warnings: list[str] = []

    for raw in references:
        reference = raw if isinstance(raw, DataUri | RawBase64 | RemoteUrl) else parse_reference(raw)
        part = _part_for(reference)
        if part is None:
            message = REMOTE_URL_WARNING.format(href=reference.href)
            logger.warning(message)
            warnings.append(message)
            continue
        parts.append(part)

    parts.append(TextPart(text=prompt))

    logger.debug(f"Built request with {len(parts) - 1} image part(s), prompt length {len(prompt)}")
    return AdaptedRequest(parts=parts, settings=settings or GenerationSettings(), warnings=warnings)
