"""Run one image generation end to end.

:class:`GenerationOrchestrator` wires the pieces together::

    credential check → prompt adapter → one Gemini call → response normalizer

It makes exactly one upstream request per generation and never retries.  All
failures are raised as :class:`~bananastudio.core.errors.StudioError`
subclasses so the HTTP layer can render them uniformly.

The API key is passed in explicitly for every call; the orchestrator holds no
credential state of its own.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import httpx

from bananastudio.core.errors import (
    BILLING_HINT,
    EmptyUpstreamBodyError,
    MissingCredentialError,
    UpstreamTransportError,
)
from bananastudio.core.gemini_client import GeminiClient
from bananastudio.core.prompt_adapter import (
    MAX_REFERENCE_IMAGES,
    GenerationSettings,
    build_request,
)
from bananastudio.core.response_normalizer import GeneratedImage, ResponseNormalizer
from bananastudio.core.storage import ImageStorage

logger = logging.getLogger(__name__)

#: Upstream statuses that usually mean a bad key or billing not enabled.
CREDENTIAL_STATUSES = frozenset({400, 401, 403})


@dataclass
class GenerationResult:
    images: list[GeneratedImage]
    warnings: list[str] = field(default_factory=list)

    def to_payload(self) -> dict:
        payload: dict = {"data": [image.to_payload() for image in self.images]}
        if self.warnings:
            payload["warnings"] = self.warnings
        return payload


class GenerationOrchestrator:
    """Sequence a single Gemini image generation.

    Args:
        client: Transport to the Gemini API.
        storage: Where generated images are written.
        settings: Sampling parameters for every request.
        inspect_finish_reason: Forwarded to :class:`ResponseNormalizer`.
        max_references: Maximum reference images per request.
    """

    def __init__(
        self,
        client: GeminiClient,
        storage: ImageStorage,
        *,
        settings: GenerationSettings | None = None,
        inspect_finish_reason: bool = True,
        max_references: int = MAX_REFERENCE_IMAGES,
    ):
        self.client = client
        self.storage = storage
        self.settings = settings or GenerationSettings()
        self.max_references = max_references
        self.normalizer = ResponseNormalizer(storage, inspect_finish_reason=inspect_finish_reason)

    async def generate(
        self,
        prompt: str,
        references: Sequence[str] = (),
        credential: str | None = None,
    ) -> GenerationResult:
        """Generate images for *prompt*.

        Args:
            prompt: Instruction text.
            references: Reference images (data URIs, raw base64, or URLs).
            credential: Gemini API key.

        Returns:
            Stored images plus warnings about skipped references.

        Raises:
            MissingCredentialError: No API key.
            ValidationError: Empty prompt, too many or unparseable references.
            UpstreamTransportError: Network failure or non-2xx status.
            EmptyUpstreamBodyError: 2xx status with an empty body.
            UpstreamContentPolicyError: Generation stopped for a content reason.
            UpstreamMalformedResponseError: Unexpected response body.
        """
        if not credential or not credential.strip():
            raise MissingCredentialError()

        adapted = build_request(
            prompt,
            references,
            self.settings,
            max_references=self.max_references,
        )
        logger.info(
            f"Generating with {len(adapted.image_parts)} reference image(s), "
            f"prompt length {len(adapted.text_parts[-1].text)}"
        )

        try:
            response = await self.client.generate_content(adapted.to_payload(), credential.strip())
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: {e!r}")
            raise UpstreamTransportError(
                "Gemini API request failed", details=str(e) or type(e).__name__
            ) from e

        body = response.text

        if not response.is_success:
            logger.error(f"Gemini API error {response.status_code}: {body[:200]}")
            raise UpstreamTransportError(
                "Gemini API call failed",
                status=response.status_code,
                details=body,
                hint=BILLING_HINT if response.status_code in CREDENTIAL_STATUSES else None,
            )

        if not body.strip():
            raise EmptyUpstreamBodyError()

        images = self.normalizer.normalize(body, prompt)
        self.storage.prune(keep=[image.filename for image in images])

        return GenerationResult(images=images, warnings=adapted.warnings)
