"""Pydantic request models for the Banana Studio API.

Field names follow the JSON the browser already sends (``image_urls``,
``apiKey``), so aliases are used where they differ from Python naming.

Models
------
GenerateRequest
    Payload for ``POST /generate``.
SaveApiKeyRequest
    Payload for ``POST /save-api-key``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    """Request body for the ``POST /generate`` endpoint.

    Attributes:
        prompt: Instruction for the image model.  Must be non-empty after
            trimming; checked by the prompt adapter so the error carries the
            usual JSON shape.
        image_urls: Reference images as data URIs, raw base64, or URLs
            (URLs are skipped with a warning).
        num_images: Number of images the caller would like.  Logged only:
            the model decides how many images it returns.
        api_key: Per-request Gemini key (``apiKey`` in JSON).
    """

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(
        default="",
        description="Instruction text for the image model.",
    )
    image_urls: list[str] = Field(
        default_factory=list,
        description="Reference images (data URI, raw base64, or URL).",
    )
    num_images: int = Field(
        default=1,
        ge=1,
        description="Requested number of images (informational).",
    )
    api_key: str | None = Field(
        default=None,
        alias="apiKey",
        description="Gemini API key for this request.",
    )


class SaveApiKeyRequest(BaseModel):
    """Request body for the ``POST /save-api-key`` endpoint.

    Attributes:
        api_key: Key to persist (``apiKey`` in JSON).
    """

    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(
        default="",
        alias="apiKey",
        description="Gemini API key to store on the server.",
    )
