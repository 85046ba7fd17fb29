"""Tests for bananastudio.core.prompt_adapter — Gemini request construction.

Tests cover:
- Part ordering (images in input order, prompt last).
- Handling of each reference encoding.
- Fail-fast validation (empty prompt, too many references).
- The serialized request body and generation config defaults.
"""

from __future__ import annotations

import pytest

from bananastudio.core.errors import ValidationError
from bananastudio.core.prompt_adapter import (
    GenerationSettings,
    InlineImagePart,
    TextPart,
    build_request,
)
from bananastudio.core.references import RawBase64


class TestBuildRequest:
    """Test build_request() part construction."""

    def test_prompt_only(self):
        """No references → a single text part and no image parts."""
        adapted = build_request("Add sunglasses")
        assert adapted.parts == [TextPart(text="Add sunglasses")]
        assert adapted.image_parts == []
        assert adapted.warnings == []

    def test_single_data_uri(self):
        """A data URI becomes one image part, followed by the trimmed prompt."""
        adapted = build_request("  Add a hat  ", ["data:image/png;base64,iVBORw0KGgo="])
        assert adapted.parts == [
            InlineImagePart(mime_type="image/png", data="iVBORw0KGgo="),
            TextPart(text="Add a hat"),
        ]

    def test_raw_base64_is_jpeg(self):
        adapted = build_request("Edit", ["/9j/4AAQ"])
        assert adapted.image_parts == [InlineImagePart(mime_type="image/jpeg", data="/9j/4AAQ")]

    def test_non_image_data_uri_sent_as_jpeg(self):
        value = "data:application/octet-stream;base64,AAAA"
        adapted = build_request("Edit", [value])
        assert adapted.image_parts == [InlineImagePart(mime_type="image/jpeg", data=value)]

    def test_remote_url_skipped_with_warning(self):
        """URLs produce no part but a warning naming the URL."""
        adapted = build_request("Edit", ["https://example.com/cat.png"])
        assert adapted.image_parts == []
        assert len(adapted.warnings) == 1
        assert "https://example.com/cat.png" in adapted.warnings[0]

    def test_mixed_references_keep_order(self):
        adapted = build_request(
            "Combine",
            [
                "data:image/webp;base64,AAA",
                "https://example.com/skip.png",
                "BBB",
                "data:image/png;base64,CCC",
            ],
        )
        assert [(p.mime_type, p.data) for p in adapted.image_parts] == [
            ("image/webp", "AAA"),
            ("image/jpeg", "BBB"),
            ("image/png", "CCC"),
        ]
        assert isinstance(adapted.parts[-1], TextPart)
        assert len(adapted.text_parts) == 1

    def test_accepts_parsed_references(self):
        adapted = build_request("Edit", [RawBase64(payload="XYZ")])
        assert adapted.image_parts[0].data == "XYZ"

    @pytest.mark.parametrize("prompt", ["", "   ", "\n\t"])
    def test_empty_prompt_rejected(self, prompt):
        with pytest.raises(ValidationError, match="Prompt"):
            build_request(prompt)

    def test_ten_references_allowed(self):
        adapted = build_request("Edit", ["AAAA"] * 10)
        assert len(adapted.image_parts) == 10

    def test_eleven_references_rejected(self):
        with pytest.raises(ValidationError, match="10"):
            build_request("Edit", ["AAAA"] * 11)

    def test_custom_reference_limit(self):
        with pytest.raises(ValidationError):
            build_request("Edit", ["AAAA"] * 3, max_references=2)

    def test_invalid_reference_rejected(self):
        with pytest.raises(ValidationError):
            build_request("Edit", ["data:image/png;nope"])


class TestPayload:
    """Test the serialized request body."""

    def test_payload_shape(self):
        payload = build_request("Add sunglasses", ["data:image/png;base64,AAA"]).to_payload()
        assert payload["contents"] == [
            {
                "parts": [
                    {"inline_data": {"mime_type": "image/png", "data": "AAA"}},
                    {"text": "Add sunglasses"},
                ]
            }
        ]

    def test_default_generation_config(self):
        payload = build_request("Add sunglasses").to_payload()
        assert payload["generationConfig"] == {
            "temperature": 1.0,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": 8192,
            "responseModalities": ["IMAGE"],
        }

    def test_text_modality_when_not_image_only(self):
        settings = GenerationSettings(image_only=False)
        payload = build_request("Draw", settings=settings).to_payload()
        assert payload["generationConfig"]["responseModalities"] == ["IMAGE", "TEXT"]
