"""Tests for bananastudio.core.references — reference image parsing."""

from __future__ import annotations

import pytest

from bananastudio.core.errors import ValidationError
from bananastudio.core.references import (
    DataUri,
    RawBase64,
    RemoteUrl,
    parse_reference,
    to_data_uri,
)


class TestParseReference:
    """Test classification of reference image strings."""

    def test_data_uri(self):
        """A data URI keeps its declared media type and payload."""
        ref = parse_reference("data:image/webp;base64,UklGRg==")
        assert ref == DataUri(mime_type="image/webp", payload="UklGRg==")
        assert ref.subtype == "webp"

    def test_data_uri_with_compound_subtype(self):
        ref = parse_reference("data:image/svg+xml;base64,PHN2Zz4=")
        assert isinstance(ref, DataUri)
        assert ref.mime_type == "image/svg+xml"

    @pytest.mark.parametrize(
        "value",
        ["https://example.com/cat.png", "http://localhost:3000/uploads/a.png", "ftp://host/x.jpg"],
    )
    def test_remote_url(self, value):
        assert parse_reference(value) == RemoteUrl(href=value)

    def test_raw_base64_assumes_jpeg(self):
        ref = parse_reference("/9j/4AAQSkZJRg==")
        assert ref == RawBase64(payload="/9j/4AAQSkZJRg==")
        assert ref.mime_type == "image/jpeg"

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_reference("  abc123  ") == RawBase64(payload="abc123")

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_reference(value)

    def test_malformed_data_uri_rejected(self):
        """A data URI without a base64 payload is an error, not raw base64."""
        with pytest.raises(ValidationError):
            parse_reference("data:image/png,notbase64")

    def test_non_image_data_uri_is_raw_base64(self):
        """Only ``data:image/`` prefixes are parsed as data URIs."""
        value = "data:application/octet-stream;base64,AAAA"
        ref = parse_reference(value)
        assert ref == RawBase64(payload=value)
        assert ref.mime_type == "image/jpeg"


def test_to_data_uri():
    assert to_data_uri("image/png", "AAAA") == "data:image/png;base64,AAAA"
