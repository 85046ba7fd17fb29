"""Reference image encodings accepted by ``POST /generate``.

The browser sends reference images as plain strings in ``image_urls``.  Each
string is one of three encodings, parsed once by :func:`parse_reference` into
a small tagged union:

==============  ==========================================  ================
Type            Input                                       Forwarded as
==============  ==========================================  ================
``DataUri``     ``data:image/<subtype>;base64,<payload>``   declared type
``RemoteUrl``   ``https://...`` (any ``<scheme>://``)       not forwarded
``RawBase64``   any other non-empty string                  ``image/jpeg``
==============  ==========================================  ================

Remote URLs are not fetched: Gemini does not accept them as inline data, so the
caller has to resolve them to base64 first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from bananastudio.core.errors import ValidationError

DEFAULT_RAW_MIME_TYPE = "image/jpeg"

_DATA_URI_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)
_URL_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


@dataclass(frozen=True)
class DataUri:
    """Inline image with a declared media type."""

    mime_type: str
    payload: str

    @property
    def subtype(self) -> str:
        return self.mime_type.split("/", 1)[1]


@dataclass(frozen=True)
class RawBase64:
    """Bare base64 payload with no media type."""

    payload: str

    @property
    def mime_type(self) -> str:
        return DEFAULT_RAW_MIME_TYPE


@dataclass(frozen=True)
class RemoteUrl:
    """Link to an image hosted elsewhere."""

    href: str


ReferenceImage = DataUri | RawBase64 | RemoteUrl


def to_data_uri(mime_type: str, payload: str) -> str:
    return f"data:{mime_type};base64,{payload}"


def parse_reference(value: str) -> ReferenceImage:
    """Classify one reference image string.

    Args:
        value: Data URI, URL, or raw base64 payload.

    Returns:
        The parsed reference.

    Raises:
        ValidationError: If the value is empty or is a ``data:image/`` URI
            that does not carry a base64 payload.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Reference image must be a non-empty string")

    value = value.strip()

    if value.startswith("data:image/"):
        match = _DATA_URI_RE.match(value)
        if not match:
            raise ValidationError(
                "Reference image data URI must look like data:image/<type>;base64,<data>"
            )
        return DataUri(mime_type=match.group(1), payload=match.group(2))

    if _URL_SCHEME_RE.match(value):
        return RemoteUrl(href=value)

    return RawBase64(payload=value)
