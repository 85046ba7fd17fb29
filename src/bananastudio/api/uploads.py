"""Upload handling helpers for the Banana Studio API.

This module keeps the upload rules out of ``bananastudio.api.main`` so the
route handler only deals with multipart parsing.  The rules are:

- at most ``max_files`` files per request, at least one
- each file at most ``max_bytes`` bytes and non-empty
- each file must be an image: either its declared media type is ``image/*``,
  or, when the browser sent no useful type, Pillow recognizes the bytes

Accepted files are written to :class:`~bananastudio.core.storage.ImageStorage`,
read back, and returned as a retrieval URL plus a data URI.  The stored
extension comes from the resolved media type, never the client filename.  The data URI is
exactly what ``POST /generate`` accepts as a reference image.
"""

from __future__ import annotations

import base64
import io
import logging
import time
import uuid
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from bananastudio.core.errors import ValidationError
from bananastudio.core.references import to_data_uri
from bananastudio.core.storage import ImageStorage, extension_for

logger = logging.getLogger(__name__)

GENERIC_CONTENT_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream"})


@dataclass
class IncomingFile:
    """A file received in the ``images`` multipart field."""

    filename: str
    content_type: str | None
    data: bytes


@dataclass
class StoredUpload:
    filename: str
    url: str
    data_uri: str

    def to_payload(self) -> dict[str, str]:
        return {"url": self.url, "base64": self.data_uri}


def sniff_image_type(data: bytes) -> str | None:
    """Return the media type Pillow detects for *data*, or ``None``."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError):
        return None
    if not image_format:
        return None
    return Image.MIME.get(image_format.upper())


def resolve_media_type(upload: IncomingFile) -> str:
    """Work out the media type to use in the data URI.

    Raises:
        ValidationError: If the file is not an image.
    """
    declared = (upload.content_type or "").split(";", 1)[0].strip().lower()

    if declared.startswith("image/"):
        return declared

    if declared in GENERIC_CONTENT_TYPES:
        sniffed = sniff_image_type(upload.data)
        if sniffed:
            return sniffed

    raise ValidationError(
        f"{upload.filename or 'File'} is not an image",
        hint="Upload PNG, JPEG, WebP or another image format",
    )


def _format_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes / (1024 * 1024):g}MB"
    return f"{num_bytes} byte"


def store_uploads(
    uploads: list[IncomingFile],
    storage: ImageStorage,
    *,
    max_files: int,
    max_bytes: int,
) -> list[StoredUpload]:
    """Validate and store a batch of uploaded images.

    All files are validated before anything is written, so a rejected batch
    leaves no files behind.

    Args:
        uploads: Files from the request.
        storage: Destination storage.
        max_files: Maximum number of files.
        max_bytes: Maximum size of one file.

    Returns:
        One entry per file, in request order.

    Raises:
        ValidationError: Empty batch, too many files, oversized, empty or
            non-image file.
        LocalIOError: Writing or reading back a file failed.
    """
    if not uploads:
        raise ValidationError("No images uploaded", hint="Send files in the 'images' field")

    if len(uploads) > max_files:
        raise ValidationError(f"At most {max_files} images can be uploaded at once")

    media_types: list[str] = []
    for upload in uploads:
        if not upload.data:
            raise ValidationError(f"{upload.filename or 'File'} is empty")
        if len(upload.data) > max_bytes:
            raise ValidationError(
                f"{upload.filename or 'File'} exceeds the {_format_size(max_bytes)} limit"
            )
        media_types.append(resolve_media_type(upload))

    stored: list[StoredUpload] = []
    for upload, media_type in zip(uploads, media_types):
        filename = f"upload_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{extension_for(media_type)}"
        storage.write(filename, upload.data)

        # Read back what actually landed on disk.
        payload = base64.b64encode(storage.read_bytes(filename)).decode("ascii")
        stored.append(
            StoredUpload(
                filename=filename,
                url=storage.url_for(filename),
                data_uri=to_data_uri(media_type, payload),
            )
        )
        logger.info(f"Stored upload {upload.filename!r} as {filename} ({media_type})")

    storage.prune(keep=[item.filename for item in stored])
    return stored
