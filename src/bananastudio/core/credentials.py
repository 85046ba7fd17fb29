"""File-backed storage for the Gemini API key.

The server keeps at most one credential.  It lives in a small JSON file::

    {"apiKey": "AIza..."}

Reads are lazy and cached for the lifetime of the process.  Writes replace the
whole file, so the credential is never partially updated.  A file that cannot
be parsed is treated as corrupt: it is deleted and the store behaves as if no
key had been saved, rather than failing every request that needs it.

Which key a generation actually uses is decided by :func:`resolve_credential`,
so the orchestrator receives an explicit value instead of reading global
state.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from bananastudio.core.config import CredentialSource
from bananastudio.core.errors import LocalIOError, MissingCredentialError, ValidationError

logger = logging.getLogger(__name__)

_UNLOADED = object()


class CredentialStore:
    """Persist a single API key on local disk.

    Args:
        path: Location of the credential JSON file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._cached: object = _UNLOADED

    @property
    def is_configured(self) -> bool:
        return bool(self.load())

    def load(self) -> str | None:
        """Return the stored key, reading the file on first use.

        Returns:
            The key, or ``None`` when nothing usable is stored.
        """
        if self._cached is _UNLOADED:
            self._cached = self._read()
        return self._cached  # type: ignore[return-value]

    def _read(self) -> str | None:
        if not self.path.exists():
            return None

        try:
            with open(self.path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            logger.warning(f"Credential file {self.path} is unreadable ({e}); removing it")
            self._discard()
            return None

        key = data.get("apiKey") if isinstance(data, dict) else None
        if not isinstance(key, str) or not key.strip():
            logger.warning(f"Credential file {self.path} has no usable apiKey; removing it")
            self._discard()
            return None

        return key.strip()

    def _discard(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Could not delete corrupt credential file {self.path}: {e}")

    def save(self, api_key: str) -> None:
        """Replace the stored key.

        Args:
            api_key: New key.  Surrounding whitespace is stripped.

        Raises:
            ValidationError: If the key is empty.
            LocalIOError: If the file cannot be written.
        """
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValidationError("API key must not be empty")

        # Write to a sibling temp file and rename so readers never see half a file.
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump({"apiKey": api_key}, handle)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise LocalIOError("Failed to save API key", details=str(e)) from e

        self._cached = api_key
        logger.info(f"API key saved to {self.path}")

    def clear(self) -> None:
        """Forget the stored key and delete the file."""
        self._discard()
        self._cached = None


def resolve_credential(
    request_key: str | None,
    store: CredentialStore,
    source: CredentialSource,
) -> str:
    """Pick the API key for a generation request.

    Args:
        request_key: ``apiKey`` from the request body, if any.
        store: Server-side credential store.
        source: ``"request"``, ``"store"`` or ``"either"`` (request first).

    Returns:
        The key to send upstream.

    Raises:
        MissingCredentialError: If the selected source(s) provide no key.
    """
    request_key = (request_key or "").strip() or None

    if source == "request":
        key = request_key
    elif source == "store":
        key = store.load()
    else:
        key = request_key or store.load()

    if not key:
        raise MissingCredentialError()
    return key
