"""Local image storage for uploads and generated results.

Uploaded and generated images share one flat directory, which FastAPI serves
under a fixed URL prefix.  :class:`ImageStorage` maps filenames to paths and
public URLs and applies the optional retention policy.

Retention
---------
By default files accumulate indefinitely.  When ``max_files`` or
``max_age_hours`` is configured, :meth:`ImageStorage.prune` removes the oldest
files (by modification time) after each batch of writes.  The batch itself
is passed as ``keep`` and is never removed.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterable
from pathlib import Path

from bananastudio.core.errors import LocalIOError

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")

# Served by StaticFiles with a type browsers execute.
ACTIVE_IMAGE_SUBTYPES = frozenset({"svg"})


def extension_for(media_type: str, default: str = "png") -> str:
    """File extension (no dot) for storing an image of *media_type*.

    Only the media type decides the extension, never a client filename.
    Non-image and scriptable types fall back to *default*.
    """
    main, _, subtype = media_type.split(";", 1)[0].strip().lower().partition("/")
    if main != "image":
        return default
    subtype = _NON_ALNUM_RE.sub("", subtype.split("+", 1)[0])
    if not subtype or subtype in ACTIVE_IMAGE_SUBTYPES:
        return default
    return subtype


class ImageStorage:
    """Flat directory of image files with public URLs.

    Args:
        directory: Directory the files are written to.
        url_base: Absolute URL under which ``directory`` is served.
        max_files: Keep at most this many files (0 disables).
        max_age_hours: Delete files older than this (0 disables).
    """

    def __init__(
        self,
        directory: Path,
        url_base: str,
        *,
        max_files: int = 0,
        max_age_hours: float = 0,
    ):
        self.directory = Path(directory)
        self.url_base = url_base.rstrip("/")
        self.max_files = max_files
        self.max_age_hours = max_age_hours
        self.directory.mkdir(parents=True, exist_ok=True)

    def url_for(self, filename: str) -> str:
        return f"{self.url_base}/{filename}"

    def exists(self, filename: str) -> bool:
        return (self.directory / filename).exists()

    def write(self, filename: str, data: bytes) -> Path:
        """Write *data* under *filename*.

        Raises:
            LocalIOError: If the file cannot be written.
        """
        path = self.directory / filename
        try:
            path.write_bytes(data)
        except OSError as e:
            raise LocalIOError(f"Failed to store {filename}", details=str(e)) from e
        logger.debug(f"Stored {len(data)} bytes at {path}")
        return path

    def read_bytes(self, filename: str) -> bytes:
        """Read a stored file back.

        Raises:
            LocalIOError: If the file cannot be read.
        """
        try:
            return (self.directory / filename).read_bytes()
        except OSError as e:
            raise LocalIOError(f"Failed to read {filename}", details=str(e)) from e

    def _candidates(self, keep: frozenset[str]) -> list[tuple[float, Path]]:
        """Prunable files with their mtimes, oldest first."""
        found: list[tuple[float, Path]] = []
        for path in self.directory.iterdir():
            if path.name in keep:
                continue
            try:
                if not path.is_file():
                    continue
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                # Removed concurrently.
                continue
            found.append((mtime, path))
        found.sort(key=lambda item: item[0])
        return found

    def prune(self, keep: Iterable[str] = ()) -> list[str]:
        """Apply the retention policy.

        Files named in *keep* are never deleted.  They still count toward
        ``max_files``, so older files make room for them; a batch larger than
        ``max_files`` survives whole and only empties the rest of the directory.

        Args:
            keep: Filenames to protect, typically the batch just written.

        Returns:
            Names of the deleted files, oldest first.
        """
        if not self.max_files and not self.max_age_hours:
            return []

        keep = frozenset(keep)
        files = self._candidates(keep)
        doomed: list[Path] = []

        if self.max_age_hours:
            cutoff = time.time() - self.max_age_hours * 3600
            doomed.extend(path for mtime, path in files if mtime < cutoff)

        if self.max_files:
            survivors = [path for _, path in files if path not in doomed]
            excess = len(survivors) + len(keep) - self.max_files
            if excess > 0:
                doomed.extend(survivors[:excess])

        removed: list[str] = []
        for path in doomed:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not prune {path}: {e}")
                continue
            removed.append(path.name)

        if removed:
            logger.info(f"Pruned {len(removed)} stored image(s)")
        return removed
