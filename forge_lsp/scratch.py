"""
Scratch copies of editor buffers.

Racket only accepts file paths, so each validation writes the full buffer to
a deterministic per-document path and hands that path to the checker. The
path keeps the document's basename, which lets locators printed by the
checker be compared against the document's own filename.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

from .errors import ScratchFileError

logger = logging.getLogger(__name__)


def uri_to_path(uri: str) -> Path:
    """Convert a file URI to a Path."""
    parsed = urlparse(uri)
    # Handle Windows paths
    path = unquote(parsed.path)
    if path.startswith("/") and len(path) > 2 and path[2] == ":":
        path = path[1:]  # Remove leading slash for Windows paths
    return Path(path)


class ScratchFiles:
    """Write, locate and delete scratch copies under one directory."""

    def __init__(self, root: Path):
        self.root = root

    def path(self, uri: str) -> Path:
        digest = hashlib.sha1(uri.encode("utf-8")).hexdigest()[:12]
        name = uri_to_path(uri).name or "untitled"
        return self.root / digest / name

    def write(self, uri: str, text: str) -> Path:
        path = self.path(uri)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # newline="" keeps the buffer's own line endings so offsets match.
            path.write_text(text, encoding="utf-8", newline="")
        except OSError as e:
            raise ScratchFileError(str(path), f"write failed: {e}")
        return path

    def delete(self, uri: str) -> None:
        path = self.path(uri)
        try:
            path.unlink(missing_ok=True)
            if path.parent.exists() and not any(path.parent.iterdir()):
                path.parent.rmdir()
        except OSError as e:
            raise ScratchFileError(str(path), f"delete failed: {e}")
        logger.debug(f"Deleted scratch file {path}")
