"""Read report, transcript and reference files for the CLI."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

from ..models import FileReference, InlineDocument, ReferenceDocument

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".markdown", ".csv", ".json"}


def read_text_file(path: str | Path) -> str:
    """Read a UTF-8 text file, raising ``FileNotFoundError`` with a clear message."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"File not found: {p}")
    return p.read_text(encoding="utf-8")


def load_reference(path: str | Path) -> ReferenceDocument:
    """Turn *path* into a reference document.

    Text files are inlined; anything else becomes a file reference with a
    guessed MIME type and a ``file://`` URI.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Reference document not found: {p}")
    if p.suffix.lower() in TEXT_SUFFIXES:
        return InlineDocument(display_name=p.name, content=p.read_text(encoding="utf-8"))
    mime, _ = mimetypes.guess_type(p.name)
    return FileReference(
        mime_type=mime or "application/octet-stream",
        uri=p.resolve().as_uri(),
        display_name=p.name,
    )


def load_references(paths: list[str | Path]) -> list[ReferenceDocument]:
    """Load every path in order; directories contribute their files sorted by name."""
    docs: list[ReferenceDocument] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            files = sorted(f for f in p.iterdir() if f.is_file())
            logger.debug("Loading %d reference files from %s", len(files), p)
            docs.extend(load_reference(f) for f in files)
        else:
            docs.append(load_reference(p))
    return docs
