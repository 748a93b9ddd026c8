"""Content kind resolution for uploaded files.

An upload arrives with a declared MIME type and a filename.  Both are
resolved exactly once, at ingestion entry, into a closed :class:`ContentKind`
enum.  Everything downstream (extraction method selection, chunking strategy
auto-detection, the basic fallback's decoders) dispatches on the enum via
lookup tables rather than re-parsing MIME strings.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath


class ContentKind(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Closed set of content kinds the pipeline knows how to handle."""

    TEXT = "text"
    MARKDOWN = "markdown"
    HTML = "html"
    CODE = "code"
    JSON = "json"
    CSV = "csv"
    XML = "xml"
    PDF = "pdf"
    DOCX = "docx"
    EPUB = "epub"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


# Kinds whose bytes are already text and can be decoded directly.
TEXT_LIKE_KINDS: frozenset[ContentKind] = frozenset(
    {
        ContentKind.TEXT,
        ContentKind.MARKDOWN,
        ContentKind.HTML,
        ContentKind.CODE,
        ContentKind.JSON,
        ContentKind.CSV,
        ContentKind.XML,
    }
)

_MIME_KINDS: dict[str, ContentKind] = {
    "text/plain": ContentKind.TEXT,
    "text/markdown": ContentKind.MARKDOWN,
    "text/x-markdown": ContentKind.MARKDOWN,
    "text/html": ContentKind.HTML,
    "application/xhtml+xml": ContentKind.HTML,
    "text/css": ContentKind.CODE,
    "text/javascript": ContentKind.CODE,
    "application/javascript": ContentKind.CODE,
    "text/x-python": ContentKind.CODE,
    "application/x-python-code": ContentKind.CODE,
    "text/x-typescript": ContentKind.CODE,
    "application/json": ContentKind.JSON,
    "text/csv": ContentKind.CSV,
    "application/xml": ContentKind.XML,
    "text/xml": ContentKind.XML,
    "application/pdf": ContentKind.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ContentKind.DOCX,
    "application/epub+zip": ContentKind.EPUB,
}

_EXTENSION_KINDS: dict[str, ContentKind] = {
    ".txt": ContentKind.TEXT,
    ".text": ContentKind.TEXT,
    ".log": ContentKind.TEXT,
    ".md": ContentKind.MARKDOWN,
    ".markdown": ContentKind.MARKDOWN,
    ".html": ContentKind.HTML,
    ".htm": ContentKind.HTML,
    ".py": ContentKind.CODE,
    ".js": ContentKind.CODE,
    ".mjs": ContentKind.CODE,
    ".ts": ContentKind.CODE,
    ".tsx": ContentKind.CODE,
    ".jsx": ContentKind.CODE,
    ".css": ContentKind.CODE,
    ".go": ContentKind.CODE,
    ".rs": ContentKind.CODE,
    ".java": ContentKind.CODE,
    ".rb": ContentKind.CODE,
    ".sh": ContentKind.CODE,
    ".json": ContentKind.JSON,
    ".csv": ContentKind.CSV,
    ".xml": ContentKind.XML,
    ".pdf": ContentKind.PDF,
    ".docx": ContentKind.DOCX,
    ".epub": ContentKind.EPUB,
    ".png": ContentKind.IMAGE,
    ".jpg": ContentKind.IMAGE,
    ".jpeg": ContentKind.IMAGE,
    ".gif": ContentKind.IMAGE,
    ".webp": ContentKind.IMAGE,
    ".bmp": ContentKind.IMAGE,
    ".tiff": ContentKind.IMAGE,
}


def resolve_content_kind(content_type: str | None, filename: str = "") -> ContentKind:
    """Map a declared MIME type (falling back to the filename) to a ContentKind.

    MIME parameters such as ``; charset=utf-8`` are ignored.  Any ``image/*``
    type resolves to IMAGE.  Generic types like ``application/octet-stream``
    defer to the file extension.
    """
    mime = (content_type or "").split(";", 1)[0].strip().lower()

    kind = _MIME_KINDS.get(mime)
    if kind is not None:
        return kind
    if mime.startswith("image/"):
        return ContentKind.IMAGE

    suffix = PurePosixPath(filename.lower()).suffix
    kind = _EXTENSION_KINDS.get(suffix)
    if kind is not None:
        return kind

    # Unknown text/* subtypes are still decodable text.
    if mime.startswith("text/"):
        return ContentKind.TEXT
    return ContentKind.UNSUPPORTED
