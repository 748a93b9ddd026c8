"""Plain-text segmentation helpers shared by the in-process extractors.

Extractors that do not get structure from a partitioning service (PyMuPDF
pages, PyPDF2 pages, decoded text files) fall back to paragraph
segmentation: blank lines separate paragraphs, and a line that looks like a
markdown heading becomes a ``Title`` element of its own.
"""

import re

from src.models.rag import Element

_BLANK_LINES = re.compile(r"\n\s*\n")
_HEADING_LINE = re.compile(r"^#{1,6}\s+\S")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_TRAILING_SPACE = re.compile(r"[ \t]+\n")


def normalize_newlines(text: str) -> str:
    """Unify line endings, strip trailing blanks and squeeze runs of empty lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\x00", "")
    text = _TRAILING_SPACE.sub("\n", text)
    return _EXCESS_NEWLINES.sub("\n\n", text).strip()


def split_paragraphs(text: str) -> list[str]:
    """Split *text* on blank lines, dropping empty paragraphs."""
    return [p.strip() for p in _BLANK_LINES.split(normalize_newlines(text)) if p.strip()]


def paragraph_elements(text: str, page_number: int | None = None) -> list[Element]:
    """Segment *text* into paragraph elements.

    Heading lines at the start of a paragraph are split off as ``Title``
    elements so that the markdown chunking strategy can still find them.
    """
    elements: list[Element] = []
    for paragraph in split_paragraphs(text):
        lines = paragraph.split("\n")
        while lines and _HEADING_LINE.match(lines[0]):
            title = lines.pop(0).strip()
            elements.append(Element(text=title, type="Title", page_number=page_number))
        body = "\n".join(lines).strip()
        if body:
            elements.append(Element(text=body, type="NarrativeText", page_number=page_number))
    return elements
