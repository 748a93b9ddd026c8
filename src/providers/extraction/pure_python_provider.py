"""In-process extraction with pure-Python libraries.

A compatibility fallback for platforms where MuPDF's native wheels are not
available: PyPDF2 for PDF, python-docx for DOCX, ebooklib for EPUB and
BeautifulSoup for HTML (and for the XHTML inside EPUB chapters).
"""

from __future__ import annotations

import asyncio
import io
from collections.abc import Callable

import docx
import ebooklib
import PyPDF2
from bs4 import BeautifulSoup
from ebooklib import epub

from src.interfaces.extraction_method import IExtractionMethod
from src.models.content import ContentKind
from src.models.rag import Element
from src.utils.errors import ExtractionError
from src.utils.logging import get_logger
from src.utils.text_segmentation import paragraph_elements

_HTML_BLOCKS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "pre", "blockquote", "td"]
_HTML_NOISE = ["script", "style", "noscript", "template", "svg"]


class PurePythonExtractor(IExtractionMethod):
    """Extract text from PDF, DOCX, EPUB and HTML without native dependencies."""

    def __init__(self) -> None:
        self._handlers: dict[ContentKind, Callable[[bytes], list[Element]]] = {
            ContentKind.HTML: self._extract_html,
            ContentKind.PDF: self._extract_pdf,
            ContentKind.DOCX: self._extract_docx,
            ContentKind.EPUB: self._extract_epub,
        }
        self._logger = get_logger(__name__)

    async def extract(self, data: bytes, filename: str, kind: ContentKind) -> list[Element]:
        handler = self._handlers.get(kind)
        if handler is None:
            raise ExtractionError(
                message=f"No pure-Python reader for {kind.value}",
                provider_name=self.get_method_name(),
            )
        try:
            elements = await asyncio.to_thread(handler, data)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(
                message=f"Cannot read {filename}: {exc}",
                provider_name=self.get_method_name(),
            ) from exc
        self._logger.debug(
            "pure_python_extracted", filename=filename, kind=kind.value, element_count=len(elements)
        )
        return elements

    def supports(self, kind: ContentKind) -> bool:
        return kind in self._handlers

    def get_method_name(self) -> str:
        return "pure_python"

    def is_available(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Format readers (run in a worker thread)
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_pdf(data: bytes) -> list[Element]:
        reader = PyPDF2.PdfReader(io.BytesIO(data))
        elements: list[Element] = []
        for page_index, page in enumerate(reader.pages):
            page_text = page.extract_text() or ""
            if page_text.strip():
                elements.extend(paragraph_elements(page_text, page_number=page_index + 1))
        return elements

    @staticmethod
    def _extract_docx(data: bytes) -> list[Element]:
        document = docx.Document(io.BytesIO(data))
        elements: list[Element] = []
        for paragraph in document.paragraphs:
            text = paragraph.text.strip()
            if not text:
                continue
            style = paragraph.style.name if paragraph.style is not None else ""
            if style.startswith("Heading") or style == "Title":
                elements.append(Element(text=text, type="Title"))
            else:
                elements.append(Element(text=text, type="NarrativeText"))

        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    elements.append(Element(text=" | ".join(cells), type="Table"))
        return elements

    @staticmethod
    def _extract_epub(data: bytes) -> list[Element]:
        book = epub.read_epub(io.BytesIO(data), options={"ignore_ncx": True})
        elements: list[Element] = []
        # One XHTML document item per chapter; the navigation page is skipped.
        for item in book.get_items_of_type(ebooklib.ITEM_DOCUMENT):
            if not item.is_chapter():
                continue
            soup = BeautifulSoup(item.get_content(), "html.parser")
            elements.extend(_html_elements(soup))
        return elements

    @staticmethod
    def _extract_html(data: bytes) -> list[Element]:
        return _html_elements(BeautifulSoup(data, "html.parser"))


def _html_elements(soup: BeautifulSoup) -> list[Element]:
    """Headings and text blocks of *soup*, innermost block first."""
    for tag in soup(_HTML_NOISE):
        tag.decompose()

    elements: list[Element] = []
    for block in soup.find_all(_HTML_BLOCKS):
        # Nested blocks (p inside li, ...) are emitted by the innermost tag only.
        if block.find(_HTML_BLOCKS):
            continue
        text = " ".join(block.get_text(" ").split())
        if not text:
            continue
        element_type = "Title" if block.name.startswith("h") else "NarrativeText"
        elements.append(Element(text=text, type=element_type))

    if not elements:
        elements = paragraph_elements(soup.get_text("\n"))
    return elements
