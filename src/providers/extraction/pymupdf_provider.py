"""In-process extraction with PyMuPDF (fitz).

Handles the paged formats MuPDF understands natively: PDF, EPUB and XPS.
Text is read page by page as layout blocks, so every element carries the
1-based page number it came from.  Runs in a worker thread because MuPDF
is synchronous and CPU-bound.
"""

from __future__ import annotations

import asyncio

from src.interfaces.extraction_method import IExtractionMethod
from src.models.content import ContentKind
from src.models.rag import Element
from src.utils.errors import ExtractionError
from src.utils.logging import get_logger
from src.utils.text_segmentation import paragraph_elements

# PyMuPDF is optional: when it is missing is_available() returns False and
# the chain moves on to the next method.
try:
    import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention

    _FITZ_AVAILABLE = True
except ImportError:
    fitz = None  # type: ignore[assignment]
    _FITZ_AVAILABLE = False

_FILETYPES: dict[ContentKind, str] = {
    ContentKind.PDF: "pdf",
    ContentKind.EPUB: "epub",
}

# get_text("blocks") tuple layout: (x0, y0, x1, y1, text, block_no, block_type)
_TEXT_BLOCK = 0


class PyMuPDFExtractor(IExtractionMethod):
    """Extract page-numbered text blocks from PDF and EPUB files."""

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    async def extract(self, data: bytes, filename: str, kind: ContentKind) -> list[Element]:
        return await asyncio.to_thread(self._extract_sync, data, filename, kind)

    def supports(self, kind: ContentKind) -> bool:
        return kind in _FILETYPES

    def get_method_name(self) -> str:
        return "pymupdf"

    def is_available(self) -> bool:
        return _FITZ_AVAILABLE

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _extract_sync(self, data: bytes, filename: str, kind: ContentKind) -> list[Element]:
        try:
            doc = fitz.open(stream=data, filetype=_FILETYPES[kind])
        except Exception as exc:
            raise ExtractionError(
                message=f"MuPDF cannot open {filename}: {exc}",
                provider_name=self.get_method_name(),
            ) from exc

        elements: list[Element] = []
        try:
            if doc.needs_pass:
                raise ExtractionError(
                    message=f"{filename} is password protected",
                    provider_name=self.get_method_name(),
                )
            for page_index in range(len(doc)):
                page = doc[page_index]
                for block in page.get_text("blocks", sort=True):
                    if block[6] != _TEXT_BLOCK:
                        continue
                    elements.extend(paragraph_elements(block[4], page_number=page_index + 1))
            page_count = len(doc)
        finally:
            doc.close()

        self._logger.debug(
            "pymupdf_extracted",
            filename=filename,
            pages=page_count,
            element_count=len(elements),
        )
        return elements
