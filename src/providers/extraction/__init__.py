"""Extraction method implementations, in default priority order.

    1. UnstructuredAPIExtractor (hosted)  - api.unstructuredapp.io, needs a key.
    2. UnstructuredAPIExtractor (local)   - self-hosted unstructured-api container.
    3. PyMuPDFExtractor                   - in-process PDF / EPUB.
    4. PurePythonExtractor                - PyPDF2, python-docx, ebooklib, BeautifulSoup.
    5. OllamaVisionExtractor              - images, via a local vision model.
    6. BasicExtractor                     - text, markup, image placeholder; always available.
"""

from src.providers.extraction.basic_provider import BasicExtractor
from src.providers.extraction.ollama_vision_provider import OllamaVisionExtractor
from src.providers.extraction.pure_python_provider import PurePythonExtractor
from src.providers.extraction.pymupdf_provider import PyMuPDFExtractor
from src.providers.extraction.unstructured_api_provider import UnstructuredAPIExtractor

__all__ = [
    "BasicExtractor",
    "OllamaVisionExtractor",
    "PurePythonExtractor",
    "PyMuPDFExtractor",
    "UnstructuredAPIExtractor",
]
