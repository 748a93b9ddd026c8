"""Abstract base class for text extraction methods.

An extraction method turns raw upload bytes into a list of structural
:class:`~src.models.rag.Element` objects.  Methods are arranged in a
priority-ordered fallback chain by
:class:`~src.services.extraction.extraction_chain.ExtractionChain`:
remote partitioning services first, in-process libraries next, and a basic
decoder that never fails last.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.content import ContentKind
from src.models.rag import Element


# Concrete implementations (src/providers/extraction/):
#   UnstructuredAPIExtractor  - hosted or self-hosted Unstructured partition API
#   PyMuPDFExtractor          - in-process PDF / EPUB / XPS via PyMuPDF
#   PurePythonExtractor       - PyPDF2, python-docx, BeautifulSoup
#   BasicExtractor            - stdlib decoders, always available
class IExtractionMethod(ABC):
    """Contract for one step of the extraction fallback chain."""

    @abstractmethod
    async def extract(self, data: bytes, filename: str, kind: ContentKind) -> list[Element]:
        """Extract structural elements from *data*.

        Parameters
        ----------
        data:
            Raw file bytes.
        filename:
            Original filename; some services use its extension to sniff
            the format.
        kind:
            The content kind resolved at ingestion entry.

        Returns
        -------
        list[Element]
            Elements in reading order.  An empty list means nothing could be
            extracted and the chain moves on to the next method.

        Raises
        ------
        src.utils.errors.ExtractionError
            If the content could not be parsed.
        src.utils.errors.ProviderUnavailableError
            If a backing service is unreachable.
        """

    @abstractmethod
    def supports(self, kind: ContentKind) -> bool:
        """Return ``True`` if this method can handle *kind*."""

    @abstractmethod
    def get_method_name(self) -> str:
        """Return the method's identifier, e.g. ``"unstructured_local"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the method is configured (credentials, libraries)."""
