"""Extraction orchestration with an ordered fallback chain.

Manages a priority-ordered list of extraction methods and tries each in
turn until one returns at least one element.  The default order is:
``unstructured_hosted`` → ``unstructured_local`` → ``pymupdf`` →
``pure_python`` → ``ollama_vision`` → ``basic``.

Rules of the chain:

    1. A method that is unavailable (no credentials, library missing) or
       does not support the content kind is skipped.
    2. Every attempt is bounded by ``timeout_seconds``.  A timeout counts
       as a failure of that method only.
    3. An empty element list counts as a failure.
    4. Unsupported content kinds go straight to the ``basic`` method.
    5. The chain never raises.  When every method fails it returns a single
       diagnostic element naming the file, its size and the last error, so
       the caller can decide whether that is worth chunking.
"""

from __future__ import annotations

import asyncio

from src.interfaces.extraction_method import IExtractionMethod
from src.models.config import ExtractionConfig, ExtractionMethodName
from src.models.content import ContentKind, resolve_content_kind
from src.models.rag import Element, ExtractionOutcome
from src.utils.logging import get_logger

DIAGNOSTIC_ELEMENT_TYPE = "ExtractionFailure"


class ExtractionChain:
    """Runs extraction methods in priority order until one succeeds.

    Methods are registered by name; the order actually tried comes from
    :attr:`ExtractionConfig.methods`, so a per-scope config can reorder or
    disable methods without rebuilding the chain.
    """

    def __init__(self, methods: list[IExtractionMethod], config: ExtractionConfig) -> None:
        self._methods: dict[str, IExtractionMethod] = {m.get_method_name(): m for m in methods}
        self._config = config
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(
        self,
        data: bytes,
        filename: str,
        content_type: str = "",
        kind: ContentKind | None = None,
        config: ExtractionConfig | None = None,
    ) -> ExtractionOutcome:
        """Extract elements from an upload.  Never raises.

        Parameters
        ----------
        data:
            Raw file bytes.
        filename:
            Original filename.
        content_type:
            Declared MIME type; ignored when *kind* is given.
        kind:
            Pre-resolved content kind.
        config:
            Per-call override of the chain configuration (per-scope tuning).
        """
        config = config or self._config
        kind = kind or resolve_content_kind(content_type, filename)
        errors: dict[str, str] = {}
        last_error = "no extraction method was applicable"

        for method in self._ordered_methods(kind, config):
            name = method.get_method_name()

            if not method.is_available():
                self._logger.debug("extraction_method_unavailable", method=name)
                continue
            if not method.supports(kind):
                self._logger.debug("extraction_method_skipped", method=name, kind=kind.value)
                continue

            try:
                self._logger.info("extraction_method_attempting", method=name, kind=kind.value)
                elements = await asyncio.wait_for(
                    method.extract(data, filename, kind), timeout=config.timeout_seconds
                )
            except asyncio.TimeoutError:
                last_error = f"timed out after {config.timeout_seconds:g}s"
                errors[name] = last_error
                self._logger.warning("extraction_method_timeout", method=name, filename=filename)
                continue
            except Exception as exc:
                # Individual method failures are non-fatal; the chain moves on.
                last_error = str(exc)
                errors[name] = last_error
                self._logger.warning("extraction_method_failed", method=name, error=last_error)
                continue

            elements = [e for e in elements if e.text.strip()]
            if not elements:
                last_error = "no text extracted"
                errors[name] = last_error
                self._logger.warning("extraction_method_empty", method=name, filename=filename)
                continue

            self._logger.info(
                "extraction_method_accepted",
                method=name,
                element_count=len(elements),
            )
            return ExtractionOutcome(elements=elements, method=name, errors=errors)

        self._logger.error(
            "extraction_exhausted", filename=filename, size=len(data), last_error=last_error
        )
        return ExtractionOutcome(
            elements=[self._diagnostic_element(filename, len(data), last_error)],
            method=None,
            errors=errors,
        )

    def get_available_methods(self) -> list[str]:
        """Return the names of methods that are currently available, in chain order."""
        return [
            m.get_method_name()
            for m in self._ordered_methods(None, self._config)
            if m.is_available()
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ordered_methods(
        self, kind: ContentKind | None, config: ExtractionConfig
    ) -> list[IExtractionMethod]:
        names = config.methods
        if kind == ContentKind.UNSUPPORTED:
            names = [ExtractionMethodName.BASIC]
        return [self._methods[n.value] for n in names if n.value in self._methods]

    @staticmethod
    def _diagnostic_element(filename: str, size: int, last_error: str) -> Element:
        return Element(
            text=(
                f"[Content unavailable: {filename} ({size} bytes) could not be "
                f"extracted. Last error: {last_error}]"
            ),
            type=DIAGNOSTIC_ELEMENT_TYPE,
        )
