"""Image extraction through a vision model served by Ollama.

Uses Ollama's native generate endpoint rather than its OpenAI-compatible
``/v1`` API, so the only client needed is the shared ``httpx.AsyncClient``::

    POST {base_url}/api/generate
    {"model": "llava", "prompt": "...", "images": ["<base64>"], "stream": false}

    -> {"model": "llava", "response": "<transcribed text>", "done": true}

Setup: install Ollama (https://ollama.ai), ``ollama pull llava`` and set
OLLAMA_BASE_URL=http://localhost:11434.  Vision inference on a local model
is slow; scopes that ingest images usually need a larger
``extraction.timeout_seconds``.  When the server is unset or fails, the
chain falls through to the basic placeholder element.
"""

from __future__ import annotations

import base64

import httpx

from src.interfaces.extraction_method import IExtractionMethod
from src.models.content import ContentKind
from src.models.rag import Element
from src.utils.errors import ExtractionError, ProviderUnavailableError
from src.utils.logging import get_logger
from src.utils.text_segmentation import paragraph_elements

DEFAULT_VISION_PROMPT = (
    "Transcribe all text visible in this image, preserving its reading order "
    "and line breaks.  If the image contains no text, describe its content "
    "in a few sentences."
)


class OllamaVisionExtractor(IExtractionMethod):
    """Transcribe images with an Ollama vision model (``llava`` by default).

    Only ``ContentKind.IMAGE`` is supported; every other kind is left to
    the document readers.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        model: str = "llava",
        prompt: str = DEFAULT_VISION_PROMPT,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._prompt = prompt
        self._logger = get_logger(__name__)

    async def extract(self, data: bytes, filename: str, kind: ContentKind) -> list[Element]:
        payload = {
            "model": self._model,
            "prompt": self._prompt,
            "images": [base64.b64encode(data).decode("utf-8")],
            "stream": False,
        }
        url = f"{self._base_url}/api/generate"
        try:
            response = await self._http.post(url, json=payload)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise ProviderUnavailableError(
                message=f"Cannot reach Ollama at {self._base_url}: {exc}",
                provider_name=self.get_method_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(
                message=f"Ollama vision request failed: {exc}",
                provider_name=self.get_method_name(),
            ) from exc

        # Ollama answers 404 when the model has not been pulled.
        if response.status_code == 404:
            raise ProviderUnavailableError(
                message=f"Ollama model '{self._model}' is not installed",
                provider_name=self.get_method_name(),
            )
        if response.status_code >= 400:
            raise ExtractionError(
                message=f"Ollama returned HTTP {response.status_code}",
                provider_name=self.get_method_name(),
            )

        try:
            text = response.json().get("response") or ""
        except (ValueError, AttributeError) as exc:
            raise ExtractionError(
                message="Ollama returned an unexpected body",
                provider_name=self.get_method_name(),
            ) from exc

        elements = paragraph_elements(text)
        self._logger.info(
            "ollama_vision_extract",
            model=self._model,
            filename=filename,
            element_count=len(elements),
        )
        return elements

    def supports(self, kind: ContentKind) -> bool:
        return kind == ContentKind.IMAGE

    def get_method_name(self) -> str:
        return "ollama_vision"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)
