"""Extraction via the Unstructured partition API.

One class serves both the hosted service (``api.unstructuredapp.io``, which
needs an API key) and a self-hosted ``unstructured-api`` container (no key).
They are registered as two separate methods in the extraction chain,
``unstructured_hosted`` and ``unstructured_local``.

The API accepts a multipart upload in the ``files`` field and answers with a
JSON array of elements::

    [{"type": "Title", "text": "...", "metadata": {"page_number": 1, ...}}, ...]

Some deployments wrap the array as ``{"elements": [...]}``; both are accepted.
"""

from __future__ import annotations

from typing import Any

import httpx

from src.interfaces.extraction_method import IExtractionMethod
from src.models.content import ContentKind
from src.models.rag import Element
from src.utils.errors import ExtractionError, ProviderUnavailableError, RateLimitError
from src.utils.logging import get_logger

_API_KEY_HEADER = "unstructured-api-key"


class UnstructuredAPIExtractor(IExtractionMethod):
    """Partition a file through an Unstructured API endpoint.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient`` for testability and connection pooling.
    api_url:
        Full partition endpoint, e.g. ``http://localhost:8000/general/v0/general``.
    method_name:
        ``"unstructured_hosted"`` or ``"unstructured_local"``.
    api_key:
        Sent as ``unstructured-api-key``.  Required when *requires_api_key*.
    strategy:
        Unstructured partition strategy (``auto``, ``fast``, ``hi_res``).
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_url: str,
        method_name: str,
        api_key: str = "",
        requires_api_key: bool = False,
        strategy: str = "auto",
    ) -> None:
        self._http = http_client
        self._api_url = api_url
        self._method_name = method_name
        self._api_key = api_key
        self._requires_api_key = requires_api_key
        self._strategy = strategy
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IExtractionMethod interface
    # ------------------------------------------------------------------

    async def extract(self, data: bytes, filename: str, kind: ContentKind) -> list[Element]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers[_API_KEY_HEADER] = self._api_key

        form = {"strategy": self._strategy}
        if kind == ContentKind.PDF:
            form["pdf_infer_table_structure"] = "true"

        try:
            response = await self._http.post(
                self._api_url,
                headers=headers,
                files={"files": (filename, data, "application/octet-stream")},
                data=form,
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise ProviderUnavailableError(
                message=f"Cannot reach {self._api_url}: {exc}",
                provider_name=self._method_name,
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(
                message=f"Partition request failed: {exc}",
                provider_name=self._method_name,
            ) from exc

        if response.status_code in (401, 403):
            raise ProviderUnavailableError(
                message=f"Partition API rejected credentials (HTTP {response.status_code})",
                provider_name=self._method_name,
            )
        if response.status_code == 429:
            raise RateLimitError(
                message="Partition API quota exceeded",
                provider_name=self._method_name,
            )
        if response.status_code >= 400:
            raise ExtractionError(
                message=f"Partition API returned HTTP {response.status_code}",
                provider_name=self._method_name,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ExtractionError(
                message="Partition API returned a non-JSON body",
                provider_name=self._method_name,
            ) from exc

        elements = self._parse_elements(payload)
        self._logger.debug(
            "unstructured_partitioned",
            method=self._method_name,
            filename=filename,
            element_count=len(elements),
        )
        return elements

    def supports(self, kind: ContentKind) -> bool:
        return kind != ContentKind.UNSUPPORTED

    def get_method_name(self) -> str:
        return self._method_name

    def is_available(self) -> bool:
        if not self._api_url:
            return False
        return bool(self._api_key) or not self._requires_api_key

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_elements(payload: Any) -> list[Element]:
        raw: Any = payload
        if isinstance(payload, dict):
            raw = payload.get("elements", [])
        if not isinstance(raw, list):
            return []

        elements: list[Element] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            text = (item.get("text") or "").strip()
            if not text:
                continue
            metadata = item.get("metadata") or {}
            page = metadata.get("page_number")
            elements.append(
                Element(
                    text=text,
                    type=item.get("type") or "NarrativeText",
                    page_number=page if isinstance(page, int) and page >= 1 else None,
                )
            )
        return elements
