"""Document search exposed as an LLM agent tool.

The tool wraps :meth:`DocumentService.search_documents` for one scope (the
conversation the agent is serving).  ``definition()`` returns an OpenAI
function-calling schema generated from the pydantic parameter model, and
``run()`` returns a JSON-serialisable payload:

    {"success": true,
     "results": [{"document_name": ..., "content": ...,
                  "page_number": ..., "relevance_score": ...}],
     "message": "Found 2 relevant document sections."}

The tool never raises; failures come back as ``success: false`` with a
friendly message the agent can relay.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from src.services.document_service import DocumentService
from src.utils.logging import get_logger

TOOL_NAME = "search_documents"
TOOL_DESCRIPTION = "Search through uploaded documents for relevant information"

_NO_RESULTS_MESSAGE = "No relevant documents found for your query."
_FAILURE_MESSAGE = "Failed to search documents. Please try again."


class DocumentSearchParams(BaseModel):
    """Arguments the model supplies when calling the tool."""

    query: str = Field(
        min_length=1, description="The search query to find relevant document content"
    )
    limit: int = Field(
        default=5, ge=1, le=50, description="Maximum number of results to return"
    )


class DocumentSearchTool:
    """Agent-callable search over one scope's documents."""

    def __init__(self, document_service: DocumentService, scope: str) -> None:
        self._documents = document_service
        self._scope = scope
        self._logger = get_logger(__name__)

    @staticmethod
    def definition() -> dict[str, Any]:
        """OpenAI ``tools=[...]`` entry for this tool."""
        schema = DocumentSearchParams.model_json_schema()
        schema.pop("title", None)
        schema.pop("description", None)
        return {
            "type": "function",
            "function": {
                "name": TOOL_NAME,
                "description": TOOL_DESCRIPTION,
                "parameters": schema,
            },
        }

    async def run(self, arguments: str | dict[str, Any]) -> dict[str, Any]:
        """Execute a tool call.  *arguments* is the raw JSON string or a dict."""
        try:
            raw = json.loads(arguments) if isinstance(arguments, str) else arguments
            params = DocumentSearchParams.model_validate(raw)
        except (json.JSONDecodeError, ValidationError) as exc:
            self._logger.warning("document_search_tool_bad_arguments", error=str(exc))
            return {"success": False, "results": [], "message": _FAILURE_MESSAGE}

        try:
            hits = await self._documents.search_documents(
                params.query, self._scope, limit=params.limit
            )
        except Exception as exc:
            self._logger.error(
                "document_search_tool_failed", scope=self._scope, error=str(exc)
            )
            return {"success": False, "results": [], "message": _FAILURE_MESSAGE}

        if not hits:
            return {"success": True, "results": [], "message": _NO_RESULTS_MESSAGE}

        results = [
            {
                "document_name": hit.document_name,
                "content": hit.chunk.content,
                "page_number": hit.chunk.metadata.page_number,
                "relevance_score": round(hit.score, 4),
            }
            for hit in hits
        ]
        self._logger.info("document_search_tool_results", scope=self._scope, count=len(results))
        return {
            "success": True,
            "results": results,
            "message": f"Found {len(results)} relevant document sections.",
        }
