"""Agent tools wrapping document services."""

from src.tools.document_search_tool import DocumentSearchParams, DocumentSearchTool

__all__ = ["DocumentSearchParams", "DocumentSearchTool"]
