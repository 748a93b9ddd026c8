"""Document registry implementations.

SQLiteDocumentRegistry is the default (REGISTRY_DB_PATH).
MemoryDocumentRegistry keeps everything in process memory.
"""

from src.providers.registry.memory_document_registry import MemoryDocumentRegistry
from src.providers.registry.sqlite_document_registry import SQLiteDocumentRegistry

__all__ = ["MemoryDocumentRegistry", "SQLiteDocumentRegistry"]
