from src.providers.file_store.local_file_store import LocalFileStore

__all__ = ["LocalFileStore"]
