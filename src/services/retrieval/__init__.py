from src.services.retrieval.resilient_store import ResilientVectorStore
from src.services.retrieval.vector_search import VectorSearchEngine, cosine_similarities

__all__ = ["ResilientVectorStore", "VectorSearchEngine", "cosine_similarities"]
