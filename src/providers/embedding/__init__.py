"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.

Implementations of IEmbeddingProvider:
    1. FastEmbedEmbeddingProvider - ONNX-based, no PyTorch needed.
       Default local provider. all-MiniLM-L6-v2 (384 dims).
    2. SentenceTransformerEmbeddingProvider - PyTorch-based local backend,
       same default model and dimension.
    3. OpenAIEmbeddingProvider - text-embedding-3-small (1536 dims).
       Remote; requires an API key and incurs cost per token.

The local providers import their model libraries lazily, inside the
worker thread that loads the weights, so importing this package never
requires fastembed or sentence-transformers to be installed.
"""

from src.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from src.providers.embedding.local_model_provider import LocalModelEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.embedding.sentence_transformer_embedding_provider import (
    SentenceTransformerEmbeddingProvider,
)

__all__ = [
    "FastEmbedEmbeddingProvider",
    "LocalModelEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "SentenceTransformerEmbeddingProvider",
]
