# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Adapters for the embedding and vector-search collaborators."""

from omniroute.clients.embedding import GeminiEmbeddingClient, compose_text
from omniroute.clients.vector_search import (
    InMemoryVectorSearchClient,
    QdrantVectorSearchClient,
    cosine_similarity,
)

__all__ = [
    "GeminiEmbeddingClient",
    "InMemoryVectorSearchClient",
    "QdrantVectorSearchClient",
    "compose_text",
    "cosine_similarity",
]
