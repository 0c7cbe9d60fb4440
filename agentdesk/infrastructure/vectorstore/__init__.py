"""
Vector Store Infrastructure
============================

Vector store implementations for knowledge-corpus storage and similarity
search: Zilliz Cloud (managed Milvus) for deployments and an in-process
store for development and tests.

This module provides a clean interface for vector operations following
the Repository pattern.
"""

import asyncio
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from pymilvus import MilvusClient

from agentdesk.config import Settings, settings as default_settings
from agentdesk.core import VectorStoreException


@dataclass
class Document:
    """Chunk of source text with its embedding."""
    id: str
    text: str
    embedding: List[float]
    metadata: dict = field(default_factory=dict)


@dataclass
class SearchResult:
    """Result from vector search."""
    content: str
    metadata: dict
    score: float
    id: Optional[str] = None


class IVectorStore(ABC):
    """
    Interface for vector store operations.

    Following Interface Segregation and Dependency Inversion principles.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the vector store."""

    @abstractmethod
    async def get_document_count(self) -> int:
        """Get number of documents in the collection."""

    @abstractmethod
    async def add_documents(self, documents: List[Document]) -> None:
        """Add documents to the vector store."""

    @abstractmethod
    async def search(self, query_embedding: List[float], top_k: int = 5) -> List[SearchResult]:
        """Search for similar documents."""

    @abstractmethod
    async def delete_by_source(self, source_url: str) -> int:
        """Delete all documents from a specific source."""


def _cosine_similarity(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a)) + 1e-10
    norm_b = math.sqrt(sum(y * y for y in b)) + 1e-10
    return dot / (norm_a * norm_b)


class InMemoryVectorStore(IVectorStore):
    """Process-local vector store using cosine similarity."""

    def __init__(self):
        self._documents: List[Document] = []
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        return None

    async def get_document_count(self) -> int:
        return len(self._documents)

    async def add_documents(self, documents: List[Document]) -> None:
        async with self._lock:
            self._documents.extend(documents)

    async def search(self, query_embedding: List[float], top_k: int = 5) -> List[SearchResult]:
        scored = [
            (doc, _cosine_similarity(query_embedding, doc.embedding))
            for doc in self._documents
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [
            SearchResult(content=doc.text, metadata=dict(doc.metadata), score=score, id=doc.id)
            for doc, score in scored[:top_k]
        ]

    async def delete_by_source(self, source_url: str) -> int:
        async with self._lock:
            before = len(self._documents)
            self._documents = [
                doc for doc in self._documents if doc.metadata.get("source") != source_url
            ]
            return before - len(self._documents)


class MilvusVectorStore(IVectorStore):
    """
    Zilliz Cloud (Managed Milvus) implementation of vector store.

    The pymilvus client is synchronous; calls run in a worker thread.
    """

    def __init__(
        self,
        collection_name: Optional[str] = None,
        uri: Optional[str] = None,
        config: Optional[Settings] = None
    ):
        config = config or default_settings
        self._collection_name = collection_name or config.milvus_collection_name
        self._dimension = config.embedding_dimension
        self._uri = uri or config.zilliz_uri
        self._api_key = config.zilliz_api_key
        self._client: Optional[MilvusClient] = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize Zilliz Cloud client and collection."""
        if self._initialized:
            return

        if not self._uri:
            raise VectorStoreException("ZILLIZ_URI not configured")

        try:
            self._client = MilvusClient(uri=self._uri, token=self._api_key)

            has_collection = await asyncio.to_thread(
                self._client.has_collection, self._collection_name
            )
            if not has_collection:
                await asyncio.to_thread(
                    self._client.create_collection,
                    collection_name=self._collection_name,
                    dimension=self._dimension,
                    id_type="string",
                    max_length=64,
                    metric_type="COSINE"
                )

            self._initialized = True

        except Exception as e:
            raise VectorStoreException(f"Failed to initialize Milvus: {str(e)}") from e

    async def _ensure_client(self) -> MilvusClient:
        if not self._initialized:
            await self.initialize()
        if not self._client:
            raise VectorStoreException("Vector store not initialized")
        return self._client

    async def get_document_count(self) -> int:
        """Get number of documents in the collection."""
        client = await self._ensure_client()
        try:
            stats = await asyncio.to_thread(client.get_collection_stats, self._collection_name)
            return int(stats.get("row_count", 0))
        except Exception as e:
            raise VectorStoreException(f"Failed to count documents: {str(e)}") from e

    async def add_documents(self, documents: List[Document]) -> None:
        """
        Add documents to the vector store.

        Raises:
            VectorStoreException: If add operation fails
        """
        if not documents:
            return
        client = await self._ensure_client()

        data = [
            {
                "id": doc.id,
                "vector": doc.embedding,
                "text": doc.text,
                "source": doc.metadata.get("source", ""),
            }
            for doc in documents
        ]
        try:
            await asyncio.to_thread(client.insert, collection_name=self._collection_name, data=data)
        except Exception as e:
            raise VectorStoreException(f"Failed to add documents: {str(e)}") from e

    async def search(
        self,
        query_embedding: List[float],
        top_k: int = 5
    ) -> List[SearchResult]:
        """
        Search for similar documents.

        Raises:
            VectorStoreException: If search fails
        """
        client = await self._ensure_client()

        try:
            results = await asyncio.to_thread(
                client.search,
                collection_name=self._collection_name,
                data=[query_embedding],
                limit=top_k,
                output_fields=["text", "source"]
            )
        except Exception as e:
            raise VectorStoreException(f"Search failed: {str(e)}") from e

        formatted_results = []
        if results and len(results[0]) > 0:
            for hit in results[0]:
                formatted_results.append(SearchResult(
                    content=hit["entity"]["text"],
                    metadata={"source": hit["entity"].get("source", "")},
                    score=hit["distance"],
                    id=hit.get("id")
                ))
        return formatted_results

    async def delete_by_source(self, source_url: str) -> int:
        """Delete all chunks fetched from a source URL."""
        client = await self._ensure_client()
        escaped = source_url.replace('"', '\\"')
        try:
            result = await asyncio.to_thread(
                client.delete,
                collection_name=self._collection_name,
                filter=f'source == "{escaped}"'
            )
        except Exception as e:
            raise VectorStoreException(f"Delete failed: {str(e)}") from e
        return int(result.get("delete_count", 0)) if isinstance(result, dict) else 0


def create_vector_store(config: Optional[Settings] = None) -> IVectorStore:
    """Build the vector store for the configured backend."""
    config = config or default_settings
    if config.vector_store_backend == "milvus":
        return MilvusVectorStore(config=config)
    return InMemoryVectorStore()
