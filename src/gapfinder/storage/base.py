"""Abstract base class for chunk vector stores and factory functions."""

from abc import ABC, abstractmethod
from typing import Any

from ..errors import ConfigurationError
from ..models import ChunkMatch, ChunkRecord


class VectorStoreBase(ABC):
    """Common interface for chunk vector backends.

    All vectors in one store share a fixed width (``dim``); writing or
    querying with any other width is a configuration error.
    """

    dim: int

    @abstractmethod
    def add_chunks(self, chunks: list[ChunkRecord]) -> None:
        """Insert chunk records with their embeddings."""

    @abstractmethod
    def delete_document_chunks(self, document_id: str) -> None:
        """Delete every chunk belonging to a document."""

    @abstractmethod
    def match_chunks(
        self,
        tenant_id: str,
        query_embedding: list[float],
        match_count: int = 8,
        match_threshold: float = 0.7,
    ) -> list[ChunkMatch]:
        """Top chunks of a tenant with cosine similarity >= match_threshold,
        most similar first."""

    @abstractmethod
    def count(self, document_id: str | None = None) -> int:
        """Count chunks, optionally for one document."""

    def check_dim(self, vector: list[float]) -> None:
        if len(vector) != self.dim:
            raise ConfigurationError(
                f"Vector store holds {self.dim}-dim embeddings, got {len(vector)}"
            )


def chunk_id(document_id: str, index: int) -> str:
    return f"{document_id}:{index}"


def get_record_store(config: dict[str, Any]):
    """Factory: relational record store for config['database_url']."""
    from .database import make_engine
    from .records import RecordStore
    return RecordStore(make_engine(config["database_url"]))


def get_vector_store(config: dict[str, Any], records=None) -> VectorStoreBase:
    """Factory: return the right chunk vector store based on config."""
    backend = config.get("storage_backend", "chromadb")
    dim = int(config.get("embedding_dim", 768))

    if backend == "chromadb":
        from .chromadb import ChromaVectorStore
        return ChromaVectorStore(config["chroma_path"], dim=dim)
    elif backend == "sql":
        from .database import make_engine
        from .sql import SqlVectorStore
        engine = records.engine if records is not None else make_engine(config["database_url"])
        return SqlVectorStore(engine, dim=dim)
    else:
        raise ConfigurationError(f"Unknown storage_backend: {backend}")


def get_file_store(config: dict[str, Any]):
    from .files import LocalFileStore
    return LocalFileStore(config["files_path"])
