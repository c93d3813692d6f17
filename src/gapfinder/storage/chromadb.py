"""ChromaDB chunk store: HNSW index in cosine space."""

import json
from pathlib import Path
from typing import Any

import chromadb

from ..models import ChunkMatch, ChunkRecord
from .base import VectorStoreBase, chunk_id

COLLECTION = "document_chunks"


class ChromaVectorStore(VectorStoreBase):
    """ChromaDB-backed persistent chunk store."""

    def __init__(self, chroma_path: str, dim: int = 768, collection_name: str = COLLECTION):
        self.chroma_path = Path(chroma_path)
        self.chroma_path.mkdir(parents=True, exist_ok=True)
        self.client = chromadb.PersistentClient(path=str(self.chroma_path))
        self.dim = dim
        self.collection_name = collection_name

    def get_or_create_collection(self) -> chromadb.Collection:
        return self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add_chunks(self, chunks: list[ChunkRecord]) -> None:
        if not chunks:
            return
        for c in chunks:
            self.check_dim(c.embedding)
        collection = self.get_or_create_collection()
        collection.add(
            ids=[chunk_id(c.document_id, c.index) for c in chunks],
            embeddings=[c.embedding for c in chunks],
            documents=[c.content for c in chunks],
            metadatas=[
                {
                    "document_id": c.document_id,
                    "tenant_id": c.tenant_id,
                    "chunk_index": c.index,
                    # Chroma metadata must be flat scalars
                    "metadata_json": json.dumps(c.metadata),
                }
                for c in chunks
            ],
        )

    def delete_document_chunks(self, document_id: str) -> None:
        collection = self.get_or_create_collection()
        collection.delete(where={"document_id": document_id})

    def match_chunks(
        self,
        tenant_id: str,
        query_embedding: list[float],
        match_count: int = 8,
        match_threshold: float = 0.7,
    ) -> list[ChunkMatch]:
        self.check_dim(query_embedding)
        collection = self.get_or_create_collection()
        available = self.count_for_tenant(tenant_id)
        if available == 0:
            return []

        results = collection.query(
            query_embeddings=[query_embedding],
            n_results=min(match_count, available),
            where={"tenant_id": tenant_id},
            include=["documents", "metadatas", "distances"],
        )

        matches = []
        if results and results["ids"] and results["ids"][0]:
            for i, id_ in enumerate(results["ids"][0]):
                # cosine distance -> similarity
                similarity = 1.0 - float(results["distances"][0][i])
                if similarity < match_threshold:
                    continue
                meta = results["metadatas"][0][i] or {}
                matches.append(ChunkMatch(
                    id=id_,
                    document_id=meta.get("document_id", ""),
                    index=int(meta.get("chunk_index", 0)),
                    content=results["documents"][0][i] or "",
                    similarity=similarity,
                    metadata=_load_metadata(meta),
                ))
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches

    def count_for_tenant(self, tenant_id: str) -> int:
        collection = self.get_or_create_collection()
        return len(collection.get(where={"tenant_id": tenant_id}, include=[])["ids"])

    def count(self, document_id: str | None = None) -> int:
        collection = self.get_or_create_collection()
        if document_id is None:
            return collection.count()
        return len(collection.get(where={"document_id": document_id}, include=[])["ids"])


def _load_metadata(meta: dict[str, Any]) -> dict[str, Any]:
    try:
        return json.loads(meta.get("metadata_json") or "{}")
    except (json.JSONDecodeError, TypeError):
        return {}
