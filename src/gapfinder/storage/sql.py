"""SQL chunk store.

Uses brute-force cosine similarity over the tenant's chunks (no ANN index),
which is exact and fast enough for a few tens of thousands of chunks.
"""

import numpy as np
from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..models import ChunkMatch, ChunkRecord
from .base import VectorStoreBase, chunk_id
from .database import ChunkRow, init_db


class SqlVectorStore(VectorStoreBase):
    """Chunk vectors stored as JSON columns next to the relational records."""

    def __init__(self, engine: Engine, dim: int = 768):
        self.engine = engine
        self.dim = dim
        self._session = sessionmaker(engine, expire_on_commit=False)
        init_db(engine)

    def add_chunks(self, chunks: list[ChunkRecord]) -> None:
        if not chunks:
            return
        for c in chunks:
            self.check_dim(c.embedding)
        with self._session.begin() as s:
            s.add_all([
                ChunkRow(
                    id=chunk_id(c.document_id, c.index),
                    document_id=c.document_id,
                    tenant_id=c.tenant_id,
                    chunk_index=c.index,
                    content=c.content,
                    embedding=list(c.embedding),
                    chunk_metadata=c.metadata,
                )
                for c in chunks
            ])

    def delete_document_chunks(self, document_id: str) -> None:
        with self._session.begin() as s:
            s.execute(delete(ChunkRow).where(ChunkRow.document_id == document_id))

    def match_chunks(
        self,
        tenant_id: str,
        query_embedding: list[float],
        match_count: int = 8,
        match_threshold: float = 0.7,
    ) -> list[ChunkMatch]:
        self.check_dim(query_embedding)
        with self._session() as s:
            rows = s.scalars(select(ChunkRow).where(ChunkRow.tenant_id == tenant_id)).all()
        if not rows:
            return []

        matrix = np.array([r.embedding for r in rows], dtype=float)
        query = np.asarray(query_embedding, dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        sims = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        # stable sort keeps insertion order among equal scores
        order = np.argsort(-sims, kind="stable")
        matches = []
        for i in order[:match_count]:
            if sims[i] < match_threshold:
                break
            r = rows[i]
            matches.append(ChunkMatch(
                id=r.id,
                document_id=r.document_id,
                index=r.chunk_index,
                content=r.content,
                similarity=float(sims[i]),
                metadata=dict(r.chunk_metadata or {}),
            ))
        return matches

    def count(self, document_id: str | None = None) -> int:
        with self._session() as s:
            stmt = select(func.count()).select_from(ChunkRow)
            if document_id is not None:
                stmt = stmt.where(ChunkRow.document_id == document_id)
            return s.scalar(stmt) or 0

    def list_document_chunks(self, document_id: str) -> list[ChunkRow]:
        with self._session() as s:
            return list(s.scalars(
                select(ChunkRow).where(ChunkRow.document_id == document_id).order_by(ChunkRow.chunk_index)
            ).all())
