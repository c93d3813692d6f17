"""Tenant-scoped semantic search over document chunks."""

import logging
import re
from typing import Any

from ..embeddings.embedder import Embedder
from ..models import RetrievedChunk, Source
from ..storage.base import VectorStoreBase
from ..storage.records import RecordStore

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 200
_TRAILING_WORD = re.compile(r"\s+\S*$")


class Retriever:
    """Embeds a query, finds the nearest chunks of one tenant and attaches
    the metadata of their owning documents."""

    def __init__(
        self,
        embedder: Embedder,
        vectors: VectorStoreBase,
        records: RecordStore,
        config: dict[str, Any] | None = None,
    ):
        retrieval = (config or {}).get("retrieval", {})
        self.embedder = embedder
        self.vectors = vectors
        self.records = records
        self.match_count = retrieval.get("match_count", 8)
        self.match_threshold = retrieval.get("match_threshold", 0.7)
        self.answer_threshold = retrieval.get("answer_threshold", 0.65)
        self.max_sources = retrieval.get("max_sources", 3)

    def search(
        self,
        query: str,
        tenant_id: str,
        match_count: int | None = None,
        match_threshold: float | None = None,
    ) -> list[RetrievedChunk]:
        """Return up to match_count chunks of the tenant, most similar first.

        Only chunks with cosine similarity >= match_threshold are returned;
        no hits is an empty list.
        """
        match_count = self.match_count if match_count is None else match_count
        match_threshold = self.match_threshold if match_threshold is None else match_threshold

        query_embedding = self.embedder.embed(query)
        matches = self.vectors.match_chunks(
            tenant_id, query_embedding, match_count=match_count, match_threshold=match_threshold
        )
        if not matches:
            logger.debug("No chunks above %.2f for tenant %s", match_threshold, tenant_id)
            return []

        docs = self.records.get_documents(list(dict.fromkeys(m.document_id for m in matches)))
        results = []
        for m in matches:
            doc = docs.get(m.document_id)
            chunk = RetrievedChunk(
                id=m.id,
                document_id=m.document_id,
                index=m.index,
                content=m.content,
                similarity=m.similarity,
                metadata=m.metadata,
            )
            if doc is not None:
                chunk.document_title = doc.title or chunk.document_title
                chunk.document_file_path = doc.pdf_path or doc.file_path
                chunk.document_file_type = doc.file_type
                chunk.document_tags = list(doc.tags or [])
                chunk.document_category = doc.category
                chunk.document_folder = doc.folder
            results.append(chunk)

        logger.info(
            "%d chunks for tenant %s (top %.3f)", len(results), tenant_id, results[0].similarity
        )
        return results

    def sources_for(self, chunks: list[RetrievedChunk]) -> list[Source]:
        return select_sources(chunks, self.answer_threshold, self.max_sources)


def make_excerpt(content: str, max_chars: int = EXCERPT_CHARS) -> str:
    """Shorten a chunk for citation display.

    Cuts at the last sentence end inside the first max_chars when it is not
    too early, otherwise at a word boundary with an ellipsis.
    """
    if len(content) <= max_chars:
        return content
    truncated = content[:max_chars]
    last_period = truncated.rfind(". ")
    if last_period > 80:
        return truncated[:last_period + 1]
    return _TRAILING_WORD.sub("", truncated) + "…"


def select_sources(
    chunks: list[RetrievedChunk],
    answer_threshold: float = 0.65,
    max_sources: int = 3,
) -> list[Source]:
    """Pick citation sources: best chunk per document, at or above
    answer_threshold, most similar first, at most max_sources.

    An empty result means the question counts as unanswered.
    """
    best: dict[str, RetrievedChunk] = {}
    for chunk in chunks:
        current = best.get(chunk.document_id)
        if current is None or chunk.similarity > current.similarity:
            best[chunk.document_id] = chunk

    kept = sorted(
        (c for c in best.values() if c.similarity >= answer_threshold),
        key=lambda c: c.similarity,
        reverse=True,
    )[:max_sources]

    return [
        Source(
            document_id=c.document_id,
            title=c.document_title or "Unknown",
            excerpt=make_excerpt(c.content),
            similarity=c.similarity,
            chunk_index=c.index,
            source_number=i,
            file_path=c.document_file_path,
            file_type=c.document_file_type,
        )
        for i, c in enumerate(kept, 1)
    ]
