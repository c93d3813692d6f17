"""Overlapping, sentence-aligned text chunking."""

import re
from typing import Iterator

from ..models import Chunk

CHUNK_SIZE = 1000
CHUNK_OVERLAP = 200
# How far either side of a proposed cut to look for a sentence end.
BOUNDARY_WINDOW = 100

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"[.!?]\s")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to a single space and trim."""
    return _WHITESPACE.sub(" ", text).strip()


class ChunkSequence:
    """Lazy chunks of a text; every iteration starts from the beginning."""

    def __init__(self, text: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.text = normalize_whitespace(text)
        self.chunk_size = chunk_size
        self.overlap = overlap

    def __iter__(self) -> Iterator[Chunk]:
        text = self.text
        if not text:
            return
        if len(text) <= self.chunk_size:
            yield Chunk(content=text, index=0)
            return

        start = 0
        index = 0
        while start < len(text):
            end = start + self.chunk_size
            if end < len(text):
                window_start = max(end - BOUNDARY_WINDOW, start)
                window_end = min(end + BOUNDARY_WINDOW, len(text))
                match = _SENTENCE_END.search(text, window_start, window_end)
                if match:
                    end = match.start() + 1
            else:
                end = len(text)

            content = text[start:end].strip()
            if content:
                yield Chunk(content=content, index=index)
                index += 1

            if end >= len(text):
                break
            start = max(end - self.overlap, start + 1)


def split_text_into_chunks(
    text: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> ChunkSequence:
    """Split text into overlapping windows that prefer sentence boundaries.

    Args:
        text: Raw extracted text; whitespace is normalized first.
        chunk_size: Maximum characters per chunk.
        overlap: Characters shared between consecutive windows.

    Returns:
        A restartable iterable of Chunk objects with contiguous indices.
        Empty or whitespace-only input yields no chunks.
    """
    return ChunkSequence(text, chunk_size=chunk_size, overlap=overlap)


def chunk_text(text: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> list[Chunk]:
    """Eager form of split_text_into_chunks."""
    return list(split_text_into_chunks(text, chunk_size, overlap))
