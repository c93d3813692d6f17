"""Text embedding using sentence-transformers."""

import logging
from typing import Any

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

EMBEDDING_BATCH_SIZE = 25
# e5 models expect these prefixes on queries and indexed passages
QUERY_PREFIX = "query: "
PASSAGE_PREFIX = "passage: "


class Embedder:
    """Embeds text into fixed-width vectors with a sentence-transformers model."""

    def __init__(self, config: dict[str, Any], model: Any = None):
        self.model_name = config.get("embedding_model", "intfloat/e5-base-v2")
        self.dim = int(config.get("embedding_dim", 768))
        self.batch_size = int(config.get("embedding_batch_size", EMBEDDING_BATCH_SIZE))
        self._model = None
        if model is not None:
            self._set_model(model)

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._set_model(SentenceTransformer(self.model_name))
        return self._model

    def _set_model(self, model: Any) -> None:
        model_dim = model.get_sentence_embedding_dimension()
        if model_dim is not None and model_dim != self.dim:
            raise ConfigurationError(
                f"Embedding model {self.model_name} produces {model_dim}-dim vectors "
                f"but the store expects {self.dim}"
            )
        self._model = model

    def embed(self, text: str, prefix: str = QUERY_PREFIX) -> list[float]:
        """Embed a single query or question."""
        return self._encode([f"{prefix}{text}"])[0]

    def embed_batch(self, texts: list[str], prefix: str = PASSAGE_PREFIX) -> list[list[float]]:
        """Embed passages in order, in sequential batches of batch_size."""
        vectors: list[list[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = [f"{prefix}{t}" for t in texts[i:i + self.batch_size]]
            vectors.extend(self._encode(batch))
        return vectors

    def _encode(self, texts: list[str]) -> list[list[float]]:
        vectors = [list(map(float, v)) for v in self.model.encode(texts)]
        if len(vectors) != len(texts):
            raise RuntimeError(f"Embedding model returned {len(vectors)} vectors for {len(texts)} inputs")
        for v in vectors:
            if len(v) != self.dim:
                raise ConfigurationError(f"Got a {len(v)}-dim embedding, expected {self.dim}")
        return vectors
