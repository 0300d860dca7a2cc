# paper_retrieval/infrastructure/embedding_engine.py
# model_name and dimensions stay concrete properties, NOT part of the abstract port

import logging
import numpy as np
from typing import List, Optional
from sentence_transformers import SentenceTransformer

from paper_retrieval.domain.errors import EmbeddingUnavailableError
from paper_retrieval.domain.interfaces import EmbeddingMode, EmbeddingPort


logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "all-MiniLM-L6-v2"

# EmbeddingGemma is trained with asymmetric task prompts.
EMBEDDINGGEMMA_MODEL_NAME = "google/embeddinggemma-300m"
EMBEDDINGGEMMA_DIMENSIONS = 256
EMBEDDINGGEMMA_PREFIXES = {
    EmbeddingMode.QUERY: "task: search result | query: ",
    EmbeddingMode.DOCUMENT: "title: none | text: ",
}


class SentenceTransformerEngine(EmbeddingPort):
    """
    sentence-transformers backed embedding provider.

    - Queries and documents get their own prompt prefix (empty by default).
    - dimensions truncates Matryoshka-trained vectors to their leading
      components and re-normalizes them; None keeps the model's size.
    - Every model failure surfaces as EmbeddingUnavailableError.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL_NAME,
        dimensions: Optional[int] = None,
        query_prefix: str = "",
        document_prefix: str = "",
        batch_size: int = 32,
    ):
        logger.info("Loading embedding model: %s ...", model_name)
        self._model_name = model_name
        self._prefixes = {
            EmbeddingMode.QUERY: query_prefix,
            EmbeddingMode.DOCUMENT: document_prefix,
        }
        self._batch_size = batch_size
        try:
            self._model = SentenceTransformer(model_name)
        except Exception as error:
            raise EmbeddingUnavailableError(
                f"Failed to load embedding model '{model_name}': {error}"
            ) from error

        native = self._model.get_sentence_embedding_dimension()
        if dimensions and native and dimensions > native:
            raise ValueError(f"Model '{model_name}' produces {native} dimensions, cannot expand to {dimensions}.")
        self._dimensions = dimensions or native
        logger.info("Embedding model ready (%s dimensions).", self._dimensions)

    @classmethod
    def embeddinggemma(cls, dimensions: Optional[int] = EMBEDDINGGEMMA_DIMENSIONS) -> "SentenceTransformerEngine":
        return cls(
            model_name=EMBEDDINGGEMMA_MODEL_NAME,
            dimensions=dimensions,
            query_prefix=EMBEDDINGGEMMA_PREFIXES[EmbeddingMode.QUERY],
            document_prefix=EMBEDDINGGEMMA_PREFIXES[EmbeddingMode.DOCUMENT],
        )

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> Optional[int]:
        return self._dimensions

    def embed(self, text: str, mode: EmbeddingMode) -> np.ndarray:
        return self.embed_batch([text], mode)[0]

    def embed_batch(self, texts: List[str], mode: EmbeddingMode) -> List[np.ndarray]:
        if not texts:
            return []
        prefix = self._prefixes[EmbeddingMode(mode)]
        try:
            matrix = self._model.encode(
                [prefix + text for text in texts],
                convert_to_numpy=True,
                show_progress_bar=False,
                batch_size=self._batch_size,
                normalize_embeddings=True,
            )
        except Exception as error:
            raise EmbeddingUnavailableError(f"Embedding failed: {error}") from error

        return list(self._truncate(np.asarray(matrix, dtype=np.float32)))

    def _truncate(self, matrix: np.ndarray) -> np.ndarray:
        if not self._dimensions or matrix.shape[1] == self._dimensions:
            return matrix
        truncated = matrix[:, : self._dimensions]
        norms = np.linalg.norm(truncated, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return truncated / norms
