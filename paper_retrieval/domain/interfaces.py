# paper_retrieval/domain/interfaces.py

from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterator, List
import numpy as np

from .models import Chunk


class EmbeddingMode(str, Enum):
    """Queries and documents may be encoded with different prompts."""
    QUERY = "query"
    DOCUMENT = "document"


class EmbeddingPort(ABC):
    """
    Port for any embedding engine.
    Implementations raise EmbeddingUnavailableError when no vector can be made.
    """

    @abstractmethod
    def embed(self, text: str, mode: EmbeddingMode) -> np.ndarray: ...

    @abstractmethod
    def embed_batch(self, texts: List[str], mode: EmbeddingMode) -> List[np.ndarray]: ...


class ChunkStorePort(ABC):

    @abstractmethod
    def iter_chunks(self, document_id: str) -> Iterator[Chunk]:
        """
        Yield a document's chunks in ascending sequence index.
        Each call starts a fresh pass; an unknown document yields nothing.
        """
        ...

    def get_chunks(self, document_id: str) -> List[Chunk]:
        return list(self.iter_chunks(document_id))

    @abstractmethod
    def save_chunks(self, document_id: str, chunks: List[Chunk]) -> None:
        """Replace every stored chunk of the document with the given set."""
        ...

    @abstractmethod
    def set_embedding(self, chunk_id: str, vector: np.ndarray) -> None: ...

    @abstractmethod
    def delete_document(self, document_id: str) -> int: ...

    @abstractmethod
    def get_document_stats(self) -> List[dict]:
        """
        Return one entry per stored document:
        { document_id, total_chunks, embedded_chunks, average_length }.
        """
        ...
