# paper_retrieval/infrastructure/memory_store.py

import dataclasses
import logging
import threading
from typing import Dict, Iterator, List, Optional, Tuple
import numpy as np

from paper_retrieval.domain.errors import InvalidInputError
from paper_retrieval.domain.interfaces import ChunkStorePort
from paper_retrieval.domain.models import Chunk, Embedded


logger = logging.getLogger(__name__)


class InMemoryChunkStore(ChunkStorePort):
    """
    Process-local chunk store. Nothing survives a restart.

    The embedding length is fixed by the first vector stored (or by the
    `dimensions` argument); later vectors of another length are rejected.
    """

    def __init__(self, dimensions: Optional[int] = None):
        self._documents: Dict[str, List[Chunk]] = {}
        # chunk_id → (document_id, position in that document's list)
        self._locations: Dict[str, Tuple[str, int]] = {}
        self._dimensions = dimensions
        self._lock = threading.Lock()

    def iter_chunks(self, document_id: str) -> Iterator[Chunk]:
        with self._lock:
            snapshot = list(self._documents.get(document_id, []))
        return iter(snapshot)

    def save_chunks(self, document_id: str, chunks: List[Chunk]) -> None:
        stored = sorted((dataclasses.replace(c) for c in chunks), key=lambda c: c.index)
        with self._lock:
            self._drop(document_id)
            self._documents[document_id] = stored
            for position, chunk in enumerate(stored):
                self._locations[chunk.chunk_id] = (document_id, position)
        logger.info("Stored %d chunks for %s", len(stored), document_id)

    def set_embedding(self, chunk_id: str, vector: np.ndarray) -> None:
        embedding = Embedded(vector)
        with self._lock:
            if chunk_id not in self._locations:
                raise KeyError(f"Unknown chunk '{chunk_id}'.")
            if self._dimensions is None:
                self._dimensions = embedding.dimensions
            elif embedding.dimensions != self._dimensions:
                raise InvalidInputError(
                    f"Embedding for '{chunk_id}' has {embedding.dimensions} dimensions, "
                    f"store expects {self._dimensions}."
                )
            document_id, position = self._locations[chunk_id]
            chunk = self._documents[document_id][position]
            self._documents[document_id][position] = dataclasses.replace(chunk, embedding=embedding)

    def delete_document(self, document_id: str) -> int:
        with self._lock:
            removed = self._drop(document_id)
        logger.info("Deleted %d chunks of %s", removed, document_id)
        return removed

    def get_document_stats(self) -> List[dict]:
        with self._lock:
            documents = {doc: list(chunks) for doc, chunks in self._documents.items()}
        return [
            _stats_entry(document_id, chunks)
            for document_id, chunks in sorted(documents.items())
        ]

    def _drop(self, document_id: str) -> int:
        previous = self._documents.pop(document_id, [])
        for chunk in previous:
            self._locations.pop(chunk.chunk_id, None)
        return len(previous)


def _stats_entry(document_id: str, chunks: List[Chunk]) -> dict:
    total = len(chunks)
    return {
        "document_id":     document_id,
        "total_chunks":    total,
        "embedded_chunks": sum(1 for c in chunks if c.has_embedding),
        "average_length":  round(sum(len(c.content) for c in chunks) / total, 1) if total else 0.0,
    }
