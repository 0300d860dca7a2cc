# paper_retrieval/application/context.py

import logging
from dataclasses import dataclass, field

from paper_retrieval.application.extraction_gate import ExtractionGate
from paper_retrieval.domain.interfaces import ChunkStorePort, EmbeddingPort


logger = logging.getLogger(__name__)


@dataclass
class RetrievalContext:
    """
    Everything the retrieval and ingestion services share: the embedding
    provider, the chunk store and the in-flight gate.

    Built once by the entry point (main.py, api.py) and handed to each
    service constructor; close() is called at shutdown.
    """
    embedding_engine: EmbeddingPort
    chunk_store: ChunkStorePort
    gate: ExtractionGate = field(default_factory=ExtractionGate)

    def close(self) -> None:
        for resource in (self.embedding_engine, self.chunk_store):
            close = getattr(resource, "close", None)
            if callable(close):
                close()
        if len(self.gate):
            logger.warning("Closing context with %d ingestion(s) still in flight", len(self.gate))
        logger.info("Retrieval context closed")
