# paper_retrieval/infrastructure/bootstrap.py
# Shared wiring for the entry points (main.py, api.py).

import logging

from paper_retrieval.application.context import RetrievalContext
from paper_retrieval.config import Config
from paper_retrieval.infrastructure.chroma_store import ChromaChunkStore
from paper_retrieval.infrastructure.embedding_engine import SentenceTransformerEngine


logger = logging.getLogger(__name__)


def configure_logging(level: str = Config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_embedding_engine(config=Config) -> SentenceTransformerEngine:
    if config.EMBEDDING_PRESET == "embeddinggemma":
        logger.info("Using the EmbeddingGemma preset")
        if config.EMBEDDING_DIMENSIONS:
            return SentenceTransformerEngine.embeddinggemma(dimensions=config.EMBEDDING_DIMENSIONS)
        return SentenceTransformerEngine.embeddinggemma()

    return SentenceTransformerEngine(
        model_name=config.EMBEDDING_MODEL,
        dimensions=config.EMBEDDING_DIMENSIONS or None,
        query_prefix=config.EMBEDDING_QUERY_PREFIX,
        document_prefix=config.EMBEDDING_DOCUMENT_PREFIX,
    )


def create_context(config=Config) -> RetrievalContext:
    """
    Load the embedding model, then open the persistent store sized to it.
    Raises RuntimeError if the store cannot be opened.
    """
    config.validate()
    embedding_engine = create_embedding_engine(config)
    chunk_store = ChromaChunkStore(
        persist_directory=config.CHROMA_PERSIST_DIRECTORY,
        dimensions=embedding_engine.dimensions,
        collection_name=config.CHROMA_COLLECTION,
    )
    return RetrievalContext(embedding_engine=embedding_engine, chunk_store=chunk_store)
