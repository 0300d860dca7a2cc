# paper_retrieval/config.py

"""Centralized configuration for the paper retrieval engine."""

import os

from paper_retrieval.domain.models import HybridConfig


EMBEDDING_PRESETS = {"", "embeddinggemma"}


class Config:
    """
    Retrieval configuration with environment variable overrides.

    Values are read once at import time; tests reload the module after
    patching the environment.
    """

    # ========================================================================
    # Segmentation
    # ========================================================================
    MAX_CHUNK_CHARS: int = int(os.getenv("MAX_CHUNK_CHARS", "1000"))
    PRESERVE_TABLES: bool = os.getenv("PRESERVE_TABLES", "false").lower() in ("1", "true", "yes")

    # ========================================================================
    # Embeddings
    # ========================================================================
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "all-MiniLM-L6-v2")
    # "embeddinggemma" selects the EmbeddingGemma model with its task prefixes;
    # EMBEDDING_MODEL and the prefix settings are then ignored, and
    # EMBEDDING_DIMENSIONS=0 means the preset's truncated size.
    EMBEDDING_PRESET: str = os.getenv("EMBEDDING_PRESET", "").lower()
    EMBEDDING_DIMENSIONS: int = int(os.getenv("EMBEDDING_DIMENSIONS", "0"))  # 0 = model native
    EMBEDDING_QUERY_PREFIX: str = os.getenv("EMBEDDING_QUERY_PREFIX", "")
    EMBEDDING_DOCUMENT_PREFIX: str = os.getenv("EMBEDDING_DOCUMENT_PREFIX", "")
    EMBEDDING_BATCH_SIZE: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "10"))
    PROGRESS_MIN_INTERVAL: float = float(os.getenv("PROGRESS_MIN_INTERVAL", "0.5"))  # seconds

    # ========================================================================
    # Hybrid ranking
    # ========================================================================
    HYBRID_ENABLED: bool = os.getenv("HYBRID_ENABLED", "true").lower() in ("1", "true", "yes")
    HYBRID_ALPHA: float = float(os.getenv("HYBRID_ALPHA", "0.7"))
    BM25_K1: float = float(os.getenv("BM25_K1", "1.5"))
    BM25_B: float = float(os.getenv("BM25_B", "0.75"))
    DEFAULT_TOP_K: int = int(os.getenv("DEFAULT_TOP_K", "5"))

    # ========================================================================
    # Storage
    # ========================================================================
    DATA_DIRECTORY: str = os.getenv("DATA_DIRECTORY", "data")
    CHROMA_PERSIST_DIRECTORY: str = os.getenv("CHROMA_PERSIST_DIRECTORY", "./data/chroma_db")
    CHROMA_COLLECTION: str = os.getenv("CHROMA_COLLECTION", "paper_chunks")

    # ========================================================================
    # Logging
    # ========================================================================
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def hybrid_config(cls) -> HybridConfig:
        return HybridConfig(
            alpha=cls.HYBRID_ALPHA,
            k1=cls.BM25_K1,
            b=cls.BM25_B,
            enabled=cls.HYBRID_ENABLED,
        )

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        if cls.MAX_CHUNK_CHARS <= 0:
            errors.append(f"MAX_CHUNK_CHARS must be > 0, got {cls.MAX_CHUNK_CHARS}")
        if cls.EMBEDDING_PRESET not in EMBEDDING_PRESETS:
            errors.append(f"EMBEDDING_PRESET must be one of {sorted(EMBEDDING_PRESETS)}, got {cls.EMBEDDING_PRESET!r}")
        if cls.EMBEDDING_DIMENSIONS < 0:
            errors.append(f"EMBEDDING_DIMENSIONS must be >= 0, got {cls.EMBEDDING_DIMENSIONS}")
        if cls.EMBEDDING_BATCH_SIZE <= 0:
            errors.append(f"EMBEDDING_BATCH_SIZE must be > 0, got {cls.EMBEDDING_BATCH_SIZE}")
        if cls.PROGRESS_MIN_INTERVAL < 0:
            errors.append(f"PROGRESS_MIN_INTERVAL must be >= 0, got {cls.PROGRESS_MIN_INTERVAL}")
        if not 0.0 <= cls.HYBRID_ALPHA <= 1.0:
            errors.append(f"HYBRID_ALPHA must be within [0, 1], got {cls.HYBRID_ALPHA}")
        if cls.BM25_K1 <= 0:
            errors.append(f"BM25_K1 must be > 0, got {cls.BM25_K1}")
        if not 0.0 <= cls.BM25_B <= 1.0:
            errors.append(f"BM25_B must be within [0, 1], got {cls.BM25_B}")
        if cls.DEFAULT_TOP_K <= 0:
            errors.append(f"DEFAULT_TOP_K must be > 0, got {cls.DEFAULT_TOP_K}")
        if cls.LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"LOG_LEVEL must be a standard logging level, got {cls.LOG_LEVEL}")

        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )

        return True
