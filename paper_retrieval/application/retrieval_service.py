# paper_retrieval/application/retrieval_service.py

import logging
from typing import Dict, List, Optional

import numpy as np

from paper_retrieval.application.context import RetrievalContext
from paper_retrieval.application.lexical_scorer import score_bm25, tokenize
from paper_retrieval.application.score_fuser import fuse, rank_lexical_only
from paper_retrieval.application.segmenter import TextSegmenter
from paper_retrieval.application.similarity import rank_by_similarity, similarity_scores
from paper_retrieval.domain.errors import EmbeddingUnavailableError, InvalidInputError
from paper_retrieval.domain.interfaces import EmbeddingMode
from paper_retrieval.domain.models import (
    DEFAULT_HYBRID_CONFIG,
    Chunk,
    Embedded,
    HybridConfig,
    RankedResult,
    Section,
    Unembedded,
)


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
TOPIC_LIMIT = 3


class RetrievalService:
    """
    Core use case: rank one document's chunks against a natural language query.

    Ranking tiers, best first:
        1. hybrid:  cosine similarity fused with BM25 over embedded chunks
        2. lexical: BM25 over every chunk, used when no chunk is embedded
                    yet or the query cannot be embedded
    A failing BM25 pass inside the hybrid tier leaves semantic-only ranking.
    Scorer failures never propagate; only caller mistakes (bad limit) raise.

    Also owns segmentation of incoming documents, so the ingestion pipeline
    and the query side agree on chunk layout.
    """

    def __init__(self, context: RetrievalContext, segmenter: Optional[TextSegmenter] = None):
        self._embedding_engine = context.embedding_engine
        self._chunk_store = context.chunk_store
        self._segmenter = segmenter or TextSegmenter()

    # ── Query side ───────────────────────────────────────────────────────────

    def retrieve(
        self,
        document_id: str,
        query: str,
        limit: int = DEFAULT_LIMIT,
        config: HybridConfig = DEFAULT_HYBRID_CONFIG,
    ) -> List[str]:
        """Ordered chunk ids, best match first."""
        return [result.chunk_id for result in self.search(document_id, query, limit, config)]

    def retrieve_by_topics(
        self,
        document_id: str,
        topics: List[str],
        limit: int = TOPIC_LIMIT,
        config: HybridConfig = DEFAULT_HYBRID_CONFIG,
    ) -> List[str]:
        return [result.chunk_id for result in self.search_by_topics(document_id, topics, limit, config)]

    def search_by_topics(
        self,
        document_id: str,
        topics: List[str],
        limit: int = TOPIC_LIMIT,
        config: HybridConfig = DEFAULT_HYBRID_CONFIG,
    ) -> List[RankedResult]:
        """Topic keywords are searched together as a single query."""
        return self.search(document_id, topics_query(topics), limit, config)

    def search(
        self,
        document_id: str,
        query: str,
        limit: int = DEFAULT_LIMIT,
        config: HybridConfig = DEFAULT_HYBRID_CONFIG,
    ) -> List[RankedResult]:
        if limit <= 0:
            raise InvalidInputError(f"limit must be positive, got {limit}.")

        query = (query or "").strip()
        if not query:
            return []

        chunks = list(self._chunk_store.iter_chunks(document_id))
        if not chunks:
            logger.info("No chunks stored for %s", document_id)
            return []

        embedded_chunks: List[Chunk] = []
        vectors: List[np.ndarray] = []
        for chunk in chunks:
            match chunk.embedding:
                case Embedded(vector=vector):
                    embedded_chunks.append(chunk)
                    vectors.append(vector)
                case Unembedded():
                    pass

        if not embedded_chunks:
            logger.info("No embeddings for %s yet, ranking by BM25 only", document_id)
            return self._rank_lexical(chunks, query, limit, config)

        ids = [c.chunk_id for c in embedded_chunks]
        query_vector = self._embed_query(query)
        semantic = None if query_vector is None else self._semantic_scores(query_vector, ids, vectors)
        if semantic is None:
            return self._rank_lexical(chunks, query, limit, config)

        if not config.enabled:
            return rank_by_similarity(query_vector, vectors, ids, top_k=limit)

        try:
            lexical = self._lexical_scores(embedded_chunks, query, config)
        except Exception as error:
            logger.warning("BM25 scoring failed, ranking by similarity only: %s", error)
            return rank_by_similarity(query_vector, vectors, ids, top_k=limit)

        results = fuse(lexical, semantic, config, limit)
        logger.debug(
            "Hybrid search over %d/%d embedded chunks of %s returned %d results",
            len(embedded_chunks), len(chunks), document_id, len(results),
        )
        return results

    # ── Ingestion side ───────────────────────────────────────────────────────

    def segment_document(
        self,
        document_id: str,
        sections: List[Section],
        max_chunk_chars: int,
    ) -> List[Chunk]:
        """Segment every section and replace the document's stored chunks."""
        chunks = self._segmenter.segment_sections(sections, document_id, max_chunk_chars)
        self._chunk_store.save_chunks(document_id, chunks)
        logger.info(
            "Segmented %s: %d sections → %d chunks",
            document_id, len(sections), len(chunks),
        )
        return chunks

    # ─── Private: scoring tiers ──────────────────────────────────────────────

    def _embed_query(self, query: str) -> Optional[np.ndarray]:
        try:
            return self._embedding_engine.embed(query, EmbeddingMode.QUERY)
        except EmbeddingUnavailableError as error:
            logger.warning("Query embedding unavailable, falling back to BM25: %s", error)
        except Exception as error:
            logger.warning("Query embedding failed, falling back to BM25: %s", error)
        return None

    @staticmethod
    def _semantic_scores(
        query_vector: np.ndarray,
        ids: List[str],
        vectors: List[np.ndarray],
    ) -> Optional[Dict[str, float]]:
        """Cosine score per embedded chunk in sequence order, or None when scoring fails."""
        try:
            scores = similarity_scores(query_vector, vectors)
        except Exception as error:
            logger.warning("Semantic scoring failed, falling back to BM25: %s", error)
            return None
        return dict(zip(ids, scores.tolist()))

    @staticmethod
    def _lexical_scores(chunks: List[Chunk], query: str, config: HybridConfig) -> Dict[str, float]:
        scores = score_bm25([c.content for c in chunks], tokenize(query), k1=config.k1, b=config.b)
        return dict(zip((c.chunk_id for c in chunks), scores))

    def _rank_lexical(
        self,
        chunks: List[Chunk],
        query: str,
        limit: int,
        config: HybridConfig,
    ) -> List[RankedResult]:
        try:
            lexical = self._lexical_scores(chunks, query, config)
        except Exception as error:
            logger.error("BM25 scoring failed, no ranking available: %s", error, exc_info=True)
            return []
        return rank_lexical_only(lexical, limit)


def topics_query(topics: List[str]) -> str:
    return " ".join(topic.strip() for topic in topics if topic and topic.strip())
