# paper_retrieval/application/ingestion_pipeline.py

import logging
from dataclasses import dataclass
from typing import List, Optional

from paper_retrieval.application.context import RetrievalContext
from paper_retrieval.application.embedding_indexer import (
    EmbeddingIndexer,
    EmbeddingReport,
    ProgressCallback,
)
from paper_retrieval.application.retrieval_service import RetrievalService
from paper_retrieval.application.segmenter import segmentation_stats
from paper_retrieval.domain.models import Section, SegmentationStats


logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    document_id: str
    stats: SegmentationStats
    embedding: EmbeddingReport


class IngestionPipeline:
    """
    Gate → segment → persist → embed, for one document at a time per key.

    The key is usually the document's source URL. While a key is in flight a
    second ingest() for it returns None without doing any work.
    """

    def __init__(
        self,
        context: RetrievalContext,
        retrieval_service: RetrievalService,
        indexer: EmbeddingIndexer,
    ):
        self._gate = context.gate
        self._retrieval_service = retrieval_service
        self._indexer = indexer

    async def ingest(
        self,
        key: str,
        document_id: str,
        sections: List[Section],
        max_chunk_chars: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[IngestionResult]:
        with self._gate.hold(key) as entered:
            if not entered:
                return None

            chunks = self._retrieval_service.segment_document(document_id, sections, max_chunk_chars)
            stats = segmentation_stats(chunks)
            logger.info(
                "%s: %d chunks, average %.0f chars (min %d, max %d)",
                document_id, stats.total_chunks, stats.average_chunk_size,
                stats.min_chunk_size, stats.max_chunk_size,
            )

            report = await self._indexer.embed_document(document_id, on_progress)
            return IngestionResult(document_id=document_id, stats=stats, embedding=report)
