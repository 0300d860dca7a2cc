# paper_retrieval/application/embedding_indexer.py

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from paper_retrieval.application.context import RetrievalContext
from paper_retrieval.domain.errors import EmbeddingUnavailableError, InvalidInputError
from paper_retrieval.domain.interfaces import EmbeddingMode
from paper_retrieval.domain.models import Chunk


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_MIN_INTERVAL = 0.5
MILESTONES = (0.25, 0.5, 0.75)


@dataclass
class EmbeddingProgress:
    document_id: str
    processed: int
    total: int
    embedded: int
    failed: int

    @property
    def percent(self) -> float:
        return 100.0 * self.processed / self.total if self.total else 100.0


@dataclass
class EmbeddingReport:
    document_id: str
    total: int
    embedded: int
    failed: int

    @property
    def complete(self) -> bool:
        return self.failed == 0


ProgressCallback = Callable[[EmbeddingProgress], None]


def is_milestone(previous: int, current: int, total: int) -> bool:
    """
    True when moving from `previous` to `current` processed items reaches
    25/50/75% of `total` (floored to whole items) or completes the run.
    """
    if total <= 0:
        return False
    if current >= total:
        return True
    for fraction in MILESTONES:
        mark = math.floor(total * fraction)
        if mark > 0 and previous < mark <= current:
            return True
    return False


def should_emit_progress(
    last_emit_at: Optional[float],
    now: float,
    milestone: bool,
    min_interval: float = DEFAULT_MIN_INTERVAL,
) -> bool:
    """Milestones always report; otherwise at most one report per min_interval seconds."""
    if milestone or last_emit_at is None:
        return True
    return now - last_emit_at >= min_interval


class EmbeddingIndexer:
    """
    Embeds a document's pending chunks in fixed-size batches.

    Control is yielded to the event loop between batches. A batch the provider
    cannot embed is logged and left unembedded; the run carries on, and those
    chunks stay searchable through BM25.
    """

    def __init__(
        self,
        context: RetrievalContext,
        batch_size: int = DEFAULT_BATCH_SIZE,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if batch_size <= 0:
            raise InvalidInputError(f"batch_size must be positive, got {batch_size}.")
        self._embedding_engine = context.embedding_engine
        self._chunk_store = context.chunk_store
        self._batch_size = batch_size
        self._min_interval = min_interval
        self._clock = clock

    async def embed_document(
        self,
        document_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> EmbeddingReport:
        pending = [c for c in self._chunk_store.iter_chunks(document_id) if not c.has_embedding]
        total = len(pending)
        embedded = failed = processed = 0
        last_emit_at: Optional[float] = None

        if not pending:
            logger.info("All chunks of %s already embedded", document_id)
            return EmbeddingReport(document_id, total=0, embedded=0, failed=0)

        logger.info("Embedding %d chunks of %s in batches of %d", total, document_id, self._batch_size)

        for start in range(0, total, self._batch_size):
            batch = pending[start : start + self._batch_size]
            stored = self._embed_batch(batch)
            embedded += stored
            failed += len(batch) - stored

            previous, processed = processed, processed + len(batch)
            now = self._clock()
            if on_progress and should_emit_progress(
                last_emit_at, now, is_milestone(previous, processed, total), self._min_interval
            ):
                on_progress(EmbeddingProgress(document_id, processed, total, embedded, failed))
                last_emit_at = now

            await asyncio.sleep(0)

        logger.info(
            "Embedded %d/%d chunks of %s (%d failed)",
            embedded, total, document_id, failed,
        )
        return EmbeddingReport(document_id, total=total, embedded=embedded, failed=failed)

    def _embed_batch(self, batch: List[Chunk]) -> int:
        """Embed and store one batch; returns how many chunks were stored."""
        try:
            vectors = self._embedding_engine.embed_batch(
                [c.content for c in batch], EmbeddingMode.DOCUMENT
            )
        except EmbeddingUnavailableError as error:
            logger.warning(
                "Embedding unavailable for %s..%s: %s",
                batch[0].chunk_id, batch[-1].chunk_id, error,
            )
            return 0

        if len(vectors) != len(batch):
            logger.warning(
                "Provider returned %d vectors for %d chunks, skipping batch",
                len(vectors), len(batch),
            )
            return 0

        stored = 0
        for chunk, vector in zip(batch, vectors):
            try:
                self._chunk_store.set_embedding(chunk.chunk_id, vector)
                stored += 1
            except InvalidInputError as error:
                logger.warning("Rejected embedding for %s: %s", chunk.chunk_id, error)
        return stored
