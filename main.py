# main.py

import asyncio
import logging
import sys

from paper_retrieval.application.embedding_indexer import EmbeddingIndexer
from paper_retrieval.application.ingestion_pipeline import IngestionPipeline
from paper_retrieval.application.retrieval_service import RetrievalService
from paper_retrieval.application.segmenter import TextSegmenter
from paper_retrieval.config import Config
from paper_retrieval.infrastructure.bootstrap import configure_logging, create_context
from paper_retrieval.infrastructure.section_loader import SectionLoader
from paper_retrieval.interface.cli import (
    display_welcome_banner,
    display_progress,
    display_ingestion_summary,
    display_documents,
    prompt_for_document,
    prompt_for_query,
    display_results,
    display_error,
    ask_continue,
)


logger = logging.getLogger("main")


def main() -> None:
    configure_logging(Config.LOG_LEVEL)
    display_welcome_banner()
    reindex = "--reindex" in sys.argv

    # ── 1. Initialize infrastructure ─────────────────────────────────────────
    try:
        context = create_context(Config)
    except (RuntimeError, ValueError) as error:
        display_error(str(error))
        sys.exit(1)

    try:
        retrieval_service = RetrievalService(context, TextSegmenter(preserve_tables=Config.PRESERVE_TABLES))
        indexer = EmbeddingIndexer(
            context,
            batch_size=Config.EMBEDDING_BATCH_SIZE,
            min_interval=Config.PROGRESS_MIN_INTERVAL,
        )
        pipeline = IngestionPipeline(context, retrieval_service, indexer)

        # ── 2. Ingest the data directory ─────────────────────────────────────
        try:
            documents = SectionLoader().load_directory(Config.DATA_DIRECTORY)
        except FileNotFoundError as error:
            display_error(str(error))
            sys.exit(1)

        if not documents:
            display_error(f"No supported documents found in '{Config.DATA_DIRECTORY}/'.")
            sys.exit(1)

        stored = {entry["document_id"] for entry in context.chunk_store.get_document_stats()}
        asyncio.run(_ingest_all(pipeline, indexer, documents, stored, reindex))

        sources = {d.document_id: d.source for d in documents}
        stats = [
            entry for entry in context.chunk_store.get_document_stats()
            if entry["document_id"] in sources
        ]
        if not stats:
            display_error("No searchable chunks were produced.")
            sys.exit(1)
        display_documents(stats, sources)

        # ── 3. Interactive search loop ───────────────────────────────────────
        hybrid_config = Config.hybrid_config()
        while True:
            document_id = stats[prompt_for_document(len(stats))]["document_id"]
            query = prompt_for_query()
            results = retrieval_service.search(document_id, query, Config.DEFAULT_TOP_K, hybrid_config)
            chunks = {c.chunk_id: c for c in context.chunk_store.iter_chunks(document_id)}
            display_results(query, results, chunks)

            if not ask_continue():
                break
    finally:
        context.close()


async def _ingest_all(pipeline, indexer, documents, stored, reindex) -> None:
    for document in documents:
        if document.document_id in stored and not reindex:
            # Already segmented on a previous run; only finish pending embeddings.
            report = await indexer.embed_document(document.document_id, display_progress)
            logger.info("%s up to date (%d chunks newly embedded)", document.source, report.embedded)
            continue

        result = await pipeline.ingest(
            key=document.source,
            document_id=document.document_id,
            sections=document.sections,
            max_chunk_chars=Config.MAX_CHUNK_CHARS,
            on_progress=display_progress,
        )
        if result is None:
            logger.warning("Skipped %s: ingestion already in progress", document.source)
        else:
            display_ingestion_summary(document.source, result)


if __name__ == "__main__":
    main()
