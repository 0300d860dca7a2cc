from contextlib import asynccontextmanager
from dataclasses import replace
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import logging
import uvicorn

from paper_retrieval.application.context import RetrievalContext
from paper_retrieval.application.embedding_indexer import EmbeddingIndexer
from paper_retrieval.application.ingestion_pipeline import IngestionPipeline
from paper_retrieval.application.retrieval_service import TOPIC_LIMIT, RetrievalService, topics_query
from paper_retrieval.application.segmenter import TextSegmenter
from paper_retrieval.config import Config
from paper_retrieval.domain.errors import InvalidInputError
from paper_retrieval.domain.models import Chunk, RankedResult, Section, SourceAnchors
from paper_retrieval.infrastructure.bootstrap import configure_logging, create_context


logger = logging.getLogger("api")


# ── Dependencies ─────────────────────────────────────────────────────────────
@lru_cache()
def get_context() -> RetrievalContext:
    """Process-wide context, built on first use. Override via app.dependency_overrides in tests."""
    return create_context(Config)


def get_retrieval_service(context: RetrievalContext = Depends(get_context)) -> RetrievalService:
    return RetrievalService(context, TextSegmenter(preserve_tables=Config.PRESERVE_TABLES))


def get_pipeline(
    context: RetrievalContext = Depends(get_context),
    service: RetrievalService = Depends(get_retrieval_service),
) -> IngestionPipeline:
    indexer = EmbeddingIndexer(
        context,
        batch_size=Config.EMBEDDING_BATCH_SIZE,
        min_interval=Config.PROGRESS_MIN_INTERVAL,
    )
    return IngestionPipeline(context, service, indexer)


# ── API Models ───────────────────────────────────────────────────────────────
class AnchorsSchema(BaseModel):
    css_selector: Optional[str] = None
    element_id: Optional[str] = None
    xpath: Optional[str] = None


class SectionSchema(BaseModel):
    heading: str
    level: int = 1
    content: str
    start_offset: int = 0
    parent_heading: Optional[str] = None
    anchors: Optional[AnchorsSchema] = None


class IngestRequest(BaseModel):
    sections: List[SectionSchema]
    source_url: Optional[str] = None
    max_chunk_chars: Optional[int] = None


class SearchRequest(BaseModel):
    document_id: str
    query: str
    top_k: Optional[int] = None
    alpha: Optional[float] = None
    hybrid: Optional[bool] = None


class TopicsRequest(BaseModel):
    document_id: str
    topics: List[str]
    top_k: Optional[int] = None


class ChunkSchema(BaseModel):
    chunk_id: str
    index: int
    content: str
    section_heading: str
    section_level: int
    parent_heading: Optional[str] = None
    paragraph_index: int
    sentence_group_index: Optional[int] = None
    section_chunk_index: int
    total_section_chunks: int
    start_char: int
    end_char: int
    token_count: int
    is_table: bool
    has_embedding: bool


class ResultSchema(BaseModel):
    chunk: ChunkSchema
    score: float
    semantic_score: Optional[float] = None
    lexical_score: Optional[float] = None


class SearchResponse(BaseModel):
    document_id: str
    query: str
    results: List[ResultSchema]


# ── App Initialization ───────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(Config.LOG_LEVEL)
    yield
    if get_context.cache_info().currsize:
        get_context().close()


app = FastAPI(
    title="Paper Retrieval API",
    description="Hybrid BM25 + embedding retrieval over research paper chunks.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS Middleware ──────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:8080", "http://127.0.0.1:8080"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Endpoints ────────────────────────────────────────────────────────────────
@app.get("/")
def read_root():
    return {"message": "Paper Retrieval API is running."}


@app.get("/status")
def get_status(context: RetrievalContext = Depends(get_context)):
    """Store totals and how many ingestions are running."""
    stats = context.chunk_store.get_document_stats()
    return {
        "documents": len(stats),
        "chunks": sum(entry["total_chunks"] for entry in stats),
        "embedded_chunks": sum(entry["embedded_chunks"] for entry in stats),
        "ingestions_in_flight": len(context.gate),
        "embedding_model": getattr(context.embedding_engine, "model_name", None),
    }


@app.get("/documents")
def get_documents(context: RetrievalContext = Depends(get_context)):
    """Returns stored documents with chunk and embedding counts."""
    try:
        return {"documents": context.chunk_store.get_document_stats()}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/documents/{document_id}")
async def ingest_document(
    document_id: str,
    request: IngestRequest,
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Segment the sections, replace the stored chunks and embed them."""
    sections = [_to_section(s) for s in request.sections]
    try:
        result = await pipeline.ingest(
            key=request.source_url or document_id,
            document_id=document_id,
            sections=sections,
            max_chunk_chars=Config.MAX_CHUNK_CHARS if request.max_chunk_chars is None else request.max_chunk_chars,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error("Ingestion of %s failed", document_id, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Ingestion failed: {str(e)}")

    if result is None:
        raise HTTPException(status_code=409, detail=f"Ingestion of '{document_id}' is already in progress.")

    return {
        "document_id": document_id,
        "chunks": result.stats.total_chunks,
        "average_chunk_size": round(result.stats.average_chunk_size, 1),
        "min_chunk_size": result.stats.min_chunk_size,
        "max_chunk_size": result.stats.max_chunk_size,
        "embedded": result.embedding.embedded,
        "embedding_failures": result.embedding.failed,
    }


@app.get("/documents/{document_id}/chunks", response_model=List[ChunkSchema])
def get_document_chunks(document_id: str, context: RetrievalContext = Depends(get_context)):
    chunks = context.chunk_store.get_chunks(document_id)
    if not chunks:
        raise HTTPException(status_code=404, detail=f"Document '{document_id}' not found")
    return [_chunk_schema(c) for c in chunks]


@app.delete("/documents/{document_id}")
def delete_document(document_id: str, context: RetrievalContext = Depends(get_context)):
    removed = context.chunk_store.delete_document(document_id)
    if not removed:
        raise HTTPException(status_code=404, detail=f"Document '{document_id}' not found")
    return {"message": f"Deleted {removed} chunks of '{document_id}'"}


@app.post("/search", response_model=SearchResponse)
def search(
    request: SearchRequest,
    context: RetrievalContext = Depends(get_context),
    service: RetrievalService = Depends(get_retrieval_service),
):
    try:
        config = Config.hybrid_config()
        if request.alpha is not None:
            config = replace(config, alpha=request.alpha)
        if request.hybrid is not None:
            config = replace(config, enabled=request.hybrid)
        results = service.search(
            request.document_id,
            request.query,
            Config.DEFAULT_TOP_K if request.top_k is None else request.top_k,
            config,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return SearchResponse(
        document_id=request.document_id,
        query=request.query,
        results=_result_schemas(context, request.document_id, results),
    )


@app.post("/topics", response_model=SearchResponse)
def search_topics(
    request: TopicsRequest,
    context: RetrievalContext = Depends(get_context),
    service: RetrievalService = Depends(get_retrieval_service),
):
    """Chunks relevant to a list of topic keywords."""
    query = topics_query(request.topics)
    try:
        results = service.search_by_topics(
            request.document_id, request.topics, TOPIC_LIMIT if request.top_k is None else request.top_k, Config.hybrid_config()
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return SearchResponse(
        document_id=request.document_id,
        query=query,
        results=_result_schemas(context, request.document_id, results),
    )


# ── Mapping helpers ──────────────────────────────────────────────────────────
def _to_section(schema: SectionSchema) -> Section:
    anchors = SourceAnchors(**schema.anchors.model_dump()) if schema.anchors else None
    return Section(
        heading=schema.heading,
        level=schema.level,
        content=schema.content,
        start_offset=schema.start_offset,
        parent_heading=schema.parent_heading,
        anchors=anchors,
    )


def _chunk_schema(chunk: Chunk) -> ChunkSchema:
    return ChunkSchema(
        chunk_id=chunk.chunk_id,
        index=chunk.index,
        content=chunk.content,
        section_heading=chunk.section_heading,
        section_level=chunk.section_level,
        parent_heading=chunk.parent_heading,
        paragraph_index=chunk.paragraph_index,
        sentence_group_index=chunk.sentence_group_index,
        section_chunk_index=chunk.section_chunk_index,
        total_section_chunks=chunk.total_section_chunks,
        start_char=chunk.start_char,
        end_char=chunk.end_char,
        token_count=chunk.token_count,
        is_table=chunk.is_table,
        has_embedding=chunk.has_embedding,
    )


def _result_schemas(context: RetrievalContext, document_id: str, results: List[RankedResult]) -> List[ResultSchema]:
    if not results:
        return []
    chunks = {c.chunk_id: c for c in context.chunk_store.iter_chunks(document_id)}
    return [
        ResultSchema(
            chunk=_chunk_schema(chunks[r.chunk_id]),
            score=round(float(r.score), 4),
            semantic_score=None if r.semantic_score is None else round(float(r.semantic_score), 4),
            lexical_score=None if r.lexical_score is None else round(float(r.lexical_score), 4),
        )
        for r in results
        if r.chunk_id in chunks
    ]


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
