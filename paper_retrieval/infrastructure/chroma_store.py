# paper_retrieval/infrastructure/chroma_store.py

import logging
import numpy as np
from typing import Iterator, List
from pathlib import Path

import chromadb
from chromadb.config import Settings

from paper_retrieval.domain.errors import InvalidInputError
from paper_retrieval.domain.interfaces import ChunkStorePort
from paper_retrieval.domain.models import UNEMBEDDED, Chunk, Embedded, SourceAnchors


logger = logging.getLogger(__name__)


# ── Constants ─────────────────────────────────────────────────────────────────

COLLECTION_NAME = "paper_chunks"
DIMENSIONS_KEY  = "embedding_dimensions"
UPSERT_BATCH    = 500

# Chroma metadata cannot hold None; optional fields are flattened to these.
MISSING_TEXT = ""
MISSING_INT  = -1


class ChromaChunkStore(ChunkStorePort):
    """
    Persistent chunk store on a ChromaDB collection.

    ┌──────────────────────────────────────────────────────────┐
    │  document  →  chunk content                              │
    │  metadata  →  position, section provenance, anchors      │
    │  embedding →  vector, or zeros while has_embedding=False │
    └──────────────────────────────────────────────────────────┘

    Chroma needs a vector for every record, so chunks that are not embedded
    yet carry a zero placeholder and the has_embedding flag decides how they
    are read back. The vector length is fixed per collection and recorded in
    the collection metadata; opening it with another length fails.
    """

    def __init__(
        self,
        persist_directory: str,
        dimensions: int,
        collection_name: str = COLLECTION_NAME,
    ):
        """
        Args:
            persist_directory: Path for ChromaDB on-disk storage.
            dimensions:        Embedding length produced by the provider.
            collection_name:   Collection holding every document's chunks.
        """
        if dimensions <= 0:
            raise InvalidInputError(f"dimensions must be positive, got {dimensions}.")
        self._persist_directory = persist_directory
        self._dimensions        = dimensions

        path = Path(persist_directory)
        if path.exists() and not path.is_dir():
            raise RuntimeError(f"Failed to initialize ChromaDB: path '{persist_directory}' is a file.")
        path.mkdir(parents=True, exist_ok=True)

        try:
            self._client = chromadb.PersistentClient(
                path=persist_directory,
                settings=Settings(anonymized_telemetry=False),
            )
            self._collection = self._open_collection(collection_name)
        except Exception as error:
            raise RuntimeError(
                f"Failed to initialize ChromaDB at '{persist_directory}'.\n"
                f"The database may be locked by another process or corrupted.\n"
                f"Fix: close other running instances, or delete '{persist_directory}'.\n"
                f"Original error: {error}"
            ) from error

        stored_dimensions = (self._collection.metadata or {}).get(DIMENSIONS_KEY)
        if stored_dimensions is not None and int(stored_dimensions) != dimensions:
            raise RuntimeError(
                f"Collection '{collection_name}' holds {stored_dimensions}-dimension embeddings "
                f"but the provider produces {dimensions}.\n"
                f"Fix: use a matching embedding model, or delete '{persist_directory}' to reindex."
            )

        logger.info(
            "Connected to '%s'. Collection has %d chunks.",
            persist_directory, self._collection.count(),
        )

    @property
    def dimensions(self) -> int:
        return self._dimensions

    # ─── ChunkStorePort ──────────────────────────────────────────────────────

    def iter_chunks(self, document_id: str) -> Iterator[Chunk]:
        results = self._collection.get(
            where   = {"document_id": document_id},
            include = ["documents", "metadatas", "embeddings"],
        )
        embeddings = results["embeddings"]
        if embeddings is None:
            embeddings = [None] * len(results["ids"])

        chunks = [
            _from_record(chunk_id, text, metadata, embedding)
            for chunk_id, text, metadata, embedding in zip(
                results["ids"], results["documents"], results["metadatas"], embeddings,
            )
        ]
        chunks.sort(key=lambda c: c.index)
        return iter(chunks)

    def save_chunks(self, document_id: str, chunks: List[Chunk]) -> None:
        """Replace the document's chunk set. Upserts run in batches."""
        self._collection.delete(where={"document_id": document_id})
        if not chunks:
            return

        ids        = [c.chunk_id for c in chunks]
        documents  = [c.content for c in chunks]
        metadatas  = [_to_metadata(c) for c in chunks]
        embeddings = [self._vector_for(c).tolist() for c in chunks]

        for start in range(0, len(chunks), UPSERT_BATCH):
            self._collection.upsert(
                ids        = ids       [start : start + UPSERT_BATCH],
                embeddings = embeddings[start : start + UPSERT_BATCH],
                documents  = documents [start : start + UPSERT_BATCH],
                metadatas  = metadatas [start : start + UPSERT_BATCH],
            )

        logger.info("Stored %d chunks for %s", len(chunks), document_id)

    def set_embedding(self, chunk_id: str, vector: np.ndarray) -> None:
        embedding = Embedded(vector)
        self._check_dimensions(chunk_id, embedding)

        existing = self._collection.get(ids=[chunk_id], include=["metadatas"])
        if not existing["ids"]:
            raise KeyError(f"Unknown chunk '{chunk_id}'.")

        metadata = dict(existing["metadatas"][0])
        metadata["has_embedding"] = True
        self._collection.update(
            ids        = [chunk_id],
            embeddings = [embedding.vector.tolist()],
            metadatas  = [metadata],
        )

    def delete_document(self, document_id: str) -> int:
        existing = self._collection.get(where={"document_id": document_id}, include=["metadatas"])
        removed = len(existing["ids"])
        if removed:
            self._collection.delete(ids=existing["ids"])
        logger.info("Deleted %d chunks of %s", removed, document_id)
        return removed

    def get_document_stats(self) -> List[dict]:
        """Aggregate chunk counts and lengths per document."""
        results = self._collection.get(include=["documents", "metadatas"])

        totals = {}
        for text, metadata in zip(results["documents"], results["metadatas"]):
            entry = totals.setdefault(
                metadata.get("document_id", "unknown"),
                {"total_chunks": 0, "embedded_chunks": 0, "characters": 0},
            )
            entry["total_chunks"]    += 1
            entry["embedded_chunks"] += 1 if metadata.get("has_embedding") else 0
            entry["characters"]      += len(text or "")

        return [
            {
                "document_id":     document_id,
                "total_chunks":    entry["total_chunks"],
                "embedded_chunks": entry["embedded_chunks"],
                "average_length":  round(entry["characters"] / entry["total_chunks"], 1),
            }
            for document_id, entry in sorted(totals.items())
        ]

    # ─── Private ─────────────────────────────────────────────────────────────

    def _open_collection(self, collection_name: str):
        # Existing collections keep the metadata they were created with.
        names = [getattr(c, "name", c) for c in self._client.list_collections()]
        if collection_name in names:
            return self._client.get_collection(name=collection_name)
        return self._client.create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine", DIMENSIONS_KEY: self._dimensions},
        )

    def _vector_for(self, chunk: Chunk) -> np.ndarray:
        if isinstance(chunk.embedding, Embedded):
            self._check_dimensions(chunk.chunk_id, chunk.embedding)
            return chunk.embedding.vector
        return np.zeros(self._dimensions, dtype=np.float32)

    def _check_dimensions(self, chunk_id: str, embedding: Embedded) -> None:
        if embedding.dimensions != self._dimensions:
            raise InvalidInputError(
                f"Embedding for '{chunk_id}' has {embedding.dimensions} dimensions, "
                f"store expects {self._dimensions}."
            )


# ─── Record mapping ──────────────────────────────────────────────────────────

def _to_metadata(chunk: Chunk) -> dict:
    anchors = chunk.anchors or SourceAnchors()
    return {
        "document_id":          chunk.document_id,
        "index":                chunk.index,
        "section_heading":      chunk.section_heading,
        "section_level":        chunk.section_level,
        "parent_heading":       _text_or_missing(chunk.parent_heading),
        "paragraph_index":      chunk.paragraph_index,
        "sentence_group_index": _int_or_missing(chunk.sentence_group_index),
        "section_chunk_index":  chunk.section_chunk_index,
        "total_section_chunks": chunk.total_section_chunks,
        "start_char":           chunk.start_char,
        "end_char":             chunk.end_char,
        "is_table":             chunk.is_table,
        "has_embedding":        chunk.has_embedding,
        "anchor_css_selector":  _text_or_missing(anchors.css_selector),
        "anchor_element_id":    _text_or_missing(anchors.element_id),
        "anchor_xpath":         _text_or_missing(anchors.xpath),
    }


def _from_record(chunk_id: str, text: str, metadata: dict, embedding) -> Chunk:
    anchors = SourceAnchors(
        css_selector = _text_or_none(metadata.get("anchor_css_selector")),
        element_id   = _text_or_none(metadata.get("anchor_element_id")),
        xpath        = _text_or_none(metadata.get("anchor_xpath")),
    )
    has_anchors = any((anchors.css_selector, anchors.element_id, anchors.xpath))
    has_vector  = metadata.get("has_embedding") and embedding is not None

    return Chunk(
        chunk_id             = chunk_id,
        document_id          = metadata["document_id"],
        content              = text,
        index                = int(metadata["index"]),
        section_heading      = metadata.get("section_heading", ""),
        section_level        = int(metadata.get("section_level", 1)),
        parent_heading       = _text_or_none(metadata.get("parent_heading")),
        paragraph_index      = int(metadata.get("paragraph_index", 0)),
        sentence_group_index = _int_or_none(metadata.get("sentence_group_index")),
        section_chunk_index  = int(metadata.get("section_chunk_index", 0)),
        total_section_chunks = int(metadata.get("total_section_chunks", 1)),
        start_char           = int(metadata.get("start_char", 0)),
        end_char             = int(metadata.get("end_char", len(text))),
        is_table             = bool(metadata.get("is_table", False)),
        anchors              = anchors if has_anchors else None,
        embedding            = Embedded(np.array(embedding, dtype=np.float32)) if has_vector else UNEMBEDDED,
    )


def _text_or_missing(value):
    return MISSING_TEXT if value is None else value


def _int_or_missing(value):
    return MISSING_INT if value is None else value


def _text_or_none(value):
    return None if value in (None, MISSING_TEXT) else value


def _int_or_none(value):
    return None if value is None or value == MISSING_INT else int(value)
