# tests/test_memory_store.py

import numpy as np
import pytest
from paper_retrieval.domain.errors import InvalidInputError
from paper_retrieval.domain.models import Chunk, make_chunk_id
from paper_retrieval.infrastructure.memory_store import InMemoryChunkStore


def _make_chunk(document_id: str, index: int, text: str = "text") -> Chunk:
    return Chunk(
        chunk_id=make_chunk_id(document_id, index),
        document_id=document_id,
        content=text,
        index=index,
        section_heading="S",
        section_level=1,
        paragraph_index=0,
        start_char=0,
        end_char=len(text),
    )


def test_chunks_come_back_in_index_order():
    store = InMemoryChunkStore()
    store.save_chunks("doc", [_make_chunk("doc", 2), _make_chunk("doc", 0), _make_chunk("doc", 1)])

    assert [c.index for c in store.iter_chunks("doc")] == [0, 1, 2]


def test_iteration_is_restartable():
    store = InMemoryChunkStore()
    store.save_chunks("doc", [_make_chunk("doc", 0), _make_chunk("doc", 1)])

    assert len(list(store.iter_chunks("doc"))) == len(list(store.iter_chunks("doc"))) == 2


def test_unknown_document_is_empty():
    assert InMemoryChunkStore().get_chunks("nothing") == []


def test_save_replaces_the_whole_set():
    store = InMemoryChunkStore()
    store.save_chunks("doc", [_make_chunk("doc", i) for i in range(5)])
    store.save_chunks("doc", [_make_chunk("doc", 0, "new")])

    assert [c.content for c in store.get_chunks("doc")] == ["new"]
    with pytest.raises(KeyError):
        store.set_embedding(make_chunk_id("doc", 3), np.ones(2))


def test_set_embedding():
    store = InMemoryChunkStore()
    store.save_chunks("doc", [_make_chunk("doc", 0), _make_chunk("doc", 1)])

    store.set_embedding("chunk_doc_1", [0.5, 0.5])

    chunks = store.get_chunks("doc")
    assert not chunks[0].has_embedding
    assert chunks[1].has_embedding
    np.testing.assert_allclose(chunks[1].embedding.vector, [0.5, 0.5])


def test_embedding_length_is_fixed():
    store = InMemoryChunkStore()
    store.save_chunks("doc", [_make_chunk("doc", 0), _make_chunk("doc", 1)])
    store.set_embedding("chunk_doc_0", np.ones(3))

    with pytest.raises(InvalidInputError, match="dimensions"):
        store.set_embedding("chunk_doc_1", np.ones(4))


def test_saved_chunks_are_not_aliased():
    store = InMemoryChunkStore()
    chunk = _make_chunk("doc", 0)
    store.save_chunks("doc", [chunk])

    store.set_embedding(chunk.chunk_id, np.ones(2))

    assert not chunk.has_embedding


def test_delete_and_stats():
    store = InMemoryChunkStore()
    store.save_chunks("a", [_make_chunk("a", 0, "xx"), _make_chunk("a", 1, "xxxx")])
    store.save_chunks("b", [_make_chunk("b", 0)])
    store.set_embedding("chunk_a_0", np.ones(2))

    assert store.get_document_stats() == [
        {"document_id": "a", "total_chunks": 2, "embedded_chunks": 1, "average_length": 3.0},
        {"document_id": "b", "total_chunks": 1, "embedded_chunks": 0, "average_length": 4.0},
    ]

    assert store.delete_document("a") == 2
    assert store.delete_document("a") == 0
    assert [s["document_id"] for s in store.get_document_stats()] == ["b"]
