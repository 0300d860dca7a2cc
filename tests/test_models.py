# tests/test_models.py

import numpy as np
import pytest
from paper_retrieval.domain.errors import InvalidInputError
from paper_retrieval.domain.models import (
    UNEMBEDDED,
    Chunk,
    Embedded,
    HybridConfig,
    RankedResult,
    SegmentationStats,
    make_chunk_id,
)


def _make_chunk(text: str) -> Chunk:
    return Chunk(
        chunk_id=make_chunk_id("doc", 0),
        document_id="doc",
        content=text,
        index=0,
        section_heading="Intro",
        section_level=1,
        paragraph_index=0,
        start_char=0,
        end_char=len(text),
    )


def test_chunk_id_includes_document_and_index():
    assert make_chunk_id("paper_ab12", 7) == "chunk_paper_ab12_7"


@pytest.mark.parametrize("text, expected", [
    ("", 0),
    ("abc", 1),
    ("abcd", 1),
    ("abcde", 2),
    ("x" * 400, 100),
])
def test_token_count_is_a_quarter_of_length_rounded_up(text, expected):
    assert _make_chunk(text).token_count == expected


def test_new_chunk_is_unembedded():
    chunk = _make_chunk("text")

    assert chunk.embedding is UNEMBEDDED
    assert not chunk.has_embedding


def test_embedded_coerces_to_float32_vector():
    embedding = Embedded([1, 2, 3])

    assert embedding.vector.dtype == np.float32
    assert embedding.dimensions == 3
    assert repr(embedding) == "Embedded(dimensions=3)"


@pytest.mark.parametrize("bad", [[], [[1.0, 2.0], [3.0, 4.0]], 5.0])
def test_embedded_rejects_bad_shapes(bad):
    with pytest.raises(InvalidInputError, match="1-D"):
        Embedded(bad)


def test_hybrid_config_defaults():
    config = HybridConfig()
    assert (config.alpha, config.k1, config.b, config.enabled) == (0.7, 1.5, 0.75, True)


@pytest.mark.parametrize("kwargs, field", [
    ({"alpha": -0.1}, "alpha"),
    ({"alpha": 1.1}, "alpha"),
    ({"k1": 0}, "k1"),
    ({"b": 1.5}, "b"),
])
def test_hybrid_config_rejects_out_of_range(kwargs, field):
    with pytest.raises(InvalidInputError, match=field):
        HybridConfig(**kwargs)


def test_ranked_result_repr_omits_missing_components():
    assert repr(RankedResult("c1", 0.5)) == "RankedResult('c1', score=0.5000)"
    assert repr(RankedResult("c1", 0.5, semantic_score=0.25)) == (
        "RankedResult('c1', score=0.5000, semantic=0.2500)"
    )


def test_segmentation_stats_of_nothing():
    assert SegmentationStats.from_chunks([]) == SegmentationStats(0, 0.0, 0, 0)
