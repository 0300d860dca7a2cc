# tests/test_lexical_scorer.py

import math
import pytest
from paper_retrieval.application.lexical_scorer import score_bm25, tokenize


CHUNKS = [
    "Transformers use self-attention over token sequences.",
    "Protein folding predicted with deep learning.",
    "Attention heads in transformers can be pruned.",
]


def test_tokenize_lowercases_and_drops_punctuation():
    assert tokenize("Self-Attention, BERT's layers!") == ["self", "attention", "bert", "s", "layers"]


def test_empty_chunk_set_yields_empty_scores():
    assert score_bm25([], ["attention"]) == []


def test_empty_query_yields_zero_scores():
    assert score_bm25(CHUNKS, []) == [0.0, 0.0, 0.0]


def test_chunks_without_tokens_score_zero():
    assert score_bm25(["", "  ", "..."], ["attention"]) == [0.0, 0.0, 0.0]


def test_matching_chunks_outscore_non_matching():
    scores = score_bm25(CHUNKS, tokenize("transformers attention"))

    assert len(scores) == 3
    assert scores[1] == 0.0
    assert scores[0] > 0
    assert scores[2] > 0


def test_rare_terms_weigh_more_than_common_ones():
    chunks = ["graph neural network", "graph kernel", "graph theory"]
    rare = score_bm25(chunks, ["kernel"])[1]
    common = score_bm25(chunks, ["graph"])[1]
    assert rare > common > 0


def test_term_present_everywhere_still_scores_positive():
    scores = score_bm25(["cell growth", "cell death", "cell cycle"], ["cell"])
    assert all(score > 0 for score in scores)


def test_single_document_value():
    # N = 1, df = 1 → idf = ln(1 + 0.5 / 1.5); tf = 1 and |d| = avgdl → tf part = 1
    [score] = score_bm25(["apple banana"], ["apple"])
    assert score == pytest.approx(math.log(4 / 3))


def test_length_normalization_uses_b():
    chunks = ["apple", "apple pear plum fig kiwi lime"]
    flat = score_bm25(chunks, ["apple"], b=0.0)
    normalized = score_bm25(chunks, ["apple"], b=1.0)

    assert flat[0] == pytest.approx(flat[1])
    assert normalized[0] > normalized[1]
