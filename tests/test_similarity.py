# tests/test_similarity.py

import numpy as np
import pytest
from paper_retrieval.application.similarity import cosine_similarity, rank_by_similarity, similarity_scores
from paper_retrieval.domain.errors import InvalidInputError


def test_identical_vectors():
    v = np.array([0.3, 0.4, 0.5])
    assert cosine_similarity(v, v) == pytest.approx(1.0)


def test_orthogonal_and_opposite_vectors():
    assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 2.0])) == pytest.approx(0.0)
    assert cosine_similarity(np.array([1.0, 1.0]), np.array([-1.0, -1.0])) == pytest.approx(-1.0)


def test_zero_vector_has_zero_similarity():
    assert cosine_similarity(np.zeros(3), np.array([1.0, 2.0, 3.0])) == 0.0


def test_length_mismatch_raises():
    with pytest.raises(InvalidInputError, match="mismatch"):
        cosine_similarity(np.ones(3), np.ones(4))


def test_rank_by_similarity_sorts_descending():
    query = np.array([1.0, 0.0, 0.0])
    vectors = [np.array([0.0, 1.0, 0.0]), np.array([1.0, 0.0, 0.0]), np.array([1.0, 1.0, 0.0])]

    results = rank_by_similarity(query, vectors, ["a", "b", "c"])

    assert [r.chunk_id for r in results] == ["b", "c", "a"]
    assert results[0].score == pytest.approx(1.0)
    assert results[0].semantic_score == results[0].score
    assert results[0].lexical_score is None


def test_rank_by_similarity_top_k_and_ties():
    query = np.array([1.0, 0.0])
    vectors = [np.array([0.0, 1.0]), np.array([0.0, 3.0]), np.array([1.0, 0.0])]

    results = rank_by_similarity(query, vectors, ["a", "b", "c"], top_k=2)

    assert [r.chunk_id for r in results] == ["c", "a"]


def test_rank_by_similarity_requires_aligned_ids():
    with pytest.raises(InvalidInputError):
        rank_by_similarity(np.ones(2), [np.ones(2)], ["a", "b"])


def test_similarity_scores_scores_every_vector_in_order():
    query = np.array([1.0, 0.0])
    vectors = [np.array([2.0, 0.0]), np.zeros(2), np.array([0.0, 1.0]), np.array([-1.0, 0.0])]

    scores = similarity_scores(query, vectors)

    assert scores.tolist() == pytest.approx([1.0, 0.0, 0.0, -1.0])
    assert [cosine_similarity(query, v) for v in vectors] == pytest.approx(scores.tolist())


def test_similarity_scores_of_nothing():
    assert similarity_scores(np.ones(3), []).size == 0


def test_similarity_scores_reject_mixed_lengths():
    with pytest.raises(InvalidInputError, match="mismatch"):
        similarity_scores(np.ones(3), [np.ones(3), np.ones(2)])
