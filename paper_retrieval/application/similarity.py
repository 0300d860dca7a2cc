# paper_retrieval/application/similarity.py

from typing import List, Optional, Sequence
import numpy as np

from paper_retrieval.domain.errors import InvalidInputError
from paper_retrieval.domain.models import RankedResult


def similarity_scores(query: np.ndarray, vectors: Sequence[np.ndarray]) -> np.ndarray:
    """
    Cosine similarity of the query against every vector, in input order.

    Vectors are stacked into one matrix and scored with a single product.
    A zero-magnitude vector has similarity 0 with everything.
    """
    query = np.asarray(query, dtype=np.float64)
    if len(vectors) == 0:
        return np.zeros(0)

    for vector in vectors:
        if np.shape(vector) != query.shape:
            raise InvalidInputError(
                f"Vector length mismatch: {query.size} vs {np.size(vector)}."
            )

    matrix = np.vstack(vectors).astype(np.float64)   # Shape: (N, D)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query

    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, dots / norms, 0.0)
    # Rounding can push identical vectors just past 1.
    return np.clip(scores, -1.0, 1.0)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity in [-1, 1]."""
    return float(similarity_scores(a, [np.asarray(b, dtype=np.float64)])[0])


def rank_by_similarity(
    query: np.ndarray,
    vectors: Sequence[np.ndarray],
    ids: Sequence[str],
    top_k: Optional[int] = None,
) -> List[RankedResult]:
    if len(vectors) != len(ids):
        raise InvalidInputError(
            f"Got {len(vectors)} vectors for {len(ids)} ids."
        )

    results = [
        RankedResult(chunk_id=chunk_id, score=float(score), semantic_score=float(score))
        for chunk_id, score in zip(ids, similarity_scores(query, vectors))
    ]
    # sorted() is stable: equal scores keep input order.
    results = sorted(results, key=lambda r: r.score, reverse=True)
    return results if top_k is None else results[:top_k]
