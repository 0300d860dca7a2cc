# paper_retrieval/application/score_fuser.py

from typing import List, Mapping, Optional, Sequence
import numpy as np

from paper_retrieval.domain.errors import InvalidInputError
from paper_retrieval.domain.models import DEFAULT_HYBRID_CONFIG, HybridConfig, RankedResult


def normalize_min_max(scores: Sequence[float]) -> List[float]:
    """
    Min-max scale over the actual score range. When every score is equal the
    denominator is floored to 1, so all scores normalize to 0.
    """
    values = np.asarray(scores, dtype=np.float64)
    if values.size == 0:
        return []
    low, high = values.min(), values.max()
    span = high - low if high > low else 1.0
    return ((values - low) / span).tolist()


def fuse(
    lexical_scores: Mapping[str, float],
    semantic_scores: Mapping[str, float],
    config: HybridConfig = DEFAULT_HYBRID_CONFIG,
    limit: Optional[int] = None,
) -> List[RankedResult]:
    """
    Combine lexical and semantic scores into one ranking.

    semantic_scores defines the candidate set: only chunks with an embedding
    take part, and lexical scores are normalized over those chunks alone.
    An empty semantic_scores means no candidate has an embedding; ranking then
    falls back to lexical scores only.

        fused = alpha * semantic + (1 - alpha) * normalized_lexical

    Mappings are read in iteration order, which callers keep as ascending
    chunk sequence order, so equal scores rank by sequence.
    """
    _check_limit(limit)

    if not semantic_scores:
        return rank_lexical_only(lexical_scores, limit)

    ids = list(semantic_scores)
    raw_lexical = [float(lexical_scores.get(i, 0.0)) for i in ids]
    normalized = normalize_min_max(raw_lexical)

    results = []
    for chunk_id, raw, lexical in zip(ids, raw_lexical, normalized):
        semantic = float(semantic_scores[chunk_id])
        results.append(RankedResult(
            chunk_id       = chunk_id,
            score          = config.alpha * semantic + (1 - config.alpha) * lexical,
            semantic_score = semantic,
            lexical_score  = raw,
        ))

    results.sort(key=lambda r: r.score, reverse=True)
    return results if limit is None else results[:limit]


def rank_lexical_only(
    lexical_scores: Mapping[str, float],
    limit: Optional[int] = None,
) -> List[RankedResult]:
    """
    Rank by BM25 alone. Chunks without a positive score are dropped; the
    remaining scores are scaled by the best one so the top result scores 1.
    """
    _check_limit(limit)

    positive = [(chunk_id, float(raw)) for chunk_id, raw in lexical_scores.items() if raw > 0]
    if not positive:
        return []

    best = max(raw for _, raw in positive)
    results = [
        RankedResult(chunk_id=chunk_id, score=raw / best, lexical_score=raw)
        for chunk_id, raw in positive
    ]
    results.sort(key=lambda r: r.score, reverse=True)
    return results if limit is None else results[:limit]


def _check_limit(limit: Optional[int]) -> None:
    if limit is not None and limit <= 0:
        raise InvalidInputError(f"limit must be positive, got {limit}.")
