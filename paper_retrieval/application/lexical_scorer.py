# paper_retrieval/application/lexical_scorer.py

import math
import re
from typing import List, Sequence

from rank_bm25 import BM25Okapi


WORD = re.compile(r"\w+")


def tokenize(text: str) -> List[str]:
    """Lowercased word tokens; the same tokenizer serves chunks and queries."""
    return WORD.findall(text.lower())


class ChunkBM25(BM25Okapi):
    """
    Okapi BM25 over one document's chunk set.

    rank_bm25's Okapi IDF goes negative for terms found in more than half of
    the corpus and is then patched with an epsilon floor. A paper's chunks are
    a small corpus where common terms are the norm, so the always-positive
    Lucene form is used instead:

        idf(t) = ln(1 + (N - df + 0.5) / (df + 0.5))
    """

    def _calc_idf(self, nd):
        for word, freq in nd.items():
            self.idf[word] = math.log(1 + (self.corpus_size - freq + 0.5) / (freq + 0.5))


def score_bm25(
    contents: Sequence[str],
    query_terms: Sequence[str],
    k1: float = 1.5,
    b: float = 0.75,
) -> List[float]:
    """
    Raw BM25 score of every chunk content against the query terms,
    aligned with contents. IDF is computed over these contents only.
    """
    if not contents:
        return []
    if not query_terms:
        return [0.0] * len(contents)

    corpus = [tokenize(text) for text in contents]
    if not any(corpus):
        return [0.0] * len(contents)

    bm25 = ChunkBM25(corpus, k1=k1, b=b)
    return [float(score) for score in bm25.get_scores(list(query_terms))]
