# paper_retrieval/domain/errors.py


class InvalidInputError(ValueError):
    """
    Raised for caller mistakes: non-positive limits or chunk sizes,
    mismatched vector lengths, out-of-range hybrid weights.
    Never recovered from inside the engine.
    """


class EmbeddingUnavailableError(RuntimeError):
    """
    Raised by an embedding provider that cannot produce a vector
    (model not loaded, inference failed). Retrieval recovers from it
    by dropping to lexical-only ranking.
    """
