# paper_retrieval/domain/models.py

import math
from dataclasses import dataclass, field
from typing import List, Optional, Union
import numpy as np

from .errors import InvalidInputError


@dataclass(frozen=True)
class SourceAnchors:
    """
    Opaque locators back into the source document (DOM selector, element id,
    XPath). Carried through segmentation untouched; never interpreted here.
    """
    css_selector: Optional[str] = None
    element_id: Optional[str] = None
    xpath: Optional[str] = None


@dataclass
class Section:
    """
    A headed block of extracted text. Input to segmentation.
    start_offset is the absolute position of the content in the source text.
    """
    heading: str
    level: int
    content: str
    start_offset: int = 0
    parent_heading: Optional[str] = None
    anchors: Optional[SourceAnchors] = None


# ── Embedding state ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Unembedded:
    """Chunk has not been embedded yet."""

    def __repr__(self) -> str:
        return "UNEMBEDDED"


UNEMBEDDED = Unembedded()


@dataclass(frozen=True, eq=False)
class Embedded:
    """Chunk carries a fixed-length vector produced by the embedding provider."""
    vector: np.ndarray

    def __post_init__(self):
        vector = np.asarray(self.vector, dtype=np.float32)
        if vector.ndim != 1 or vector.size == 0:
            raise InvalidInputError(
                f"Embedding vector must be a non-empty 1-D array, got shape {vector.shape}."
            )
        object.__setattr__(self, "vector", vector)

    @property
    def dimensions(self) -> int:
        return int(self.vector.shape[0])

    def __repr__(self) -> str:
        return f"Embedded(dimensions={self.dimensions})"


Embedding = Union[Unembedded, Embedded]


@dataclass
class Chunk:
    """
    A contiguous slice of one section's content, the unit of retrieval.

    start_char/end_char index into the owning section's content, so for text
    chunks section.content[start_char:end_char] == content. index is the
    document-wide sequence number and decides ordering between equal scores.
    """
    chunk_id: str
    document_id: str
    content: str
    index: int
    section_heading: str
    section_level: int
    paragraph_index: int
    start_char: int
    end_char: int
    parent_heading: Optional[str] = None
    sentence_group_index: Optional[int] = None
    section_chunk_index: int = 0
    total_section_chunks: int = 1
    is_table: bool = False
    anchors: Optional[SourceAnchors] = field(default=None, repr=False)
    embedding: Embedding = field(default=UNEMBEDDED, repr=False)

    @property
    def token_count(self) -> int:
        """Rough token estimate: four characters per token."""
        return math.ceil(len(self.content) / 4)

    @property
    def has_embedding(self) -> bool:
        return isinstance(self.embedding, Embedded)


def make_chunk_id(document_id: str, index: int) -> str:
    return f"chunk_{document_id}_{index}"


# ── Ranking ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HybridConfig:
    """
    Weights for fusing semantic and lexical scores.

    alpha:   semantic weight in [0, 1]; lexical gets (1 - alpha).
    k1, b:   BM25 term-frequency saturation and length normalization.
    enabled: when False, chunks with embeddings are ranked by similarity only.
    """
    alpha: float = 0.7
    k1: float = 1.5
    b: float = 0.75
    enabled: bool = True

    def __post_init__(self):
        if not 0.0 <= self.alpha <= 1.0:
            raise InvalidInputError(f"alpha must be within [0, 1], got {self.alpha}.")
        if self.k1 <= 0:
            raise InvalidInputError(f"k1 must be positive, got {self.k1}.")
        if not 0.0 <= self.b <= 1.0:
            raise InvalidInputError(f"b must be within [0, 1], got {self.b}.")


DEFAULT_HYBRID_CONFIG = HybridConfig()


@dataclass
class RankedResult:
    """
    One ranked chunk. score is the fused score; the component scores are kept
    for diagnostics and are None when that signal took no part in ranking.
    """
    chunk_id: str
    score: float
    semantic_score: Optional[float] = None
    lexical_score: Optional[float] = None

    def __repr__(self) -> str:
        parts = [f"score={self.score:.4f}"]
        if self.semantic_score is not None:
            parts.append(f"semantic={self.semantic_score:.4f}")
        if self.lexical_score is not None:
            parts.append(f"lexical={self.lexical_score:.4f}")
        return f"RankedResult('{self.chunk_id}', {', '.join(parts)})"


@dataclass
class SegmentationStats:
    total_chunks: int
    average_chunk_size: float
    min_chunk_size: int
    max_chunk_size: int

    @classmethod
    def from_chunks(cls, chunks: List[Chunk]) -> "SegmentationStats":
        if not chunks:
            return cls(total_chunks=0, average_chunk_size=0.0, min_chunk_size=0, max_chunk_size=0)
        sizes = [len(c.content) for c in chunks]
        return cls(
            total_chunks=len(sizes),
            average_chunk_size=sum(sizes) / len(sizes),
            min_chunk_size=min(sizes),
            max_chunk_size=max(sizes),
        )
