# paper_retrieval/application/segmenter.py

import logging
import re
from typing import Iterator, List, Tuple

from paper_retrieval.domain.errors import InvalidInputError
from paper_retrieval.domain.models import Chunk, Section, SegmentationStats, make_chunk_id


logger = logging.getLogger(__name__)

# Paragraphs are separated by one or more blank (or whitespace-only) lines.
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

# A sentence runs up to terminal punctuation followed by whitespace or the end
# of the paragraph. Text without a terminator still forms a sentence.
SENTENCE = re.compile(r"\S.*?(?:[.!?]+(?=\s|$)|$)", re.DOTALL)

TABLE_SEPARATOR_ROW = re.compile(r"^\|[\s:|-]+\|$")

# Tables below SMALL_TABLE_CHARS always stay whole; tables below
# MEDIUM_TABLE_CHARS stay whole when they use less than 70% of max_chunk_chars.
SMALL_TABLE_CHARS = 800
MEDIUM_TABLE_CHARS = 2000
MEDIUM_TABLE_LIMIT_RATIO = 0.7

Span = Tuple[int, int]


class TextSegmenter:
    """
    Splits a Section into Chunks along paragraph and sentence boundaries.

    - A paragraph that fits max_chunk_chars becomes one chunk, verbatim.
    - A longer paragraph is cut into sentences that are greedily packed into
      groups no longer than max_chunk_chars.
    - A single sentence longer than the limit is emitted whole.

    Every text chunk is an exact slice of the section content, so chunk
    offsets can be used to highlight the source.

    With preserve_tables=True, markdown tables are never sentence-split:
    small tables stay whole and large ones are split into row groups that
    each repeat the header rows.
    """

    def __init__(self, preserve_tables: bool = False):
        self._preserve_tables = preserve_tables

    def segment(
        self,
        section: Section,
        document_id: str,
        max_chunk_chars: int,
        start_index: int = 0,
    ) -> List[Chunk]:
        if max_chunk_chars <= 0:
            raise InvalidInputError(f"max_chunk_chars must be positive, got {max_chunk_chars}.")

        content = section.content or ""
        if not content.strip():
            return []

        chunks: List[Chunk] = []
        for paragraph_index, (para_start, para_end) in enumerate(_paragraph_spans(content)):
            paragraph = content[para_start:para_end]

            if self._preserve_tables and _is_markdown_table(paragraph):
                pieces = self._table_pieces(paragraph, para_start, max_chunk_chars)
                for text, start, end in pieces:
                    chunks.append(self._make_chunk(
                        section, document_id, start_index + len(chunks),
                        text, start, end, paragraph_index, None, is_table=True,
                    ))
                continue

            if len(paragraph) <= max_chunk_chars:
                chunks.append(self._make_chunk(
                    section, document_id, start_index + len(chunks),
                    paragraph, para_start, para_end, paragraph_index, None,
                ))
                continue

            for group_index, (start, end) in enumerate(_group_sentences(paragraph, max_chunk_chars)):
                chunks.append(self._make_chunk(
                    section, document_id, start_index + len(chunks),
                    paragraph[start:end], para_start + start, para_start + end,
                    paragraph_index, group_index,
                ))

        for position, chunk in enumerate(chunks):
            chunk.section_chunk_index = position
            chunk.total_section_chunks = len(chunks)

        logger.debug(
            "Section '%s' of %s → %d chunks (indexes %d..%d)",
            section.heading, document_id, len(chunks),
            start_index, start_index + len(chunks) - 1,
        )
        return chunks

    def segment_sections(
        self,
        sections: List[Section],
        document_id: str,
        max_chunk_chars: int,
    ) -> List[Chunk]:
        """Segment a whole document; sequence indexes continue across sections."""
        if max_chunk_chars <= 0:
            raise InvalidInputError(f"max_chunk_chars must be positive, got {max_chunk_chars}.")
        chunks: List[Chunk] = []
        for section in sections:
            chunks.extend(self.segment(section, document_id, max_chunk_chars, start_index=len(chunks)))
        return chunks

    # ─── Private ─────────────────────────────────────────────────────────────

    @staticmethod
    def _make_chunk(
        section: Section,
        document_id: str,
        index: int,
        content: str,
        start: int,
        end: int,
        paragraph_index: int,
        sentence_group_index,
        is_table: bool = False,
    ) -> Chunk:
        return Chunk(
            chunk_id=make_chunk_id(document_id, index),
            document_id=document_id,
            content=content,
            index=index,
            section_heading=section.heading,
            section_level=section.level,
            parent_heading=section.parent_heading,
            paragraph_index=paragraph_index,
            sentence_group_index=sentence_group_index,
            start_char=start,
            end_char=end,
            is_table=is_table,
            anchors=section.anchors,
        )

    @staticmethod
    def _table_pieces(table: str, offset: int, max_chunk_chars: int) -> List[Tuple[str, int, int]]:
        if not _should_split_table(len(table), max_chunk_chars):
            return [(table, offset, offset + len(table))]

        line_spans = list(_line_spans(table))
        header = table[line_spans[0][0]:line_spans[1][1]]
        rows = line_spans[2:]

        pieces: List[Tuple[str, int, int]] = []
        group: List[Span] = []
        for row in rows:
            candidate = group + [row]
            size = len(header) + sum(e - s + 1 for s, e in candidate)
            if group and size > max_chunk_chars:
                pieces.append(_table_piece(table, header, group, offset))
                group = [row]
            else:
                group = candidate
        if group:
            pieces.append(_table_piece(table, header, group, offset))

        # The first piece also covers the header rows.
        text, _, end = pieces[0]
        pieces[0] = (text, offset, end)
        return pieces


def segmentation_stats(chunks: List[Chunk]) -> SegmentationStats:
    return SegmentationStats.from_chunks(chunks)


# ─── Module helpers ──────────────────────────────────────────────────────────

def _paragraph_spans(content: str) -> Iterator[Span]:
    """Yield (start, end) of each stripped, non-empty paragraph."""
    position = 0
    for separator in [*PARAGRAPH_BREAK.finditer(content), None]:
        end = separator.start() if separator else len(content)
        span = _strip_span(content, position, end)
        if span:
            yield span
        if separator:
            position = separator.end()


def _strip_span(text: str, start: int, end: int):
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return (start, end) if start < end else None


def _group_sentences(paragraph: str, max_chunk_chars: int) -> List[Span]:
    """
    Greedily pack sentence spans into groups. A group's length is measured
    over its verbatim span, whitespace between sentences included.
    """
    groups: List[Span] = []
    group_start = group_end = None

    for match in SENTENCE.finditer(paragraph):
        start, end = match.start(), match.end()
        if group_start is None:
            group_start, group_end = start, end
        elif end - group_start > max_chunk_chars:
            groups.append((group_start, group_end))
            group_start, group_end = start, end
        else:
            group_end = end

    if group_start is not None:
        groups.append((group_start, group_end))
    return groups


def _line_spans(text: str) -> Iterator[Span]:
    position = 0
    for line in text.split("\n"):
        yield position, position + len(line)
        position += len(line) + 1


def _is_markdown_table(paragraph: str) -> bool:
    lines = [line.strip() for line in paragraph.split("\n")]
    if len(lines) < 3:
        return False
    return (
        all(line.startswith("|") and line.endswith("|") for line in lines)
        and TABLE_SEPARATOR_ROW.match(lines[1]) is not None
    )


def _should_split_table(table_size: int, max_chunk_chars: int) -> bool:
    if table_size < SMALL_TABLE_CHARS:
        return False
    if table_size < MEDIUM_TABLE_CHARS and table_size < max_chunk_chars * MEDIUM_TABLE_LIMIT_RATIO:
        return False
    return True


def _table_piece(table: str, header: str, rows: List[Span], offset: int) -> Tuple[str, int, int]:
    body = table[rows[0][0]:rows[-1][1]]
    return f"{header}\n{body}", offset + rows[0][0], offset + rows[-1][1]
