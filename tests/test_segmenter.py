# tests/test_segmenter.py

import re
import pytest
from paper_retrieval.application.segmenter import TextSegmenter, segmentation_stats
from paper_retrieval.domain.errors import InvalidInputError
from paper_retrieval.domain.models import Section, SourceAnchors


def _make_section(content: str, heading: str = "Introduction") -> Section:
    return Section(heading=heading, level=2, content=content, parent_heading="Paper")


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


SAMPLE_TEXTS = [
    "Para one sentence.\n\nPara two is a very long paragraph exceeding the limit. It has more. And more words here.",
    "Short.",
    "No terminal punctuation at all in this rather long paragraph of text",
    "  Leading spaces.  \n\n\n\nMany blank lines!  Two spaces?   Yes... trailing words",
    "Numbers like 3.14 stay together. e.g. this is fine.\nSingle newline inside. End",
]


def test_scenario_short_and_long_paragraph():
    section = _make_section(
        "Para one sentence.\n\n"
        "Para two is a very long paragraph exceeding the limit. It has more. And more words here."
    )
    chunks = TextSegmenter().segment(section, "doc", max_chunk_chars=20)

    assert [c.content for c in chunks] == [
        "Para one sentence.",
        "Para two is a very long paragraph exceeding the limit.",
        "It has more.",
        "And more words here.",
    ]
    assert chunks[0].sentence_group_index is None
    assert [c.sentence_group_index for c in chunks[1:]] == [0, 1, 2]
    assert [c.paragraph_index for c in chunks] == [0, 1, 1, 1]
    # Only the lone over-long sentence exceeds the limit.
    assert [len(c.content) > 20 for c in chunks] == [False, True, False, False]


@pytest.mark.parametrize("content", SAMPLE_TEXTS)
@pytest.mark.parametrize("max_chars", [5, 20, 60, 1000])
def test_chunks_cover_section_content(content, max_chars):
    chunks = TextSegmenter().segment(_make_section(content), "doc", max_chars)
    joined = " ".join(c.content for c in sorted(chunks, key=lambda c: c.index))
    assert _collapse(joined) == _collapse(content)


@pytest.mark.parametrize("content", SAMPLE_TEXTS)
def test_offsets_slice_section_content(content):
    section = _make_section(content)
    for chunk in TextSegmenter().segment(section, "doc", 20):
        assert section.content[chunk.start_char:chunk.end_char] == chunk.content


@pytest.mark.parametrize("content", SAMPLE_TEXTS)
def test_size_bound_except_single_sentences(content):
    for chunk in TextSegmenter().segment(_make_section(content), "doc", 25):
        if len(chunk.content) > 25:
            # An oversized chunk must be a single sentence.
            assert re.search(r"[.!?]\s+\S", chunk.content) is None


def test_short_paragraph_is_kept_verbatim():
    content = "A compact paragraph. With two sentences."
    chunks = TextSegmenter().segment(_make_section(content), "doc", 1000)

    assert len(chunks) == 1
    assert chunks[0].content == content
    assert chunks[0].start_char == 0
    assert chunks[0].end_char == len(content)


def test_trailing_text_without_punctuation_is_kept():
    content = "First sentence here. Second sentence here. trailing words without a period"
    chunks = TextSegmenter().segment(_make_section(content), "doc", 25)

    assert chunks[-1].content == "trailing words without a period"


def test_indexes_continue_from_start_index():
    chunks = TextSegmenter().segment(_make_section("One.\n\nTwo.\n\nThree."), "paper_1", 100, start_index=7)

    assert [c.index for c in chunks] == [7, 8, 9]
    assert [c.chunk_id for c in chunks] == ["chunk_paper_1_7", "chunk_paper_1_8", "chunk_paper_1_9"]


def test_section_position_is_stamped():
    chunks = TextSegmenter().segment(_make_section("One.\n\nTwo.\n\nThree."), "doc", 100)

    assert [c.section_chunk_index for c in chunks] == [0, 1, 2]
    assert all(c.total_section_chunks == 3 for c in chunks)


def test_section_provenance_is_inherited():
    anchors = SourceAnchors(css_selector="#intro")
    section = Section("Methods", 3, "Body text.", parent_heading="Study", anchors=anchors)
    chunk = TextSegmenter().segment(section, "doc", 100)[0]

    assert chunk.section_heading == "Methods"
    assert chunk.section_level == 3
    assert chunk.parent_heading == "Study"
    assert chunk.anchors is anchors
    assert not chunk.has_embedding


@pytest.mark.parametrize("content", ["", "   ", "\n\n\t\n"])
def test_blank_content_yields_no_chunks(content):
    assert TextSegmenter().segment(_make_section(content), "doc", 100) == []


@pytest.mark.parametrize("max_chars", [0, -5])
def test_non_positive_max_chunk_chars_raises(max_chars):
    with pytest.raises(InvalidInputError, match="max_chunk_chars"):
        TextSegmenter().segment(_make_section("Text."), "doc", max_chars)


def test_segmentation_is_deterministic():
    section = _make_section(SAMPLE_TEXTS[0])
    first = TextSegmenter().segment(section, "doc", 20)
    second = TextSegmenter().segment(section, "doc", 20)

    assert [(c.content, c.start_char, c.end_char) for c in first] == \
           [(c.content, c.start_char, c.end_char) for c in second]


def test_segment_sections_continues_indexes():
    sections = [_make_section("One.\n\nTwo.", "A"), _make_section("   "), _make_section("Three.", "B")]
    chunks = TextSegmenter().segment_sections(sections, "doc", 100)

    assert [c.index for c in chunks] == [0, 1, 2]
    assert [c.section_heading for c in chunks] == ["A", "A", "B"]
    assert chunks[2].total_section_chunks == 1


def test_segment_sections_rejects_bad_limit_even_without_sections():
    with pytest.raises(InvalidInputError):
        TextSegmenter().segment_sections([], "doc", 0)


# ── Tables ───────────────────────────────────────────────────────────────────

SMALL_TABLE = "| a | b |\n|---|---|\n| 1 | 2 |"


def _large_table(rows: int = 100) -> str:
    lines = ["| name | value |", "|------|-------|"]
    lines += [f"| row {i:03d} | value {i:03d} |" for i in range(rows)]
    return "\n".join(lines)


def test_tables_are_sentence_split_by_default():
    chunks = TextSegmenter().segment(_make_section(SMALL_TABLE), "doc", 10)
    assert not any(c.is_table for c in chunks)


def test_small_table_stays_whole_when_preserved():
    content = f"Intro text.\n\n{SMALL_TABLE}\n\nOutro text."
    chunks = TextSegmenter(preserve_tables=True).segment(_make_section(content), "doc", 10)

    tables = [c for c in chunks if c.is_table]
    assert len(tables) == 1
    assert tables[0].content == SMALL_TABLE


def test_large_table_is_split_with_repeated_header():
    table = _large_table()
    chunks = TextSegmenter(preserve_tables=True).segment(_make_section(table), "doc", 300)

    assert len(chunks) > 1
    assert all(c.is_table for c in chunks)
    assert all(c.content.startswith("| name | value |\n|------|-------|\n") for c in chunks)
    assert all(len(c.content) <= 300 for c in chunks)

    data_rows = [line for c in chunks for line in c.content.split("\n")[2:]]
    assert data_rows == table.split("\n")[2:]


def test_segmentation_stats():
    chunks = TextSegmenter().segment(_make_section("Four.\n\nSix123.\n\nEight123"), "doc", 100)
    stats = segmentation_stats(chunks)

    assert stats.total_chunks == 3
    assert stats.min_chunk_size == 5
    assert stats.max_chunk_size == 8
    assert stats.average_chunk_size == pytest.approx(20 / 3)


def test_segmentation_stats_of_nothing():
    stats = segmentation_stats([])
    assert stats.total_chunks == 0
    assert stats.average_chunk_size == 0.0
