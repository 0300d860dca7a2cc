# paper_retrieval/infrastructure/section_loader.py

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple
from pathlib import Path

from paper_retrieval.domain.models import Section
from paper_retrieval.infrastructure.identifiers import document_id_for_path


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".md", ".markdown", ".txt"}

HEADING = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t#]*$", re.MULTILINE)


@dataclass
class LoadedDocument:
    document_id: str
    source: str
    sections: List[Section]


class SectionLoader:
    """
    Loads already-extracted paper text from disk and cuts it into Sections.

    - Markdown: every ATX heading (# .. ######) opens a section; its parent
      is the nearest preceding heading of a lower level. Text before the
      first heading becomes a section titled after the file.
    - Plain text: the whole file is a single section.
    """

    def load_directory(self, directory_path: str) -> List[LoadedDocument]:
        data_dir = Path(directory_path)
        if not data_dir.exists():
            raise FileNotFoundError(f"Data directory not found: {directory_path}")

        documents: List[LoadedDocument] = []
        for file_path in sorted(data_dir.rglob("*")):
            if not file_path.is_file():
                continue
            document = self.load_file(file_path)
            if document and document.sections:
                documents.append(document)
                logger.info("Loaded %d sections from %s", len(document.sections), file_path.name)

        logger.info("Total documents loaded: %d", len(documents))
        return documents

    def load_file(self, file_path: Path) -> Optional[LoadedDocument]:
        """Returns None for unsupported file types."""
        file_path = Path(file_path)
        suffix = file_path.suffix.lower()
        if suffix not in SUPPORTED_EXTENSIONS:
            return None

        text = file_path.read_text(encoding="utf-8", errors="ignore")
        if suffix == ".txt":
            sections = self.plain_sections(text, title=file_path.stem)
        else:
            sections = self.markdown_sections(text, title=file_path.stem)

        return LoadedDocument(
            document_id=document_id_for_path(file_path),
            source=file_path.name,
            sections=sections,
        )

    @staticmethod
    def plain_sections(text: str, title: str) -> List[Section]:
        if not text.strip():
            return []
        return [Section(heading=title, level=1, content=text, start_offset=0)]

    @staticmethod
    def markdown_sections(text: str, title: str) -> List[Section]:
        headings = list(HEADING.finditer(text))
        sections: List[Section] = []

        preamble_end = headings[0].start() if headings else len(text)
        if text[:preamble_end].strip():
            sections.append(Section(heading=title, level=1, content=text[:preamble_end], start_offset=0))

        # (level, heading) of the currently open headings, outermost first
        open_headings: List[Tuple[int, str]] = []

        for position, match in enumerate(headings):
            level = len(match.group(1))
            heading = match.group(2).strip()

            while open_headings and open_headings[-1][0] >= level:
                open_headings.pop()
            parent = open_headings[-1][1] if open_headings else None
            open_headings.append((level, heading))

            body_start = match.end() + 1 if match.end() < len(text) else match.end()
            body_end = headings[position + 1].start() if position + 1 < len(headings) else len(text)
            content = text[body_start:body_end]
            if not content.strip():
                continue

            sections.append(Section(
                heading=heading,
                level=level,
                content=content,
                start_offset=body_start,
                parent_heading=parent,
            ))

        return sections
