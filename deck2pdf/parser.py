"""Markdown deck parser: split a deck into slides and slides into content blocks."""

from __future__ import annotations

import logging

from . import config
from .models import (
    BULLET_RE,
    DATE_RE,
    DIAGRAM_END,
    DIAGRAM_REF_RE,
    DIAGRAM_START,
    FENCE,
    HORIZONTAL_RULE,
    ORDINAL_RE,
    PHASE_RE,
    SLIDE_HEADING_RE,
    SLIDE_TITLE_RE,
    VERSION_RE,
    CodeBlock,
    ContentBlock,
    Deck,
    DiagramBlock,
    DiagramRefBlock,
    HeadingBlock,
    ListBlock,
    Metadata,
    Slide,
    TableBlock,
    TextBlock,
)

logger = logging.getLogger(__name__)

# Metadata is only looked for in the first few lines of the document.
_METADATA_SCAN_LINES = 10


def parse_deck_file(path: str) -> Deck:
    """Parse the Markdown deck at *path*."""
    with open(path, encoding="utf-8") as f:
        raw = f.read()
    deck = parse_deck(raw)
    logger.debug("Parsed %s: %d slide(s)", path, len(deck.slides))
    return deck


def parse_deck(markdown: str) -> Deck:
    """Parse Markdown text into a :class:`Deck`.

    The leading block up to the first ``---`` holds the deck metadata.  After
    it, every ``## <Label> <N>:`` heading starts a slide and a bare ``---``
    closes one.  Each slide is then segmented into typed content blocks in a
    single forward pass.  Unrecognised constructs degrade to text blocks; this
    function does not raise for any input string.
    """
    lines = markdown.replace("\r\n", "\n").split("\n")
    metadata = _extract_metadata(lines)
    sections = _split_into_slides(lines)
    slides = tuple(_parse_slide(section, i + 1) for i, section in enumerate(sections))
    return Deck(metadata=metadata, slides=slides)


def _extract_metadata(lines: list[str]) -> Metadata:
    title = version = date = phase = ""

    for line in lines[:_METADATA_SCAN_LINES]:
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped.lstrip("#").strip()
        else:
            version_match = VERSION_RE.search(stripped)
            date_match = DATE_RE.search(stripped)
            phase_match = PHASE_RE.search(stripped)
            if version_match:
                version = version_match.group(1).strip()
            if date_match:
                date = date_match.group(1).strip()
            if phase_match:
                phase = phase_match.group(1).strip().rstrip("*").strip()

        if stripped == HORIZONTAL_RULE:
            break

    defaults = Metadata()
    return Metadata(
        title=title or defaults.title,
        version=version or defaults.version,
        date=date or defaults.date,
        phase=phase or defaults.phase,
    )


def _split_into_slides(lines: list[str]) -> list[list[str]]:
    slides: list[list[str]] = []
    current: list[str] = []
    in_body = False

    for line in lines:
        stripped = line.strip()

        # Everything up to the first rule is metadata.
        if not in_body:
            if stripped == HORIZONTAL_RULE:
                in_body = True
            continue

        if SLIDE_HEADING_RE.match(line):
            if current:
                slides.append(current)
            current = [line]
        elif stripped == HORIZONTAL_RULE:
            if current:
                slides.append(current)
            current = []
        elif current or stripped:
            current.append(line)

    if current:
        slides.append(current)
    return slides


def _slide_title(heading: str, slide_id: int) -> str:
    match = SLIDE_TITLE_RE.match(heading)
    title = match.group(1) if match else heading.lstrip("#")
    return title.strip() or f"Slide {slide_id}"


def _is_diagram_marker(text: str) -> bool:
    return config.DIAGRAM_LANGUAGE in text or DIAGRAM_START in text


def _classify_fence(body: str, language: str) -> ContentBlock:
    """Turn a fenced block into a code, diagram or diagram-ref block."""
    is_diagram = (
        language.lower() == config.DIAGRAM_LANGUAGE
        or DIAGRAM_START in body
        or DIAGRAM_END in body
    )
    if not is_diagram:
        return CodeBlock(content=body, language=language or None)

    first_line = next((line.strip() for line in body.split("\n") if line.strip()), "")
    ref_match = DIAGRAM_REF_RE.match(first_line)
    if ref_match:
        return DiagramRefBlock(content=body, diagram_path=ref_match.group(1))
    return DiagramBlock(content=body)


class _SlideSegmenter:
    """Single forward scan over one slide's lines.

    Exactly one of the ``code``, ``table`` and ``list`` modes is open at a
    time; with none open, lines are classified as headings, inline diagrams or
    text.
    """

    def __init__(self, lines: list[str]):
        self.lines = lines
        self.blocks: list[ContentBlock] = []
        self.code_lines: list[str] = []
        self.code_language = ""
        self.in_code = False
        self.table_lines: list[str] = []
        self.list_items: list[str] = []

    # -- flushing ----------------------------------------------------------

    def _flush_code(self, closed: bool = True) -> None:
        body = "\n".join(self.code_lines)
        # A fence left open at the end of a slide only counts if it holds text.
        if closed or body.strip():
            self.blocks.append(_classify_fence(body, self.code_language))
        self.code_lines = []
        self.code_language = ""
        self.in_code = False

    def _flush_table(self) -> None:
        if self.table_lines:
            self.blocks.append(TableBlock(content="\n".join(self.table_lines)))
        self.table_lines = []

    def _flush_list(self) -> None:
        if self.list_items:
            self.blocks.append(ListBlock(content="\n".join(self.list_items)))
        self.list_items = []

    # -- scanning ----------------------------------------------------------

    def run(self, start: int) -> list[ContentBlock]:
        i = start
        while i < len(self.lines):
            i = self._consume(i) + 1

        if self.in_code:
            self._flush_code(closed=False)
        self._flush_table()
        self._flush_list()
        return self.blocks

    def _consume(self, i: int) -> int:
        """Classify line *i*; returns the index of the last line consumed."""
        line = self.lines[i]
        stripped = line.strip()

        # Fence delimiters
        if stripped.startswith(FENCE):
            if self.in_code:
                self._flush_code()
            else:
                self._flush_table()
                self._flush_list()
                self.in_code = True
                self.code_language = stripped[len(FENCE):].strip()
            return i

        if self.in_code:
            self.code_lines.append(line)
            return i

        # Tables
        if "|" in stripped and len(stripped.split("|")) > 2:
            self._flush_list()
            self.table_lines.append(line)
            return i
        self._flush_table()

        # Lists
        if BULLET_RE.match(stripped) or ORDINAL_RE.match(stripped):
            self.list_items.append(stripped)
            return i
        if self.list_items:
            if not stripped:
                self._flush_list()
                return i
            # Soft-wrapped item text
            self.list_items[-1] += " " + stripped
            return i

        # Headings
        if stripped.startswith("## "):
            self.blocks.append(HeadingBlock(content=stripped.lstrip("#").strip(), level=2))
            return i
        if stripped.startswith("### "):
            self.blocks.append(HeadingBlock(content=stripped.lstrip("#").strip(), level=3))
            return i

        if not stripped or stripped.startswith("#"):
            return i

        # Inline diagram without a fence: consume through the end marker.
        if _is_diagram_marker(stripped):
            end = i
            while end < len(self.lines) - 1 and DIAGRAM_END not in self.lines[end]:
                end += 1
            self.blocks.append(DiagramBlock(content="\n".join(self.lines[i:end + 1])))
            return end

        self.blocks.append(TextBlock(content=stripped))
        return i


def _parse_slide(section: list[str], slide_id: int) -> Slide:
    title = f"Slide {slide_id}"
    start = 0
    if section and section[0].strip().startswith("## "):
        title = _slide_title(section[0].strip(), slide_id)
        start = 1

    blocks = _SlideSegmenter(section).run(start)
    logger.debug("  Slide %d (%s): %d block(s)", slide_id, title, len(blocks))
    return Slide(
        id=slide_id,
        title=title,
        content=tuple(blocks),
        raw_markdown="\n".join(section),
    )
