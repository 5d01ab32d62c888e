"""Shared data models and parsing constants."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, ClassVar

# Metadata labels (Russian decks first, English equivalents accepted).
VERSION_RE = re.compile(r"\*\*(?:Версия|Version):\*\*\s*(.+)", re.IGNORECASE)
DATE_RE = re.compile(r"\*\*(?:Дата|Date):\*\*\s*(.+)", re.IGNORECASE)
PHASE_RE = re.compile(r"\*\*(?:Этап|Phase)\s*\d+:\s*(.+)", re.IGNORECASE)

# Numbered slide heading: "## Слайд 3: Architecture", "## Slide 3: Architecture"
SLIDE_HEADING_RE = re.compile(r"^##\s+[^\s:]+\s+\d+:")
SLIDE_TITLE_RE = re.compile(r"^##\s+[^\s:]+\s+\d+:\s*(.*)$")

HORIZONTAL_RULE = "---"
FENCE = "```"

BULLET_RE = re.compile(r"^[-*]\s")
ORDINAL_RE = re.compile(r"^\d+\.\s")
LIST_MARKER_RE = re.compile(r"^(?:[-*]|\d+\.)\s+")

# Diagram markers
DIAGRAM_START = "@startuml"
DIAGRAM_END = "@enduml"
# Reference pointer inside a diagram fence: "@ref:flows/login.puml".
# "@plantuml:" is the older spelling of the same pointer.
DIAGRAM_REF_RE = re.compile(r"^@(?:ref|plantuml):\s*(.+?)\s*$")

TABLE_SEPARATOR_CELL_RE = re.compile(r"^:?-+:?$")

DEFAULT_TITLE = "Presentation"
DEFAULT_VERSION = "1.0"


@dataclass(frozen=True)
class Metadata:
    title: str = DEFAULT_TITLE
    version: str = DEFAULT_VERSION
    date: str = ""
    phase: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "version": self.version,
            "date": self.date,
            "phase": self.phase,
        }


@dataclass(frozen=True)
class ContentBlock:
    """One typed unit of slide content.

    ``content`` is the block's payload with its delimiting syntax removed
    (fence lines, heading hashes) but otherwise unparsed.
    """

    kind: ClassVar[str] = ""

    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "content": self.content}


@dataclass(frozen=True)
class TextBlock(ContentBlock):
    kind: ClassVar[str] = "text"


@dataclass(frozen=True)
class HeadingBlock(ContentBlock):
    kind: ClassVar[str] = "heading"

    level: int = 3

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "level": self.level}


@dataclass(frozen=True)
class ListBlock(ContentBlock):
    kind: ClassVar[str] = "list"

    @property
    def items(self) -> list[str]:
        """Item texts with their bullet / ordinal markers removed."""
        return [
            LIST_MARKER_RE.sub("", line.strip(), count=1)
            for line in self.content.split("\n")
            if line.strip()
        ]

    @property
    def ordered(self) -> bool:
        return any(ORDINAL_RE.match(line.strip()) for line in self.content.split("\n"))


def _split_row(line: str) -> list[str]:
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def _is_separator_row(cells: list[str]) -> bool:
    non_empty = [c for c in cells if c]
    return bool(non_empty) and all(TABLE_SEPARATOR_CELL_RE.match(c) for c in non_empty)


@dataclass(frozen=True)
class TableBlock(ContentBlock):
    """Pipe table; ``content`` keeps the separator row beneath the header."""

    kind: ClassVar[str] = "table"

    @property
    def header(self) -> list[str]:
        lines = [line for line in self.content.split("\n") if line.strip()]
        if not lines:
            return []
        return _split_row(lines[0])

    @property
    def rows(self) -> list[list[str]]:
        lines = [line for line in self.content.split("\n") if line.strip()]
        rows = []
        for line in lines[1:]:
            cells = _split_row(line)
            if _is_separator_row(cells):
                continue
            rows.append(cells)
        return rows


@dataclass(frozen=True)
class CodeBlock(ContentBlock):
    kind: ClassVar[str] = "code"

    language: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "language": self.language}


@dataclass(frozen=True)
class DiagramBlock(ContentBlock):
    kind: ClassVar[str] = "diagram"


@dataclass(frozen=True)
class DiagramRefBlock(ContentBlock):
    """Pointer to a diagram file, resolved at render time rather than parse time."""

    kind: ClassVar[str] = "diagram-ref"

    diagram_path: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "diagramPath": self.diagram_path}


BLOCK_TYPES: tuple[type[ContentBlock], ...] = (
    TextBlock,
    HeadingBlock,
    ListBlock,
    TableBlock,
    CodeBlock,
    DiagramBlock,
    DiagramRefBlock,
)


@dataclass(frozen=True)
class Slide:
    id: int
    title: str
    content: tuple[ContentBlock, ...] = ()
    raw_markdown: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": [block.to_dict() for block in self.content],
            "rawMarkdown": self.raw_markdown,
        }


@dataclass(frozen=True)
class Deck:
    metadata: Metadata = field(default_factory=Metadata)
    slides: tuple[Slide, ...] = ()

    def slide(self, slide_id: int) -> Slide | None:
        """Return the slide with the given 1-based id, or ``None``."""
        if 1 <= slide_id <= len(self.slides):
            return self.slides[slide_id - 1]
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "slides": [slide.to_dict() for slide in self.slides],
        }
