"""Inline text runs: split a span into plain, bold and italic pieces."""

from __future__ import annotations

import re
from dataclasses import dataclass

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"(?<!\*)\*(?!\*)(.+?)(?<!\*)\*(?!\*)")

PLAIN = "plain"
BOLD = "bold"
ITALIC = "italic"


@dataclass(frozen=True)
class InlineRun:
    kind: str
    text: str


def parse_inline(text: str) -> list[InlineRun]:
    """Split *text* into runs.

    ``**bold**`` wins over ``*italic*``; an italic match overlapping a bold
    span is ignored.  Markers are consumed, so joining the run texts gives the
    input minus its formatting markers.
    """
    spans: list[tuple[int, int, str, str]] = []
    for m in _BOLD_RE.finditer(text):
        spans.append((m.start(), m.end(), BOLD, m.group(1)))
    for m in _ITALIC_RE.finditer(text):
        if any(start < m.end() and m.start() < end for start, end, _, _ in spans):
            continue
        spans.append((m.start(), m.end(), ITALIC, m.group(1)))
    spans.sort()

    runs: list[InlineRun] = []
    pos = 0
    for start, end, kind, inner in spans:
        if start < pos:
            continue
        if start > pos:
            runs.append(InlineRun(PLAIN, text[pos:start]))
        runs.append(InlineRun(kind, inner))
        pos = end
    if pos < len(text):
        runs.append(InlineRun(PLAIN, text[pos:]))
    return runs


def plain_text(text: str) -> str:
    """Return *text* with its inline formatting markers removed."""
    return "".join(run.text for run in parse_inline(text))
