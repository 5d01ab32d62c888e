"""Move inline diagrams out of a deck into ``.puml`` files."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from . import config
from .models import DIAGRAM_REF_RE, FENCE

logger = logging.getLogger(__name__)

_SLIDE_NUMBER_RE = re.compile(r"^##\s+[^\s:]+\s+(\d+):")
_STARTUML_NAME_RE = re.compile(r"@startuml\s+(\S+)")


def diagram_file_name(body: list[str], slide_number: int, diagram_number: int) -> str:
    m = _STARTUML_NAME_RE.search("\n".join(body))
    if m:
        name = re.sub(r"[^a-z0-9]", "-", m.group(1).lower())
    else:
        name = f"slide{slide_number}-diagram{diagram_number}"
    return f"{name}.puml"


def _is_reference(body: list[str]) -> bool:
    for line in body:
        if line.strip():
            return DIAGRAM_REF_RE.match(line.strip()) is not None
    return False


def extract_diagrams(text: str, out_dir: Path) -> tuple[str, list[Path]]:
    """Write every inline diagram fence in *text* to *out_dir*.

    Returns the deck text with each extracted fence body replaced by an
    ``@ref:<file>`` line, and the list of files written.  Fences that
    already hold a reference, and an unterminated trailing fence, are kept
    verbatim.
    """
    out_dir = Path(out_dir)
    opener = FENCE + config.DIAGRAM_LANGUAGE
    result: list[str] = []
    written: list[Path] = []
    body: list[str] | None = None
    slide_number = 0
    diagram_number = 0

    for line in text.split("\n"):
        stripped = line.strip()

        if body is None:
            m = _SLIDE_NUMBER_RE.match(line)
            if m:
                slide_number = int(m.group(1))
                diagram_number = 0
            result.append(line)
            if stripped.startswith(opener):
                body = []
            continue

        if stripped != FENCE:
            body.append(line)
            continue

        if body and any(b.strip() for b in body) and not _is_reference(body):
            diagram_number += 1
            name = diagram_file_name(body, slide_number, diagram_number)
            path = out_dir / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("\n".join(body) + "\n", encoding="utf-8")
            written.append(path)
            logger.info("Extracted diagram %s (slide %d)", name, slide_number)
            print(f"  Extracted: {name}")
            result.append(f"@ref:{name}")
        else:
            result.extend(body)
        result.append(line)
        body = None

    if body is not None:
        result.extend(body)

    return "\n".join(result), written
