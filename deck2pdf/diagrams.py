"""Resolve diagram sources and render them through an HTTP endpoint.

Sources come either inline from a slide or from a ``.puml`` file under the
diagrams directory.  ``!include`` lines are expanded before rendering.  The
render endpoint is asked for SVG first and PNG second; when both fail a
:class:`DiagramRenderError` tells the caller to show the raw source instead.
"""

from __future__ import annotations

import base64
import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path

import requests

from . import config
from .models import DIAGRAM_START, ContentBlock, DiagramBlock, DiagramRefBlock

logger = logging.getLogger(__name__)

_INCLUDE_RE = re.compile(r"^[ \t]*!include[ \t]+(\S+)[ \t]*$", re.MULTILINE)
_OPEN_FENCE_RE = re.compile(r"\A```[\w+-]*[ \t]*\n?")
_CLOSE_FENCE_RE = re.compile(r"\n?[ \t]*```\Z")


class DiagramError(RuntimeError):
    """Base class for recoverable diagram failures."""


class DiagramSourceError(DiagramError):
    """The diagram file is missing or outside the diagrams directory."""


class DiagramRenderError(DiagramError):
    """Neither SVG nor PNG rendering succeeded."""


@dataclass(frozen=True)
class DiagramImage:
    data: bytes
    media_type: str

    @property
    def suffix(self) -> str:
        return ".svg" if "svg" in self.media_type else ".png"

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path


def strip_fences(source: str) -> str:
    """Remove an enclosing ```` ```lang ```` / ```` ``` ```` pair from *source*."""
    code = source.strip()
    code = _OPEN_FENCE_RE.sub("", code, count=1)
    code = _CLOSE_FENCE_RE.sub("", code, count=1)
    return code.strip()


def _resolve_path(relative: str, root: Path) -> Path:
    candidate = (root / relative).resolve()
    if not candidate.is_relative_to(root):
        raise DiagramSourceError(f"Diagram path escapes diagrams directory: {relative}")
    return candidate


def resolve_includes(
    text: str,
    diagrams_dir: Path,
    *,
    _chain: tuple[Path, ...] = (),
) -> str:
    """Expand ``!include <path>`` lines, recursively.

    Paths are relative to *diagrams_dir*.  A directive whose file is missing,
    outside the directory, or already being expanded higher up the include
    chain is left as-is and a warning is logged.
    """
    root = Path(diagrams_dir).resolve()

    def _substitute(m: re.Match) -> str:
        target = m.group(1)
        try:
            path = _resolve_path(target, root)
        except DiagramSourceError as exc:
            logger.warning("Leaving !include unresolved: %s", exc)
            return m.group(0)
        if path in _chain:
            cycle = " -> ".join(p.name for p in (*_chain, path))
            logger.warning("Include cycle detected (%s); leaving !include %s unresolved", cycle, target)
            return m.group(0)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Include file %s not readable (%s); leaving directive unresolved", target, exc)
            return m.group(0)
        logger.debug("Resolved !include %s (%d chars)", target, len(content))
        return resolve_includes(content, root, _chain=(*_chain, path)).rstrip("\n")

    return _INCLUDE_RE.sub(_substitute, text)


def load_diagram(diagram_path: str, diagrams_dir: Path) -> str:
    """Read a diagram file relative to *diagrams_dir* and expand its includes."""
    root = Path(diagrams_dir).resolve()
    path = _resolve_path(diagram_path, root)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DiagramSourceError(f"Failed to load diagram file {diagram_path}: {exc}") from exc
    return resolve_includes(text, root, _chain=(path,))


class DiagramRenderer:
    """Client for a Kroki-compatible ``POST /<lang>/<format>`` endpoint."""

    def __init__(
        self,
        endpoint: str | None = None,
        *,
        language: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.endpoint = (endpoint or config.RENDER_ENDPOINT).rstrip("/")
        self.language = language or config.DIAGRAM_LANGUAGE
        self.timeout = timeout if timeout is not None else config.RENDER_TIMEOUT
        # requests.Session is not thread-safe; without an injected session each
        # worker thread gets its own.
        self._shared_session = session
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    def _post(self, fmt: str, source: str) -> requests.Response | None:
        url = f"{self.endpoint}/{self.language}/{fmt}"
        try:
            response = self.session.post(
                url,
                data=source.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Render request to %s failed: %s", url, exc)
            return None
        logger.debug(
            "POST %s -> %d (%s, %d bytes)",
            url,
            response.status_code,
            response.headers.get("Content-Type", ""),
            len(response.content),
        )
        if not response.ok:
            logger.warning("Render endpoint %s returned HTTP %d", url, response.status_code)
            return None
        return response

    def render(self, source: str) -> DiagramImage:
        """Render *source*, preferring SVG and falling back to PNG."""
        if not source.strip():
            raise DiagramRenderError("Empty diagram source")

        response = self._post("svg", source)
        if response is not None:
            head = response.text.lstrip()[:1024]
            if head.startswith(("<svg", "<?xml")) and "<svg" in head:
                return DiagramImage(data=response.content, media_type="image/svg+xml")
            logger.warning("SVG response is not an SVG document; retrying as PNG")

        response = self._post("png", source)
        if response is not None:
            media_type = response.headers.get("Content-Type", "").split(";")[0].strip()
            if media_type.startswith("image/"):
                return DiagramImage(data=response.content, media_type=media_type)
            logger.warning("PNG response has non-image content type %r", media_type)

        raise DiagramRenderError(
            "Failed to render diagram. The diagram service may be unavailable."
        )


class DiagramGateway:
    """Resolve diagram blocks to source text and render them."""

    def __init__(
        self,
        diagrams_dir: Path | None = None,
        renderer: DiagramRenderer | None = None,
    ):
        self.diagrams_dir = Path(diagrams_dir) if diagrams_dir is not None else config.DIAGRAMS_DIR
        self.renderer = renderer or DiagramRenderer()

    def source_for(self, block: ContentBlock) -> str:
        if isinstance(block, DiagramRefBlock):
            return load_diagram(block.diagram_path, self.diagrams_dir)
        if isinstance(block, DiagramBlock):
            code = strip_fences(block.content)
            # Inline captures may start with a lead-in line before @startuml.
            start = code.find(DIAGRAM_START)
            if start > 0:
                code = code[start:]
            return resolve_includes(code, self.diagrams_dir)
        raise TypeError(f"Not a diagram block: {block.kind}")

    def render_block(self, block: ContentBlock) -> DiagramImage:
        source = self.source_for(block)
        logger.debug("Rendering %s block (%d chars)", block.kind, len(source))
        return self.renderer.render(source)
