"""Render a parsed deck as a single interactive HTML presentation page."""

from __future__ import annotations

import logging
from typing import Callable

from jinja2 import BaseLoader, Environment, select_autoescape
from markupsafe import Markup, escape

from . import config
from .encoder import diagram_url
from .inline import BOLD, ITALIC, parse_inline
from .models import (
    CodeBlock,
    ContentBlock,
    Deck,
    DiagramBlock,
    DiagramRefBlock,
    HeadingBlock,
    ListBlock,
    Slide,
    TableBlock,
    TextBlock,
)
from .navigation import KEY_BINDINGS, Navigator

logger = logging.getLogger(__name__)

DIAGRAM_ROUTE = "/api/slides/{slide_id}/blocks/{index}/diagram"

# CSS injected by the exporter to hide viewer chrome before printing.
PRINT_HIDE_CSS = """
.navigation, .deck-footer { display: none !important; }
body { margin: 0; padding: 0; }
"""


def render_inline(text: str) -> Markup:
    parts = []
    for run in parse_inline(text):
        if run.kind == BOLD:
            parts.append(Markup("<strong>{}</strong>").format(run.text))
        elif run.kind == ITALIC:
            parts.append(Markup("<em>{}</em>").format(run.text))
        else:
            parts.append(escape(run.text))
    return Markup("").join(parts)


def _render_text(block: TextBlock, **_) -> Markup:
    return Markup('<p class="text">{}</p>').format(render_inline(block.content))


def _render_heading(block: HeadingBlock, **_) -> Markup:
    tag = f"h{block.level + 1}"
    return Markup('<{0} class="heading">{1}</{0}>').format(
        Markup(tag), render_inline(block.content)
    )


def _render_list(block: ListBlock, **_) -> Markup:
    tag = Markup("ol" if block.ordered else "ul")
    items = Markup("").join(
        Markup("<li>{}</li>").format(render_inline(item)) for item in block.items
    )
    return Markup('<{0} class="markdown-list">{1}</{0}>').format(tag, items)


def _render_table(block: TableBlock, **_) -> Markup:
    header = block.header
    rows = block.rows
    line_count = sum(1 for line in block.content.split("\n") if line.strip())
    # A header with only its separator row still renders as an empty table.
    if not header or line_count < 2:
        return Markup('<pre class="table-raw">{}</pre>').format(block.content)

    head = Markup("").join(Markup("<th>{}</th>").format(render_inline(cell)) for cell in header)
    body = Markup("").join(
        Markup("<tr>{}</tr>").format(
            Markup("").join(
                Markup("<td>{}</td>").format(render_inline(row[i] if i < len(row) else ""))
                for i in range(len(header))
            )
        )
        for row in rows
    )
    return Markup(
        '<div class="table-wrapper"><table><thead><tr>{}</tr></thead>'
        "<tbody>{}</tbody></table></div>"
    ).format(head, body)


def _render_code(block: CodeBlock, **_) -> Markup:
    css_class = f"language-{block.language}" if block.language else ""
    return Markup('<pre class="code-block"><code class="{}">{}</code></pre>').format(
        css_class, block.content
    )


def _render_diagram(
    block: ContentBlock,
    *,
    slide: Slide,
    index: int,
    plantuml_server: str,
) -> Markup:
    src = DIAGRAM_ROUTE.format(slide_id=slide.id, index=index)
    if isinstance(block, DiagramRefBlock):
        source = f"File: {block.diagram_path}"
        link = Markup("")
    else:
        source = block.content
        link = Markup('<a class="diagram-link" href="{}" target="_blank">Open in diagram server</a>').format(
            diagram_url(block.content, plantuml_server)
        )
    return Markup(
        '<figure class="diagram" data-src="{src}">'
        '<div class="diagram-loading">Loading diagram…</div>'
        '<div class="diagram-error" hidden></div>'
        '<details class="diagram-fallback" hidden><summary>Show source</summary>'
        "<pre><code>{source}</code></pre>{link}</details>"
        "</figure>"
    ).format(src=src, source=source, link=link)


_RENDERERS: dict[type[ContentBlock], Callable[..., Markup]] = {
    TextBlock: _render_text,
    HeadingBlock: _render_heading,
    ListBlock: _render_list,
    TableBlock: _render_table,
    CodeBlock: _render_code,
    DiagramBlock: _render_diagram,
    DiagramRefBlock: _render_diagram,
}


def render_block(block: ContentBlock, *, slide: Slide, index: int, plantuml_server: str) -> Markup:
    renderer = _RENDERERS[type(block)]
    return renderer(block, slide=slide, index=index, plantuml_server=plantuml_server)


_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{{ deck.metadata.title }}</title>
<style>
  * { box-sizing: border-box; }
  body { margin: 0; font-family: "Segoe UI", Roboto, Helvetica, Arial, sans-serif; background: #f4f5f7; color: #020a1c; }
  .container { display: flex; flex-direction: column; min-height: 100vh; }
  .slide-wrapper { flex: 1; display: flex; align-items: stretch; justify-content: center; padding: 32px; }
  .slide { width: 100%; max-width: 1600px; background: #fff; border-radius: 8px; padding: 48px 64px; box-shadow: 0 2px 12px rgba(2, 10, 28, .08); }
  .slide[hidden] { display: none; }
  .slide-header h2 { margin: 0 0 24px; font-size: 2.2rem; border-bottom: 3px solid #020a1c; padding-bottom: 12px; }
  .title-slide { display: flex; flex-direction: column; justify-content: center; text-align: center; }
  .title-slide h1 { font-size: 3rem; margin-bottom: 24px; }
  .text { font-size: 1.25rem; line-height: 1.6; margin: 0 0 12px; }
  .heading { margin: 24px 0 12px; }
  .markdown-list { font-size: 1.2rem; line-height: 1.6; }
  .table-wrapper table { border-collapse: collapse; width: 100%; margin: 12px 0; }
  .table-wrapper th, .table-wrapper td { border: 1px solid #d0d4dc; padding: 6px 10px; text-align: left; }
  .table-wrapper th { background: #eef0f4; }
  .code-block, .table-raw { background: #0f172a; color: #e2e8f0; padding: 16px; border-radius: 6px; overflow-x: auto; }
  .diagram { margin: 16px 0; text-align: center; }
  .diagram-image { max-width: 100%; max-height: 70vh; }
  .diagram-loading { padding: 48px; color: #64748b; }
  .diagram-error { color: #b91c1c; padding: 12px; border: 1px solid #fecaca; background: #fef2f2; border-radius: 6px; }
  .diagram-fallback { text-align: left; }
  .navigation { padding: 12px 32px 20px; background: #fff; border-top: 1px solid #e2e8f0; }
  .controls { display: flex; gap: 8px; align-items: center; justify-content: center; }
  .controls button { font-size: 1rem; padding: 8px 16px; cursor: pointer; }
  .slide-counter { min-width: 80px; text-align: center; font-weight: 600; }
  .progress { height: 4px; background: #e2e8f0; margin-top: 10px; }
  .progress-bar { height: 100%; background: #020a1c; }
  .hint { text-align: center; color: #64748b; font-size: .85rem; margin-top: 6px; }
  .deck-footer { text-align: center; color: #94a3b8; font-size: .8rem; padding-bottom: 8px; }
  .empty { text-align: center; padding: 96px; }
</style>
</head>
<body>
<div class="container">
  <div class="slide-wrapper">
  {% for slide in deck.slides %}
    <section class="slide{% if slide.id == 1 %} title-slide{% endif %}" data-slide-id="{{ slide.id }}"{% if slide.id != initial_slide %} hidden{% endif %}>
    {% if slide.id == 1 %}
      <h1>{{ slide.title }}</h1>
    {% else %}
      <div class="slide-header"><h2>{{ slide.title }}</h2></div>
    {% endif %}
      <div class="slide-content">
      {% for block in slide.content %}
        {{ render_block(block, slide=slide, index=loop.index0, plantuml_server=plantuml_server) }}
      {% endfor %}
      </div>
    </section>
  {% else %}
    <section class="slide empty"><h2>Slide not found</h2></section>
  {% endfor %}
  </div>
  <nav class="navigation">
    <div class="controls">
      <button type="button" data-action="first">First</button>
      <button type="button" data-action="previous">Back</button>
      <div class="slide-counter" id="slide-counter">{{ initial_slide if total else 0 }} / {{ total }}</div>
      <button type="button" data-action="next">Next</button>
      <button type="button" data-action="last">Last</button>
    </div>
    <div class="progress"><div class="progress-bar" style="width: {{ (100 * initial_slide / total) if total else 0 }}%"></div></div>
    <div class="hint">Use the arrow keys or space to navigate</div>
  </nav>
  <div class="deck-footer">{{ deck.metadata.title }} · v{{ deck.metadata.version }}{% if deck.metadata.date %} · {{ deck.metadata.date }}{% endif %}</div>
</div>
<script>
(function () {
  const KEY_BINDINGS = {{ key_bindings|tojson }};
  const slides = Array.from(document.querySelectorAll(".slide[data-slide-id]"));
  const total = slides.length;
  const counter = document.getElementById("slide-counter");
  const bar = document.querySelector(".progress-bar");
  let current = {{ initial_slide }};

  function isTextInput(target) {
    return target instanceof HTMLInputElement ||
      target instanceof HTMLTextAreaElement ||
      (target instanceof HTMLElement && target.isContentEditable);
  }

  function loadDiagrams(slide) {
    slide.querySelectorAll(".diagram[data-src]").forEach(function (figure) {
      if (figure.dataset.objectUrl || figure.dataset.failed || figure.dataset.pending) return;
      const loading = figure.querySelector(".diagram-loading");
      loading.hidden = false;
      figure.dataset.pending = "1";
      fetch(figure.dataset.src)
        .then(function (response) {
          if (!response.ok) {
            return response.json().catch(function () { return {}; }).then(function (body) {
              throw new Error(body.detail || ("HTTP " + response.status));
            });
          }
          return response.blob();
        })
        .then(function (blob) {
          delete figure.dataset.pending;
          if (slide.hidden) return;
          const url = URL.createObjectURL(blob);
          const img = document.createElement("img");
          img.className = "diagram-image";
          img.alt = "Diagram";
          img.src = url;
          figure.dataset.objectUrl = url;
          figure.appendChild(img);
          loading.hidden = true;
        })
        .catch(function (err) {
          delete figure.dataset.pending;
          figure.dataset.failed = "1";
          const error = figure.querySelector(".diagram-error");
          error.textContent = "Failed to load diagram: " + err.message;
          error.hidden = false;
          figure.querySelector(".diagram-fallback").hidden = false;
          loading.hidden = true;
        });
    });
  }

  function releaseDiagrams(slide) {
    slide.querySelectorAll(".diagram").forEach(function (figure) {
      if (!figure.dataset.objectUrl) return;
      URL.revokeObjectURL(figure.dataset.objectUrl);
      delete figure.dataset.objectUrl;
      const img = figure.querySelector(".diagram-image");
      if (img) img.remove();
      figure.querySelector(".diagram-loading").hidden = false;
    });
  }

  function show(n) {
    if (n < 1 || n > total) return;
    if (n !== current) {
      slides[current - 1].hidden = true;
      releaseDiagrams(slides[current - 1]);
    }
    current = n;
    slides[n - 1].hidden = false;
    counter.textContent = n + " / " + total;
    bar.style.width = (100 * n / total) + "%";
    document.querySelectorAll("[data-action=first], [data-action=previous]").forEach(function (b) { b.disabled = n <= 1; });
    document.querySelectorAll("[data-action=next], [data-action=last]").forEach(function (b) { b.disabled = n >= total; });
    loadDiagrams(slides[n - 1]);
  }

  const actions = {
    next: function () { if (current < total) show(current + 1); },
    previous: function () { if (current > 1) show(current - 1); },
    first: function () { show(1); },
    last: function () { show(total); }
  };

  document.querySelectorAll("[data-action]").forEach(function (button) {
    button.addEventListener("click", function () { actions[button.dataset.action](); });
  });

  window.addEventListener("keydown", function (event) {
    if (isTextInput(event.target)) return;
    const action = KEY_BINDINGS[event.key];
    if (!action) return;
    event.preventDefault();
    actions[action]();
  });

  if (total) show(current);
})();
</script>
</body>
</html>
"""

_env = Environment(loader=BaseLoader(), autoescape=select_autoescape(default=True))
_template = _env.from_string(_PAGE_TEMPLATE)


def render_presentation(
    deck: Deck,
    *,
    initial_slide: int = 1,
    plantuml_server: str | None = None,
) -> str:
    """Return the complete HTML page for *deck*."""
    navigator = Navigator(len(deck.slides), initial_slide)
    html = _template.render(
        deck=deck,
        total=len(deck.slides),
        initial_slide=navigator.current,
        key_bindings=KEY_BINDINGS,
        plantuml_server=plantuml_server or config.PLANTUML_SERVER,
        render_block=render_block,
    )
    logger.debug("Rendered presentation page: %d slide(s), %d chars", len(deck.slides), len(html))
    return html
