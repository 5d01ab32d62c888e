"""FastAPI content server: presentation page, deck JSON and diagram images."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from . import config
from .cache import DeckCache
from .diagrams import DiagramError, DiagramGateway, DiagramRenderer
from .models import Deck, DiagramBlock, DiagramRefBlock
from .viewer import render_presentation

logger = logging.getLogger(__name__)


def create_app(
    deck_path: Path,
    *,
    diagrams_dir: Path | None = None,
    renderer: DiagramRenderer | None = None,
) -> FastAPI:
    """Build the app serving *deck_path*.

    The deck file is re-read on every request and re-parsed only when its
    text changes, so edits show up on reload.
    """
    deck_path = Path(deck_path)
    cache = DeckCache()
    gateway = DiagramGateway(diagrams_dir=diagrams_dir, renderer=renderer)

    app = FastAPI(title="deck2pdf", description="Markdown slide deck viewer")
    app.state.cache = cache
    app.state.gateway = gateway

    def load_deck() -> Deck:
        try:
            text = deck_path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to read deck %s: %s", deck_path, exc)
            return Deck()
        return cache.get(text)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/")
    def index():
        return RedirectResponse(url="/presentation/")

    @app.get("/presentation/", response_class=HTMLResponse)
    def presentation(slide: int = 1):
        deck = load_deck()
        return HTMLResponse(render_presentation(deck, initial_slide=slide))

    @app.get("/api/deck")
    def deck_json():
        return load_deck().to_dict()

    @app.get("/api/slides/{slide_id}")
    def slide_json(slide_id: int):
        slide = load_deck().slide(slide_id)
        if slide is None:
            raise HTTPException(status_code=404, detail=f"Slide {slide_id} not found")
        return slide.to_dict()

    @app.get("/api/slides/{slide_id}/blocks/{index}/diagram")
    def diagram(slide_id: int, index: int):
        slide = load_deck().slide(slide_id)
        if slide is None:
            raise HTTPException(status_code=404, detail=f"Slide {slide_id} not found")
        if not 0 <= index < len(slide.content):
            raise HTTPException(status_code=404, detail=f"Block {index} not found on slide {slide_id}")
        block = slide.content[index]
        if not isinstance(block, (DiagramBlock, DiagramRefBlock)):
            raise HTTPException(status_code=404, detail=f"Block {index} on slide {slide_id} is not a diagram")

        t0 = time.perf_counter()
        try:
            image = gateway.render_block(block)
        except DiagramError as exc:
            logger.warning("Diagram %d/%d failed: %s", slide_id, index, exc)
            return JSONResponse(
                status_code=502,
                content={"detail": str(exc), "source": block.content},
            )
        logger.info(
            "Rendered diagram %d/%d as %s (%.2fs)",
            slide_id, index, image.media_type, time.perf_counter() - t0,
        )
        return Response(content=image.data, media_type=image.media_type)

    return app


def serve(
    deck_path: Path,
    *,
    host: str | None = None,
    port: int | None = None,
    diagrams_dir: Path | None = None,
    render_endpoint: str | None = None,
) -> None:
    """Run the content server in the foreground until interrupted."""
    import uvicorn

    renderer = DiagramRenderer(render_endpoint) if render_endpoint else None
    app = create_app(deck_path, diagrams_dir=diagrams_dir, renderer=renderer)
    host = host or config.HOST
    port = port or config.PORT
    logger.info("Serving %s on http://%s:%d", deck_path, host, port)
    uvicorn.run(app, host=host, port=port, log_level=config.LOG_LEVEL.lower())
