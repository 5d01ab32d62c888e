"""Configuration defaults loaded from environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


# Diagrams
DIAGRAM_LANGUAGE: str = os.getenv("DECK2PDF_DIAGRAM_LANGUAGE", "plantuml")
RENDER_ENDPOINT: str = os.getenv("DECK2PDF_RENDER_ENDPOINT", "https://kroki.io").rstrip("/")
PLANTUML_SERVER: str = os.getenv(
    "DECK2PDF_PLANTUML_SERVER", "https://www.plantuml.com/plantuml"
).rstrip("/")
DIAGRAMS_DIR: Path = Path(os.getenv("DECK2PDF_DIAGRAMS_DIR", "diagrams"))
RENDER_TIMEOUT: float = _float("DECK2PDF_RENDER_TIMEOUT", "30")

# Content server
HOST: str = os.getenv("DECK2PDF_HOST", "127.0.0.1")
PORT: int = int(os.getenv("DECK2PDF_PORT", "5173"))
LOG_LEVEL: str = os.getenv("DECK2PDF_LOG_LEVEL", "INFO").upper()

# Export timings (seconds)
SERVER_START_TIMEOUT: float = _float("DECK2PDF_SERVER_START_TIMEOUT", "30")
PAGE_LOAD_TIMEOUT: float = _float("DECK2PDF_PAGE_LOAD_TIMEOUT", "30")
SLIDE_STEP_TIMEOUT: float = _float("DECK2PDF_SLIDE_STEP_TIMEOUT", "5")
DIAGRAM_WAIT_TIMEOUT: float = _float("DECK2PDF_DIAGRAM_WAIT_TIMEOUT", "20")
POLL_INTERVAL: float = _float("DECK2PDF_POLL_INTERVAL", "0.5")
SETTLE_DELAY: float = _float("DECK2PDF_SETTLE_DELAY", "0.5")

# Output
OUTPUT_PATH: Path = Path(os.getenv("DECK2PDF_OUTPUT", "dist/presentation.pdf"))
