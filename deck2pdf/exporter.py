"""Export a served presentation to PDF, one page per slide.

The exporter drives headless Chromium through the viewer page.  For every
slide it presses ``Home`` followed by ``ArrowRight`` until the slide counter
shows the wanted index, waits for that slide's diagrams, prints the page and
finally concatenates the single-page PDFs with pypdf.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from pypdf import PdfReader, PdfWriter

from . import config
from .devserver import DevServer
from .polling import poll_until
from .viewer import PRINT_HIDE_CSS

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1920, "height": 1080}
DEVICE_SCALE_FACTOR = 2
PDF_MARGIN = {"top": "0.5cm", "right": "0.5cm", "bottom": "0.5cm", "left": "0.5cm"}

# Returns [current, total] from the "i / n" counter, or null before it exists.
COUNTER_JS = """() => {
  const el = document.getElementById("slide-counter");
  if (!el) return null;
  const m = el.textContent.match(/(\\d+)\\s*\\/\\s*(\\d+)/);
  return m ? [parseInt(m[1], 10), parseInt(m[2], 10)] : null;
}"""

DIAGRAMS_READY_JS = """() => {
  const visible = (el) => el.offsetParent !== null;
  const loading = Array.from(document.querySelectorAll(".diagram-loading")).filter(visible);
  if (loading.length) return false;
  return Array.from(document.querySelectorAll("img.diagram-image"))
    .filter(visible)
    .every((img) => img.complete && img.naturalWidth > 0 && img.naturalHeight > 0);
}"""


class ExportError(RuntimeError):
    """The presentation could not be exported."""


class ExportState(enum.Enum):
    IDLE = "idle"
    SERVER_STARTING = "server-starting"
    BROWSER_LAUNCHING = "browser-launching"
    PAGE_LOADING = "page-loading"
    NAVIGATING = "navigating"
    AWAITING_DIAGRAMS = "awaiting-diagrams"
    CAPTURING = "capturing"
    MERGING = "merging"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ExportOptions:
    deck_path: Path | None = None
    output_path: Path = config.OUTPUT_PATH
    url: str | None = None
    host: str = config.HOST
    port: int = config.PORT
    diagrams_dir: Path | None = None
    max_slides: int | None = None
    wait_for_diagrams: bool = True
    server_start_timeout: float = config.SERVER_START_TIMEOUT
    page_load_timeout: float = config.PAGE_LOAD_TIMEOUT
    slide_step_timeout: float = config.SLIDE_STEP_TIMEOUT
    diagram_wait_timeout: float = config.DIAGRAM_WAIT_TIMEOUT
    poll_interval: float = config.POLL_INTERVAL
    settle_delay: float = config.SETTLE_DELAY


def launch_chromium():
    """Start playwright and a headless Chromium; returns ``(playwright, browser)``."""
    playwright = sync_playwright().start()
    try:
        browser = playwright.chromium.launch(headless=True, args=["--no-sandbox"])
    except PlaywrightError as exc:
        playwright.stop()
        raise ExportError(
            f"Failed to launch Chromium: {exc}\n"
            "Install the browser with:\n"
            "  playwright install chromium"
        ) from exc
    return playwright, browser


def merge_pdfs(documents: list[bytes]) -> bytes:
    """Concatenate PDF documents in order."""
    writer = PdfWriter()
    for data in documents:
        reader = PdfReader(BytesIO(data))
        for page in reader.pages:
            writer.add_page(page)
    output = BytesIO()
    writer.write(output)
    return output.getvalue()


class PdfExporter:
    """Runs one export; see :class:`ExportState` for the phases it walks through."""

    def __init__(
        self,
        options: ExportOptions,
        *,
        server_factory: Callable[..., DevServer] = DevServer,
        browser_launcher: Callable[[], tuple] = launch_chromium,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.options = options
        self.server_factory = server_factory
        self.browser_launcher = browser_launcher
        self.clock = clock
        self.sleep = sleep
        self.state = ExportState.IDLE
        self.total_slides = 0

    def _enter(self, state: ExportState) -> None:
        logger.debug("Export state %s -> %s", self.state.name, state.name)
        self.state = state

    def _poll(self, predicate: Callable[[], bool], timeout: float):
        return poll_until(
            predicate,
            interval=self.options.poll_interval,
            timeout=timeout,
            clock=self.clock,
            sleep=self.sleep,
        )

    # ------------------------------------------------------------------
    # Page helpers
    # ------------------------------------------------------------------

    def _read_counter(self, page) -> tuple[int, int] | None:
        value = page.evaluate(COUNTER_JS)
        if not value:
            return None
        return int(value[0]), int(value[1])

    def _current_slide(self, page) -> int | None:
        counter = self._read_counter(page)
        return counter[0] if counter else None

    def _load(self, page, base_url: str) -> int:
        url = base_url.rstrip("/") + "/presentation/"
        timeout_ms = self.options.page_load_timeout * 1000
        print(f"  Loading {url}")
        try:
            page.goto(url, wait_until="networkidle", timeout=timeout_ms)
            page.wait_for_selector("#slide-counter", timeout=timeout_ms)
        except PlaywrightError as exc:
            raise ExportError(f"Failed to load presentation at {url}: {exc}") from exc

        result = self._poll(
            lambda: self._read_counter(page) is not None,
            self.options.page_load_timeout,
        )
        if result.timed_out:
            raise ExportError("Slide counter never appeared on the presentation page")
        _, total = self._read_counter(page)
        page.add_style_tag(content=PRINT_HIDE_CSS)
        logger.info("Presentation loaded: %d slide(s)", total)
        return total

    def _press_and_expect(self, page, key: str, expected: int) -> None:
        page.keyboard.press(key)
        result = self._poll(
            lambda: self._current_slide(page) == expected,
            self.options.slide_step_timeout,
        )
        if result.timed_out:
            raise ExportError(
                f"Slide counter did not reach {expected} after pressing {key} "
                f"(still at {self._current_slide(page)})"
            )

    def _navigate(self, page, index: int) -> None:
        self._enter(ExportState.NAVIGATING)
        self._press_and_expect(page, "Home", 1)
        for step in range(2, index + 1):
            self._press_and_expect(page, "ArrowRight", step)

    def _await_diagrams(self, page, index: int) -> None:
        self._enter(ExportState.AWAITING_DIAGRAMS)
        if self.options.wait_for_diagrams:
            result = self._poll(
                lambda: bool(page.evaluate(DIAGRAMS_READY_JS)),
                self.options.diagram_wait_timeout,
            )
            if result.timed_out:
                logger.warning(
                    "Diagrams on slide %d not ready after %.1fs; capturing anyway",
                    index, result.elapsed,
                )
                print(f"  Warning: diagrams on slide {index} did not finish loading")
        if self.options.settle_delay > 0:
            self.sleep(self.options.settle_delay)

    def _capture(self, page) -> bytes:
        self._enter(ExportState.CAPTURING)
        return page.pdf(
            format="A4",
            landscape=True,
            print_background=True,
            margin=PDF_MARGIN,
            page_ranges="1",
        )

    def capture_slide(self, page, index: int) -> bytes:
        t0 = self.clock()
        self._navigate(page, index)
        self._await_diagrams(page, index)
        data = self._capture(page)
        logger.info("Slide %d captured in %.2fs (%d bytes)", index, self.clock() - t0, len(data))
        return data

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> Path:
        opts = self.options
        if opts.url is None and opts.deck_path is None:
            raise ExportError("Either a deck path or a presentation URL is required")

        t0 = self.clock()
        server = None
        playwright = None
        browser = None
        try:
            base_url = opts.url
            if base_url is None:
                self._enter(ExportState.SERVER_STARTING)
                print("[1/4] Starting content server…")
                server = self.server_factory(
                    opts.deck_path,
                    host=opts.host,
                    port=opts.port,
                    diagrams_dir=opts.diagrams_dir,
                    start_timeout=opts.server_start_timeout,
                )
                base_url = server.start()
            else:
                print(f"[1/4] Using running server at {base_url}")

            self._enter(ExportState.BROWSER_LAUNCHING)
            print("[2/4] Launching headless Chromium…")
            playwright, browser = self.browser_launcher()
            page = browser.new_page(viewport=VIEWPORT, device_scale_factor=DEVICE_SCALE_FACTOR)

            self._enter(ExportState.PAGE_LOADING)
            self.total_slides = self._load(page, base_url)
            count = self.total_slides
            if opts.max_slides is not None:
                count = min(opts.max_slides, count)
            if count < 1:
                raise ExportError("Presentation has no slides to export")

            print(f"[3/4] Capturing {count} of {self.total_slides} slide(s)…")
            documents = []
            for index in range(1, count + 1):
                print(f"  Slide {index}/{count}")
                documents.append(self.capture_slide(page, index))

            self._enter(ExportState.MERGING)
            print("[4/4] Merging PDF pages…")
            merged = merge_pdfs(documents)

            self._enter(ExportState.WRITING)
            output = Path(opts.output_path)
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_bytes(merged)

            self._enter(ExportState.DONE)
            logger.info("Export of %d slide(s) completed in %.2fs", count, self.clock() - t0)
            return output
        except Exception:
            self._enter(ExportState.FAILED)
            logger.exception("Export failed")
            raise
        finally:
            self._cleanup(server, playwright, browser)

    def _cleanup(self, server, playwright, browser) -> None:
        if browser is not None:
            try:
                browser.close()
            except PlaywrightError as exc:
                logger.warning("Failed to close browser: %s", exc)
        if playwright is not None:
            try:
                playwright.stop()
            except PlaywrightError as exc:
                logger.warning("Failed to stop playwright: %s", exc)
        if server is not None:
            server.stop()


def export_pdf(options: ExportOptions, **kwargs) -> Path:
    """Run a :class:`PdfExporter` with *options* and return the written path."""
    return PdfExporter(options, **kwargs).run()
